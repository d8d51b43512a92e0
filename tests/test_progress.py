# tests/test_progress.py

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from gedcom_import.models import ImportSession, SessionStatus
from gedcom_import.progress import (
    PHASE_COMMIT,
    PHASE_MATCHING,
    PHASE_PARSING,
    ErrorLog,
    ProgressReporter,
    error_log_csv,
    error_log_filename,
    progress_snapshot,
    write_error_log,
)


class Ticker:
    """Monotonic clock advanced by hand."""

    def __init__(self) -> None:
        self.t = 0.0

    def __call__(self) -> float:
        return self.t


def test_percentage_follows_phase_bands_and_never_decreases() -> None:
    session = ImportSession("u_1_ab")
    clock = Ticker()
    reporter = ProgressReporter(session, batch_size=10, clock=clock)
    seen = []

    reporter.start_phase(PHASE_PARSING)
    reporter.checkpoint(0.5)
    seen.append(session.progress.percentage)
    reporter.checkpoint(1.0)
    seen.append(session.progress.percentage)

    reporter.start_phase(PHASE_MATCHING, 4)
    seen.append(session.progress.percentage)
    reporter.advance(4)
    seen.append(session.progress.percentage)

    reporter.start_phase(PHASE_COMMIT, 100)
    reporter.checkpoint(0.0)
    seen.append(session.progress.percentage)
    reporter.checkpoint(1.0)
    seen.append(session.progress.percentage)

    assert seen == [20, 40, 40, 60, 60, 99]
    assert seen == sorted(seen)


def test_hundred_only_at_terminal_status() -> None:
    session = ImportSession("u_1_ab")
    reporter = ProgressReporter(session)
    reporter.start_phase(PHASE_COMMIT, 1)
    reporter.advance(1)
    assert session.progress.percentage == 99

    reporter.finish(SessionStatus.COMMITTED)
    assert session.progress.percentage == 100
    assert session.progress.phase == SessionStatus.COMMITTED

    with pytest.raises(ValueError):
        reporter.finish(SessionStatus.PARSED)


def test_advance_only_reports_once_per_batch() -> None:
    session = ImportSession("u_1_ab")
    reporter = ProgressReporter(session, batch_size=3, clock=Ticker())
    reporter.start_phase(PHASE_COMMIT, 7)

    reported = [reporter.advance(done) for done in range(1, 8)]

    # batches end at 3 and 6, plus the final record
    assert reported == [False, False, True, False, False, True, True]


def test_estimated_remaining_from_elapsed_fraction() -> None:
    session = ImportSession("u_1_ab")
    clock = Ticker()
    reporter = ProgressReporter(session, clock=clock)
    reporter.start_phase(PHASE_COMMIT, 10)
    assert session.progress.estimated_remaining is None

    clock.t = 4.0
    reporter.checkpoint(0.25)
    assert session.progress.estimated_remaining == pytest.approx(12.0)

    snapshot = progress_snapshot(session)
    assert snapshot["phase"] == PHASE_COMMIT
    assert snapshot["upload_id"] == "u_1_ab"


def test_error_log_is_append_only_and_ordered() -> None:
    session = ImportSession("u_1_ab")
    log = ErrorLog(session)
    log.append("parsing", "line 3", "bad level")
    log.append("commit", "@I1@->@I2@", "relationship dropped", severity="warning")

    assert len(log) == 2
    assert [e.reference for e in log] == ["line 3", "@I1@->@I2@"]
    assert [e.reason for e in log.warnings_only()] == ["relationship dropped"]
    assert len(log.errors_only()) == 1


def test_csv_of_three_errors_has_four_lines_in_order() -> None:
    session = ImportSession("u_1_ab")
    log = ErrorLog(session)
    log.append("parsing", "line 3", "level 'X' is not a non-negative integer")
    log.append("parsing", "line 9", "empty DATE value in BIRT")
    log.append("commit", "@I1@->@I2@", "parentOf relationship dropped: @I2@ not imported")

    lines = error_log_csv(log.entries).splitlines()

    assert len(lines) == 4
    assert lines[0] == "phase,reference,reason"
    assert lines[1] == "parsing,line 3,level 'X' is not a non-negative integer"
    assert lines[2] == "parsing,line 9,empty DATE value in BIRT"
    assert lines[3].startswith("commit,@I1@->@I2@,")


def test_csv_quotes_commas() -> None:
    session = ImportSession("u_1_ab")
    ErrorLog(session).append("parsing", "line 1", "bad value, really")
    assert error_log_csv(session.errors).splitlines()[1] == 'parsing,line 1,"bad value, really"'


def test_error_log_filename_uses_utc_timestamp() -> None:
    now = datetime(2024, 3, 5, 14, 7, 9, tzinfo=timezone.utc)
    assert error_log_filename("bob_1_ff", now) == "gedcom-import-errors_bob_1_ff_20240305T140709Z.csv"


def test_write_error_log(tmp_path) -> None:
    session = ImportSession("bob_1_ff")
    ErrorLog(session).append("parsing", "line 2", "missing tag")
    now = datetime(2024, 3, 5, 14, 7, 9, tzinfo=timezone.utc)

    path = write_error_log(session, tmp_path / "exports", now)

    assert path.name == "gedcom-import-errors_bob_1_ff_20240305T140709Z.csv"
    assert path.read_text(encoding="utf-8").splitlines() == ["phase,reference,reason", "parsing,line 2,missing tag"]
