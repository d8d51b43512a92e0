"""
Append-only error log of an import session, and its CSV export.

CSV layout (stable column order):

    phase,reference,reason
"""

from __future__ import annotations

import csv
import io
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Union

from gedcom_import.models import ErrorEntry, ImportSession, ParseError, Severity, utcnow

CSV_HEADER = ("phase", "reference", "reason")
FILENAME_PREFIX = "gedcom-import-errors"


class ErrorLog:
    """
    Thin append-only view over ``session.errors``.

    Entries are never edited or removed; export order is occurrence order.
    """

    def __init__(self, session: ImportSession):
        self.session = session

    def __len__(self) -> int:
        return len(self.session.errors)

    def __iter__(self):
        return iter(list(self.session.errors))

    @property
    def entries(self) -> List[ErrorEntry]:
        return list(self.session.errors)

    def append(self, phase: str, reference: Union[str, int, None], reason: str, severity: Severity = "error") -> ErrorEntry:
        entry = ErrorEntry(
            phase=phase,
            reference="" if reference is None else str(reference),
            reason=reason,
            severity=severity,
            timestamp=utcnow().isoformat(),
        )
        self.session.errors.append(entry)
        return entry

    def extend_from_parse(self, errors: Iterable[ParseError], phase: str = "parsing") -> int:
        count = 0
        for err in errors:
            self.append(phase, f"line {err.lineno}", err.reason, err.severity)
            count += 1
        return count

    def errors_only(self) -> List[ErrorEntry]:
        return [e for e in self.session.errors if e.severity == "error"]

    def warnings_only(self) -> List[ErrorEntry]:
        return [e for e in self.session.errors if e.severity == "warning"]


def error_log_csv(entries: Iterable[ErrorEntry]) -> str:
    """Render entries as CSV text: header plus one row per entry, in order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for entry in entries:
        writer.writerow([entry.phase, entry.reference, entry.reason])
    return buffer.getvalue()


def error_log_filename(upload_id: str, now: Optional[datetime] = None) -> str:
    """``gedcom-import-errors_<upload_id>_<YYYYMMDDTHHMMSSZ>.csv`` in UTC."""
    now = now or utcnow()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    stamp = now.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"{FILENAME_PREFIX}_{upload_id}_{stamp}.csv"


def write_error_log(session: ImportSession, directory: Union[str, Path], now: Optional[datetime] = None) -> Path:
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / error_log_filename(session.upload_id, now)
    path.write_text(error_log_csv(session.errors), encoding="utf-8")
    return path
