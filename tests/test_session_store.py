# tests/test_session_store.py

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import pytest

from gedcom_import.config import GIConfig
from gedcom_import.errors import (
    ExpiredSessionError,
    InvalidStateError,
    SessionNotFoundError,
    ValidationError,
)
from gedcom_import.models import (
    ImportAsNew,
    MatchCandidate,
    Merge,
    ParsedIndividual,
    ParsedRelationship,
    ResolutionDecision,
    SessionStatus,
    Skip,
)
from gedcom_import.session import (
    InMemorySessionStore,
    JsonFileSessionStore,
    can_transition,
    generate_upload_id,
    transition,
)

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _parsed_session(store):
    session = store.create("family.ged", b"0 HEAD\n")
    session.parsed_individuals = [
        ParsedIndividual("@I1@", "John", "Smith", birth_date="1900-01-01"),
        ParsedIndividual("@I2@", "Mary", "Jones"),
    ]
    session.parsed_relationships = [ParsedRelationship("@I1@", "@I2@", "spouse")]
    session.candidates = {
        "@I1@": MatchCandidate("@I1@", 42, 100, {"name": 100, "birthDate": 100}),
    }
    transition(session, SessionStatus.PARSING)
    transition(session, SessionStatus.PARSED)
    store.save(session)
    return session


def test_upload_id_format() -> None:
    assert re.fullmatch(r"alice_\d{13}_[0-9a-f]{16}", generate_upload_id("alice"))
    assert generate_upload_id() != generate_upload_id()


def test_create_and_get() -> None:
    store = InMemorySessionStore()
    session = store.create("family.ged", b"0 HEAD\n")

    assert session.status == SessionStatus.UPLOADED
    assert store.get(session.upload_id) is session
    assert store.get("nobody_0_00") is None
    with pytest.raises(SessionNotFoundError):
        store.require("nobody_0_00")


def test_status_machine_rejects_skips() -> None:
    assert can_transition(SessionStatus.PARSED, SessionStatus.RESOLVED)
    assert not can_transition(SessionStatus.UPLOADED, SessionStatus.COMMITTED)
    assert not can_transition(SessionStatus.COMMITTED, SessionStatus.FAILED)

    store = InMemorySessionStore()
    session = store.create("a.ged", b"")
    with pytest.raises(InvalidStateError):
        transition(session, SessionStatus.COMMITTED)


def test_record_decisions_moves_to_awaiting_resolution() -> None:
    store = InMemorySessionStore()
    session = _parsed_session(store)

    store.record_decisions(
        session.upload_id,
        [{"sourceId": "@I1@", "resolution": "merge", "targetPersonId": 42}],
    )

    assert session.status == SessionStatus.AWAITING_RESOLUTION
    assert session.decisions["@I1@"] == ResolutionDecision("@I1@", Merge(42))
    assert session.undecided_source_ids() == []


def test_record_decisions_is_idempotent() -> None:
    store = InMemorySessionStore()
    session = _parsed_session(store)
    batch = [
        {"sourceId": "@I1@", "resolution": "skip"},
        {"sourceId": "@I2@", "resolution": "import_as_new"},
    ]

    store.record_decisions(session.upload_id, batch)
    first = (dict(session.decisions), session.status, session.updated_at)
    store.record_decisions(session.upload_id, batch)

    assert (dict(session.decisions), session.status, session.updated_at) == first


@pytest.mark.parametrize(
    "decision, fragment",
    [
        ({"sourceId": "@I1@", "resolution": "merge", "targetPersonId": 7}, "does not match candidate 42"),
        ({"sourceId": "@I2@", "resolution": "merge", "targetPersonId": 42}, "no duplicate candidate"),
        ({"sourceId": "@I9@", "resolution": "skip"}, "not an individual"),
        ({"sourceId": "@I1@", "resolution": "merge"}, "requires targetPersonId"),
        ({"sourceId": "@I1@", "resolution": "skip", "targetPersonId": 42}, "only valid for merge"),
        ({"sourceId": "@I1@", "resolution": "delete"}, "unknown resolution"),
    ],
)
def test_invalid_decision_names_source_and_leaves_session_unchanged(decision, fragment) -> None:
    store = InMemorySessionStore()
    session = _parsed_session(store)
    good = {"sourceId": "@I2@", "resolution": "import_as_new"}

    with pytest.raises(ValidationError) as excinfo:
        store.record_decisions(session.upload_id, [good, decision])

    assert excinfo.value.source_id == decision["sourceId"]
    assert fragment in str(excinfo.value)
    assert session.decisions == {}
    assert session.status == SessionStatus.PARSED


def test_conflicting_decisions_in_one_batch_are_rejected() -> None:
    store = InMemorySessionStore()
    session = _parsed_session(store)
    with pytest.raises(ValidationError, match="conflicting"):
        store.record_decisions(
            session.upload_id,
            [ResolutionDecision("@I2@", Skip()), ResolutionDecision("@I2@", ImportAsNew())],
        )


def test_decisions_rejected_outside_review_statuses() -> None:
    store = InMemorySessionStore()
    session = store.create("a.ged", b"")
    with pytest.raises(ValidationError):
        store.record_decisions(session.upload_id, [])


def test_effective_decision_defaults_to_import_as_new_without_candidate() -> None:
    store = InMemorySessionStore()
    session = _parsed_session(store)
    assert session.effective_decision("@I2@").kind == "import_as_new"
    assert session.effective_decision("@I1@") is None


def test_eviction_marks_uncommitted_sessions_expired() -> None:
    clock = Clock()
    store = InMemorySessionStore(retention_seconds=60, clock=clock)
    stale = store.create("old.ged", b"")
    clock.now = T0 + timedelta(seconds=30)
    fresh = store.create("new.ged", b"")

    clock.now = T0 + timedelta(seconds=61)
    assert store.evict_expired() == [stale.upload_id]

    with pytest.raises(ExpiredSessionError, match="expired"):
        store.get(stale.upload_id)
    assert store.get(fresh.upload_id) is fresh


def test_expiry_is_also_detected_lazily_on_access() -> None:
    clock = Clock()
    store = InMemorySessionStore(retention_seconds=10, clock=clock)
    session = store.create("a.ged", b"")
    clock.now = T0 + timedelta(seconds=11)

    with pytest.raises(ExpiredSessionError):
        store.require(session.upload_id)
    with pytest.raises(ExpiredSessionError):
        store.get(session.upload_id)


def test_committed_sessions_are_removed_not_tombstoned() -> None:
    clock = Clock()
    store = InMemorySessionStore(retention_seconds=10, clock=clock)
    session = store.create("a.ged", b"")
    session.status = SessionStatus.COMMITTED
    clock.now = T0 + timedelta(seconds=11)

    assert store.get(session.upload_id) is session
    assert store.evict_expired() == []
    assert store.get(session.upload_id) is None


def test_cancel_flag_is_synced_on_save() -> None:
    store = InMemorySessionStore()
    session = store.create("a.ged", b"")
    store.request_cancel(session.upload_id)
    store.save(session)
    assert session.cancel_requested
    store.clear_cancel(session.upload_id)
    assert not store.cancel_requested(session.upload_id)


def test_json_file_store_round_trip(tmp_path) -> None:
    store = JsonFileSessionStore(tmp_path)
    session = _parsed_session(store)
    store.record_decisions(session.upload_id, [{"sourceId": "@I1@", "resolution": "merge", "targetPersonId": 42}])

    reloaded = JsonFileSessionStore(tmp_path).require(session.upload_id)

    assert reloaded.status == SessionStatus.AWAITING_RESOLUTION
    assert reloaded.raw_bytes == b"0 HEAD\n"
    assert reloaded.parsed_individuals == session.parsed_individuals
    assert reloaded.parsed_relationships == session.parsed_relationships
    assert reloaded.candidates["@I1@"].confidence == 100
    assert reloaded.decisions["@I1@"].resolution == Merge(42)


def test_json_file_store_tombstones_survive_restart(tmp_path) -> None:
    clock = Clock()
    store = JsonFileSessionStore(tmp_path, retention_seconds=5, clock=clock)
    session = store.create("a.ged", b"")
    clock.now = T0 + timedelta(seconds=6)
    store.evict_expired()

    with pytest.raises(ExpiredSessionError):
        JsonFileSessionStore(tmp_path).get(session.upload_id)


def test_json_file_store_rejects_path_like_ids(tmp_path) -> None:
    with pytest.raises(ValidationError):
        JsonFileSessionStore(tmp_path).get("../etc/passwd")


def test_json_file_store_from_config(tmp_path) -> None:
    cfg = GIConfig({"paths": {"sessions_dir": str(tmp_path / "sessions")}, "session": {"retention_seconds": 30}})
    store = JsonFileSessionStore.from_config(cfg)
    assert store.directory == tmp_path / "sessions"
    assert store.retention == timedelta(seconds=30)
