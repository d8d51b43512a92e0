"""
Process-wide keyed store of import sessions.

Lifecycle
---------
* created on upload (``create``)
* mutated only while its per-session lock is held (single writer per id)
* evicted when not committed within the retention window; an evicted id is
  remembered so later access reports "upload expired" rather than "not found"
"""

from __future__ import annotations

import json
import os
import secrets
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Union

from gedcom_import.errors import ExpiredSessionError, SessionNotFoundError, ValidationError
from gedcom_import.logging import get_logger
from gedcom_import.models import (
    ImportSession,
    Merge,
    ResolutionDecision,
    SessionStatus,
    utcnow,
)

from gedcom_import.utils import resolve_project_path

from .serialization import session_from_dict, session_to_dict
from .state import DECISION_STATUSES, transition

log = get_logger("session_store")

DEFAULT_RETENTION_SECONDS = 24 * 60 * 60

DecisionInput = Union[ResolutionDecision, Mapping]


def generate_upload_id(owner: str = "local") -> str:
    """Opaque id: ``{owner}_{epoch_millis}_{random_hex}``."""
    return f"{owner}_{int(time.time() * 1000)}_{secrets.token_hex(8)}"


class SessionStore(ABC):
    """
    Base class holding the lifecycle rules; subclasses provide persistence
    through ``_load``, ``_write``, ``_delete``, ``_ids`` and tombstones.
    """

    def __init__(
        self,
        retention_seconds: int = DEFAULT_RETENTION_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.retention = timedelta(seconds=retention_seconds)
        self.clock = clock
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._cancel_requests: Set[str] = set()

    # ------------------------------------------------------------------ #
    # Persistence hooks
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _load(self, upload_id: str) -> Optional[ImportSession]:
        ...

    @abstractmethod
    def _write(self, session: ImportSession) -> None:
        ...

    @abstractmethod
    def _delete(self, upload_id: str) -> None:
        ...

    @abstractmethod
    def _ids(self) -> List[str]:
        ...

    @abstractmethod
    def _add_tombstone(self, upload_id: str) -> None:
        ...

    @abstractmethod
    def _is_tombstoned(self, upload_id: str) -> bool:
        ...

    # ------------------------------------------------------------------ #
    # Locking and cancellation
    # ------------------------------------------------------------------ #

    def lock(self, upload_id: str) -> threading.RLock:
        """Per-session re-entrant lock; different ids never contend."""
        with self._locks_guard:
            lock = self._locks.get(upload_id)
            if lock is None:
                lock = self._locks[upload_id] = threading.RLock()
            return lock

    def request_cancel(self, upload_id: str) -> None:
        """Flag an in-flight operation for cancellation. Does not take the session lock."""
        self.require(upload_id)
        with self._locks_guard:
            self._cancel_requests.add(upload_id)
        log.info("Cancellation requested for %s", upload_id)

    def cancel_requested(self, upload_id: str) -> bool:
        with self._locks_guard:
            return upload_id in self._cancel_requests

    def clear_cancel(self, upload_id: str) -> None:
        with self._locks_guard:
            self._cancel_requests.discard(upload_id)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def create(self, file_name: str, raw_bytes: bytes, owner: str = "local") -> ImportSession:
        now = self.clock()
        session = ImportSession(
            upload_id=generate_upload_id(owner),
            file_name=file_name,
            raw_bytes=bytes(raw_bytes),
            created_at=now,
            updated_at=now,
        )
        session.progress.updated_at = now.isoformat()
        self._write(session)
        log.info("Created session %s for %s (%d bytes)", session.upload_id, file_name, len(raw_bytes))
        return session

    def get(self, upload_id: str) -> Optional[ImportSession]:
        """
        Return the session, or None if the id was never issued.

        Raises:
            ExpiredSessionError: the session was evicted (or is now past the
            retention window) before being committed.
        """
        if self._is_tombstoned(upload_id):
            raise ExpiredSessionError(upload_id)
        session = self._load(upload_id)
        if session is None:
            return None
        if self._expired(session):
            self._evict(session)
            raise ExpiredSessionError(upload_id)
        return session

    def require(self, upload_id: str) -> ImportSession:
        session = self.get(upload_id)
        if session is None:
            raise SessionNotFoundError(upload_id)
        return session

    def save(self, session: ImportSession) -> None:
        if self._is_tombstoned(session.upload_id):
            raise ExpiredSessionError(session.upload_id)
        session.cancel_requested = self.cancel_requested(session.upload_id)
        self._write(session)

    def record_decisions(self, upload_id: str, decisions: Iterable[DecisionInput]) -> ImportSession:
        """
        Validate and store operator decisions.

        The whole batch is validated before anything is applied: one invalid
        decision raises ValidationError naming its source id and the session
        is left exactly as it was. Re-submitting the same batch is a no-op.
        """
        with self.lock(upload_id):
            session = self.require(upload_id)
            if session.status not in DECISION_STATUSES:
                raise ValidationError(
                    f"Upload {upload_id!r} does not accept decisions in status {session.status}"
                )

            batch = validate_decisions(session, decisions)

            changed = any(session.decisions.get(sid) != d for sid, d in batch.items())
            if not changed and session.status == SessionStatus.AWAITING_RESOLUTION:
                return session

            session.decisions.update(batch)
            transition(session, SessionStatus.AWAITING_RESOLUTION)
            self.save(session)
            log.info(
                "Recorded %d decision(s) for %s; %d still undecided",
                len(batch),
                upload_id,
                len(session.undecided_source_ids()),
            )
            return session

    def delete(self, upload_id: str) -> None:
        with self.lock(upload_id):
            self._delete(upload_id)
            self.clear_cancel(upload_id)
        with self._locks_guard:
            self._locks.pop(upload_id, None)

    def evict_expired(self, now: Optional[datetime] = None) -> List[str]:
        """
        Evict sessions older than the retention window.

        Uncommitted ones become tombstones ("upload expired"); committed ones
        are simply removed. Returns the ids of evicted uncommitted sessions.
        """
        now = now or self.clock()
        expired: List[str] = []
        for upload_id in self._ids():
            session = self._load(upload_id)
            if session is None or now - session.created_at <= self.retention:
                continue
            if session.status == SessionStatus.COMMITTED:
                self.delete(upload_id)
                continue
            self._evict(session)
            expired.append(upload_id)
        return expired

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _expired(self, session: ImportSession) -> bool:
        return (
            session.status != SessionStatus.COMMITTED
            and self.clock() - session.created_at > self.retention
        )

    def _evict(self, session: ImportSession) -> None:
        log.warning(
            "Session %s expired in status %s (created %s)",
            session.upload_id,
            session.status,
            session.created_at.isoformat(),
        )
        self._add_tombstone(session.upload_id)
        self._delete(session.upload_id)
        self.clear_cancel(session.upload_id)


def validate_decisions(session: ImportSession, decisions: Iterable[DecisionInput]) -> Dict[str, ResolutionDecision]:
    """
    Check every decision against the session; return them keyed by source id.

    Raises ValidationError for the first offending decision.
    """
    known = {ind.source_id for ind in session.parsed_individuals}
    batch: Dict[str, ResolutionDecision] = {}

    for item in decisions:
        decision = item if isinstance(item, ResolutionDecision) else ResolutionDecision.from_dict(item)
        sid = decision.source_id

        if sid not in known:
            raise ValidationError(f"{sid}: not an individual in upload {session.upload_id!r}", source_id=sid)

        if isinstance(decision.resolution, Merge):
            candidate = session.candidates.get(sid)
            if candidate is None:
                raise ValidationError(f"{sid}: merge requested but no duplicate candidate exists", source_id=sid)
            if decision.resolution.target_person_id != candidate.existing_person_id:
                raise ValidationError(
                    f"{sid}: merge target {decision.resolution.target_person_id} does not match "
                    f"candidate {candidate.existing_person_id}",
                    source_id=sid,
                )

        previous = batch.get(sid)
        if previous is not None and previous != decision:
            raise ValidationError(f"{sid}: conflicting decisions in one request", source_id=sid)
        batch[sid] = decision

    return batch


class InMemorySessionStore(SessionStore):
    """Sessions held in this process; suitable for tests and single-process runs."""

    def __init__(self, retention_seconds: int = DEFAULT_RETENTION_SECONDS, clock: Callable[[], datetime] = utcnow):
        super().__init__(retention_seconds, clock)
        self._sessions: Dict[str, ImportSession] = {}
        self._tombstones: Set[str] = set()

    def _load(self, upload_id: str) -> Optional[ImportSession]:
        return self._sessions.get(upload_id)

    def _write(self, session: ImportSession) -> None:
        self._sessions[session.upload_id] = session

    def _delete(self, upload_id: str) -> None:
        self._sessions.pop(upload_id, None)

    def _ids(self) -> List[str]:
        return list(self._sessions)

    def _add_tombstone(self, upload_id: str) -> None:
        self._tombstones.add(upload_id)

    def _is_tombstoned(self, upload_id: str) -> bool:
        return upload_id in self._tombstones


class JsonFileSessionStore(SessionStore):
    """
    One JSON document per session under ``directory``; tombstones are empty
    ``<id>.expired`` marker files. Survives process restarts.
    """

    def __init__(
        self,
        directory: Union[str, Path],
        retention_seconds: int = DEFAULT_RETENTION_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__(retention_seconds, clock)
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_config(cls, cfg) -> "JsonFileSessionStore":
        directory = resolve_project_path(cfg.paths.get("sessions_dir", "outputs/sessions"))
        return cls(directory, retention_seconds=cfg.retention_seconds)

    def _path(self, upload_id: str, suffix: str = ".json") -> Path:
        safe = "".join(ch for ch in upload_id if ch.isalnum() or ch in "_-")
        if safe != upload_id or not safe:
            raise ValidationError(f"Invalid upload id {upload_id!r}")
        return self.directory / f"{safe}{suffix}"

    def _load(self, upload_id: str) -> Optional[ImportSession]:
        path = self._path(upload_id)
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as f:
            return session_from_dict(json.load(f))

    def _write(self, session: ImportSession) -> None:
        path = self._path(session.upload_id)
        tmp = path.with_suffix(".json.tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(session_to_dict(session), f, ensure_ascii=False)
        os.replace(tmp, path)

    def _delete(self, upload_id: str) -> None:
        self._path(upload_id).unlink(missing_ok=True)

    def _ids(self) -> List[str]:
        return sorted(p.stem for p in self.directory.glob("*.json"))

    def _add_tombstone(self, upload_id: str) -> None:
        self._path(upload_id, ".expired").touch()

    def _is_tombstoned(self, upload_id: str) -> bool:
        return self._path(upload_id, ".expired").exists()
