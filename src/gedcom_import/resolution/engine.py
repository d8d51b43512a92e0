"""
Resolution engine: applies operator decisions and writes the tree.

A commit is all-or-nothing. Every write happens inside one tree-store
transaction taken under the store's write lock; a storage failure or a
cancellation rolls the transaction back and leaves the session ``failed``.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from gedcom_import.dates import MODIFIER_NOTES
from gedcom_import.errors import (
    DuplicateRelationshipError,
    ImportCancelledError,
    InvalidStateError,
    StorageError,
    ValidationError,
)
from gedcom_import.logging import get_logger
from gedcom_import.models import (
    ImportAsNew,
    ImportSession,
    ImportSummary,
    Merge,
    ParsedIndividual,
    ParsedRelationship,
    PersonId,
    ResolutionDecision,
    SessionStatus,
    Skip,
    StoredPerson,
)
from gedcom_import.progress import PHASE_COMMIT, ErrorLog, ProgressReporter
from gedcom_import.session import COMMIT_STATUSES, SessionStore, transition
from gedcom_import.storage import TreeStore

log = get_logger("resolution_engine")

# Person fields copied from a parsed individual. ``notes`` is derived separately.
BACKFILL_FIELDS = (
    "first_name",
    "last_name",
    "birth_date",
    "death_date",
    "birth_place",
    "death_place",
    "gender",
)

# Session statuses that can be failed right away by cancel() when no commit runs.
IDLE_STATUSES = frozenset({SessionStatus.UPLOADED, SessionStatus.PARSED, SessionStatus.AWAITING_RESOLUTION})


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def append_modifier_note(notes: Optional[str], modifier: Optional[str]) -> Optional[str]:
    """
    Append the human-readable note for a date qualifier (ABT, BEF, ...).

    >>> append_modifier_note("Veteran", "ABT")
    'Veteran\\n(Date approximate)'
    """
    text = MODIFIER_NOTES.get(modifier or "")
    if not text:
        return notes
    if _is_empty(notes):
        return text
    return f"{notes}\n{text}"


def person_fields(individual: ParsedIndividual) -> Dict[str, Any]:
    """
    PURE FUNCTION

    Store fields for a new person built from a parsed individual. Date
    qualifiers become notes so the information is not lost.
    """
    fields: Dict[str, Any] = {
        "first_name": individual.first_name,
        "last_name": individual.last_name,
        "birth_date": individual.birth_date,
        "death_date": individual.death_date,
        "birth_place": individual.birth_place,
        "death_place": individual.death_place,
        "gender": individual.gender,
    }
    notes = None
    for _field, modifier in individual.date_modifiers:
        notes = append_modifier_note(notes, modifier)
    if notes:
        fields["notes"] = notes
    return fields


def backfill_fields(individual: ParsedIndividual, existing: StoredPerson) -> Dict[str, Any]:
    """
    PURE FUNCTION

    Fields to write on merge: only those empty on the stored person and
    present on the parsed one. Non-empty stored values are never touched.
    """
    updates: Dict[str, Any] = {}
    for name in BACKFILL_FIELDS:
        incoming = getattr(individual, name)
        if _is_empty(incoming):
            continue
        if _is_empty(getattr(existing, name)):
            updates[name] = incoming
    return updates


def uncovered_source_ids(session: ImportSession) -> List[str]:
    """Individuals with a candidate but no decision, in parse order."""
    return session.undecided_source_ids()


class ResolutionEngine:
    """
    Commits a resolved session into a ``TreeStore``.

    Usage:
        engine = ResolutionEngine(tree_store, session_store)
        summary = engine.commit(upload_id)
    """

    def __init__(
        self,
        tree_store: TreeStore,
        session_store: SessionStore,
        batch_size: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.tree = tree_store
        self.sessions = session_store
        self.batch_size = max(1, batch_size)
        self.clock = clock

    @classmethod
    def from_config(cls, tree_store: TreeStore, session_store: SessionStore, cfg) -> "ResolutionEngine":
        return cls(tree_store, session_store, batch_size=cfg.batch_size)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def commit(self, upload_id: str) -> ImportSummary:
        with self.sessions.lock(upload_id):
            session = self.sessions.require(upload_id)
            self._check_committable(session)

            if session.status != SessionStatus.RESOLVED:
                transition(session, SessionStatus.RESOLVED)

            reporter = ProgressReporter(session, self.batch_size, self.clock)
            errors = ErrorLog(session)
            summary = ImportSummary()
            started = self.clock()

            total = len(session.parsed_individuals) + len(session.parsed_relationships)
            reporter.start_phase(PHASE_COMMIT, total)
            self.sessions.save(session)
            log.info(
                "Committing %s: %d individual(s), %d relationship(s)",
                upload_id,
                len(session.parsed_individuals),
                len(session.parsed_relationships),
            )

            try:
                with self.tree.write_lock:
                    with self.tree.transaction():
                        self._write(session, summary, reporter, errors)
            except ImportCancelledError:
                self._fail(session, reporter, errors, "cancelled by operator; no changes were written")
                raise
            except StorageError as exc:
                summary.partial = True
                summary.duration_millis = self._millis_since(started)
                self._fail(session, reporter, errors, f"storage failure, rolled back: {exc}")
                raise StorageError(
                    f"Commit of upload {upload_id!r} failed and was rolled back: {exc}",
                    summary=summary,
                    rolled_back=True,
                    upload_id=upload_id,
                ) from exc
            except Exception as exc:
                self._fail(session, reporter, errors, f"unexpected failure, rolled back: {exc}")
                raise

            summary.duration_millis = self._millis_since(started)
            session.summary = summary
            transition(session, SessionStatus.COMMITTED)
            reporter.finish(SessionStatus.COMMITTED)
            self.sessions.clear_cancel(upload_id)
            self.sessions.save(session)

            log.info(
                "Committed %s: %d added, %d updated, %d skipped, %d relationship(s) in %d ms",
                upload_id,
                summary.persons_added,
                summary.persons_updated,
                summary.persons_skipped,
                summary.relationships_created,
                summary.duration_millis,
            )
            return summary

    def cancel(self, upload_id: str) -> ImportSession:
        """
        Request cancellation.

        An in-flight commit sees the flag at its next batch boundary and rolls
        back. A session that is only waiting (uploaded, parsed, awaiting a
        decision) is failed right away.
        """
        session = self.sessions.require(upload_id)
        if session.status == SessionStatus.COMMITTED:
            raise InvalidStateError(
                f"Upload {upload_id!r} is already committed and cannot be cancelled",
                upload_id=upload_id,
                status=session.status,
            )
        if session.status == SessionStatus.FAILED:
            return session

        self.sessions.request_cancel(upload_id)

        lock = self.sessions.lock(upload_id)
        if not lock.acquire(blocking=False):
            return session
        try:
            session = self.sessions.require(upload_id)
            if session.status in IDLE_STATUSES:
                reporter = ProgressReporter(session, self.batch_size, self.clock)
                self._fail(session, reporter, ErrorLog(session), "cancelled by operator")
            return session
        finally:
            lock.release()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _check_committable(self, session: ImportSession) -> None:
        if session.status == SessionStatus.COMMITTED:
            raise InvalidStateError(
                f"Upload {session.upload_id!r} is already committed",
                upload_id=session.upload_id,
                status=session.status,
            )
        if session.status not in COMMIT_STATUSES:
            raise InvalidStateError(
                f"Upload {session.upload_id!r} cannot be committed in status {session.status}",
                upload_id=session.upload_id,
                status=session.status,
            )
        missing = uncovered_source_ids(session)
        if missing:
            raise ValidationError(
                f"Upload {session.upload_id!r} has {len(missing)} duplicate candidate(s) "
                f"without a decision: {', '.join(missing)}",
                source_ids=missing,
            )

    def _check_cancel(self, session: ImportSession) -> None:
        if self.sessions.cancel_requested(session.upload_id):
            log.warning("Commit of %s cancelled at a batch boundary", session.upload_id)
            raise ImportCancelledError(session.upload_id, rolled_back=True)

    def _write(
        self,
        session: ImportSession,
        summary: ImportSummary,
        reporter: ProgressReporter,
        errors: ErrorLog,
    ) -> None:
        self._check_cancel(session)
        mapping: Dict[str, PersonId] = {}
        done = 0

        for individual in session.parsed_individuals:
            decision = session.effective_decision(individual.source_id)
            person_id = self._apply(individual, decision, summary)
            if person_id is not None:
                mapping[individual.source_id] = person_id
            done += 1
            if reporter.advance(done):
                self._check_cancel(session)

        for relationship in session.parsed_relationships:
            self._link(relationship, mapping, summary, errors)
            done += 1
            if reporter.advance(done):
                self._check_cancel(session)

        self._check_cancel(session)

    def _apply(
        self,
        individual: ParsedIndividual,
        decision: Optional[ResolutionDecision],
        summary: ImportSummary,
    ) -> Optional[PersonId]:
        resolution = decision.resolution if decision is not None else ImportAsNew()

        if isinstance(resolution, Skip):
            summary.persons_skipped += 1
            return None

        if isinstance(resolution, Merge):
            target = resolution.target_person_id
            existing = self.tree.get_individual(target)
            if existing is None:
                raise StorageError(f"{individual.source_id}: merge target {target} no longer exists")
            updates = backfill_fields(individual, existing)
            if updates:
                self.tree.update_individual_fields(target, updates)
            summary.persons_updated += 1
            return target

        person_id = self.tree.create_individual(person_fields(individual))
        summary.persons_added += 1
        return person_id

    def _link(
        self,
        relationship: ParsedRelationship,
        mapping: Dict[str, PersonId],
        summary: ImportSummary,
        errors: ErrorLog,
    ) -> None:
        p1 = mapping.get(relationship.source_id1)
        p2 = mapping.get(relationship.source_id2)
        reference = f"{relationship.source_id1}->{relationship.source_id2}"

        if p1 is None or p2 is None:
            missing = [sid for sid, pid in ((relationship.source_id1, p1), (relationship.source_id2, p2)) if pid is None]
            errors.append(
                "commit",
                reference,
                f"{relationship.type} relationship dropped: {', '.join(missing)} not imported",
                severity="warning",
            )
            summary.relationships_skipped += 1
            return

        if p1 == p2:
            # both endpoints merged into the same stored person
            errors.append("commit", reference, "relationship dropped: endpoints resolve to one person", "warning")
            summary.relationships_skipped += 1
            return

        if self.tree.relationship_exists(p1, p2, relationship.type, relationship.parent_role):
            return
        try:
            self.tree.create_relationship(p1, p2, relationship.type, relationship.parent_role)
        except DuplicateRelationshipError:
            return
        summary.relationships_created += 1

    def _fail(self, session: ImportSession, reporter: ProgressReporter, errors: ErrorLog, reason: str) -> None:
        errors.append("commit", session.upload_id, reason)
        if session.status != SessionStatus.FAILED:
            transition(session, SessionStatus.FAILED)
        reporter.finish(SessionStatus.FAILED)
        self.sessions.clear_cancel(session.upload_id)
        self.sessions.save(session)
        log.error("Upload %s failed: %s", session.upload_id, reason)

    def _millis_since(self, started: float) -> int:
        return int((self.clock() - started) * 1000)


def summarize_decisions(decisions: Iterable[ResolutionDecision]) -> Dict[str, int]:
    counts = {"merge": 0, "import_as_new": 0, "skip": 0}
    for decision in decisions:
        counts[decision.kind] += 1
    return counts
