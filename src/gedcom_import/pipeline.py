"""
Import pipeline orchestration.

    upload -> parse (+ duplicate matching) -> preview -> record_decisions -> commit

This module only wires the components together. Parsing, matching, session
lifecycle and writing each live in their own package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from gedcom_import.config import GIConfig, get_config
from gedcom_import.errors import ImportCancelledError, ValidationError
from gedcom_import.logging import get_logger
from gedcom_import.matching import DuplicateMatcher
from gedcom_import.matching.matcher import blocking_key
from gedcom_import.models import (
    ImportSession,
    ImportSummary,
    MatchCandidate,
    ParsedIndividual,
    ParseResult,
    PersonId,
    SessionStatus,
    StoredPerson,
)
from gedcom_import.progress import (
    PHASE_MATCHING,
    PHASE_PARSING,
    ErrorLog,
    ProgressReporter,
    write_error_log,
)
from gedcom_import.records import extract_statistics, parse
from gedcom_import.resolution import ResolutionEngine
from gedcom_import.session import SessionStore, transition
from gedcom_import.storage import TreeStore
from gedcom_import.upload import sanitize_file_name
from gedcom_import.utils import resolve_project_path

log = get_logger("pipeline")

SORT_FIELDS = ("name", "birth_date", "death_date", "status", "confidence")
DEFAULT_PAGE_SIZE = 50


@dataclass
class PreviewRow:
    source_id: str
    name: str
    birth_date: Optional[str]
    death_date: Optional[str]
    gender: Optional[str]
    status: str  # "new" | "duplicate"
    candidate: Optional[MatchCandidate] = None

    def as_dict(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "sourceId": self.source_id,
            "name": self.name,
            "birthDate": self.birth_date,
            "deathDate": self.death_date,
            "gender": self.gender,
            "status": self.status,
        }
        if self.candidate is not None:
            row["existingPersonId"] = self.candidate.existing_person_id
            row["confidence"] = self.candidate.confidence
            row["matchDetails"] = dict(self.candidate.match_details)
        return row


@dataclass
class PreviewPage:
    upload_id: str
    status: str
    page: int
    page_size: int
    total: int
    rows: List[PreviewRow] = field(default_factory=list)
    statistics: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        return max(1, -(-self.total // self.page_size))


class ImportPipeline:
    """
    Facade over the session store, matcher and resolution engine.

    Usage:
        pipeline = ImportPipeline(tree_store, session_store)
        upload_id = pipeline.upload("family.ged", raw)
        pipeline.parse(upload_id)
        pipeline.record_decisions(upload_id, decisions)
        summary = pipeline.commit(upload_id)
    """

    def __init__(
        self,
        tree_store: TreeStore,
        session_store: SessionStore,
        config: Optional[GIConfig] = None,
        matcher: Optional[DuplicateMatcher] = None,
    ):
        self.config = config or get_config()
        self.tree = tree_store
        self.sessions = session_store
        self.matcher = matcher or DuplicateMatcher.from_config(self.config)
        self.engine = ResolutionEngine.from_config(tree_store, session_store, self.config)

    # ------------------------------------------------------------------ #
    # Upload and parse
    # ------------------------------------------------------------------ #

    def upload(self, file_name: str, raw_bytes: bytes, owner: str = "local") -> str:
        session = self.sessions.create(sanitize_file_name(file_name), raw_bytes, owner)
        return session.upload_id

    def parse(self, upload_id: str) -> ImportSession:
        """
        Parse the upload and look for duplicates.

        Recoverable problems land in the session's error log. Anything that
        stops the run (an undecodable file, an unreachable tree store, a
        cancellation) fails the session and is re-raised.
        """
        with self.sessions.lock(upload_id):
            session = self.sessions.require(upload_id)
            transition(session, SessionStatus.PARSING)
            reporter = ProgressReporter(session, self.config.batch_size)
            errors = ErrorLog(session)

            reporter.start_phase(PHASE_PARSING)
            self.sessions.save(session)

            phase = PHASE_PARSING
            try:
                result = parse(session.raw_bytes or b"")
                self._absorb(session, result, errors)
                reporter.checkpoint(1.0)
                self._check_cancel(session)

                phase = PHASE_MATCHING
                reporter.start_phase(PHASE_MATCHING, len(result.individuals))
                self.sessions.save(session)
                # commits hold the write lock for their whole transaction
                with self.tree.write_lock:
                    existing = self._existing_people(result.individuals)
                session.candidates = self.matcher.match_all(
                    result.individuals, existing, result.relationships
                )
                reporter.checkpoint(1.0)
                self._check_cancel(session)
            except ImportCancelledError:
                self._fail(session, reporter, errors, phase, "cancelled by operator")
                raise
            except Exception as exc:
                self._fail(session, reporter, errors, phase, str(exc))
                raise

            transition(session, SessionStatus.PARSED)
            reporter.mark(SessionStatus.PARSED)
            self.sessions.save(session)
            log.info(
                "Parsed upload %s: %d individual(s), %d candidate duplicate(s), %d issue(s)",
                upload_id,
                len(session.parsed_individuals),
                len(session.candidates),
                len(session.errors),
            )
            return session

    # ------------------------------------------------------------------ #
    # Review
    # ------------------------------------------------------------------ #

    def preview(
        self,
        upload_id: str,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        sort_by: str = "name",
        descending: bool = False,
        search: str = "",
    ) -> PreviewPage:
        if sort_by not in SORT_FIELDS:
            raise ValidationError(f"Cannot sort preview by {sort_by!r} (expected one of {', '.join(SORT_FIELDS)})")
        if page < 1 or page_size < 1:
            raise ValidationError(f"Invalid page {page} / page size {page_size}")

        with self.sessions.lock(upload_id):
            session = self.sessions.require(upload_id)
            rows = preview_rows(session)

        needle = search.strip().lower()
        if needle:
            rows = [r for r in rows if needle in r.name.lower()]

        rows.sort(key=lambda r: _sort_key(r, sort_by), reverse=descending)
        start = (page - 1) * page_size
        return PreviewPage(
            upload_id=upload_id,
            status=session.status,
            page=page,
            page_size=page_size,
            total=len(rows),
            rows=rows[start : start + page_size],
            statistics=session_statistics(session),
        )

    def record_decisions(self, upload_id: str, decisions: Iterable[Any]) -> ImportSession:
        return self.sessions.record_decisions(upload_id, decisions)

    # ------------------------------------------------------------------ #
    # Commit and housekeeping
    # ------------------------------------------------------------------ #

    def commit(self, upload_id: str) -> ImportSummary:
        return self.engine.commit(upload_id)

    def cancel(self, upload_id: str) -> ImportSession:
        return self.engine.cancel(upload_id)

    def status(self, upload_id: str) -> ImportSession:
        return self.sessions.require(upload_id)

    def export_errors(
        self,
        upload_id: str,
        directory: Union[str, Path, None] = None,
        now: Optional[datetime] = None,
    ) -> Path:
        if directory is None:
            directory = resolve_project_path(self.config.paths.get("exports_dir", "outputs/exports"))
        with self.sessions.lock(upload_id):
            session = self.sessions.require(upload_id)
            path = write_error_log(session, directory, now)
        log.info("Exported %d error entr(ies) for %s to %s", len(session.errors), upload_id, path)
        return path

    def evict_expired(self, now: Optional[datetime] = None) -> List[str]:
        expired = self.sessions.evict_expired(now)
        if expired:
            log.info("Evicted %d expired upload(s)", len(expired))
        return expired

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _absorb(self, session: ImportSession, result: ParseResult, errors: ErrorLog) -> None:
        session.parsed_individuals = list(result.individuals)
        session.parsed_relationships = list(result.relationships)
        session.gedcom_version = result.version
        session.raw_bytes = None
        issues = sorted(result.errors + result.warnings, key=lambda e: e.lineno)
        errors.extend_from_parse(issues, PHASE_PARSING)

    def _existing_people(self, individuals: List[ParsedIndividual]) -> List[StoredPerson]:
        """Stored people the matcher should see; one name lookup per surname initial when blocking."""
        if not self.matcher.blocking:
            return self.tree.all_individuals()
        pool: Dict[PersonId, StoredPerson] = {}
        looked_up = set()
        for ind in individuals:
            key = blocking_key(ind.last_name)
            if key in looked_up:
                continue
            looked_up.add(key)
            for person in self.tree.find_individuals_by_approximate_name(ind.first_name, ind.last_name):
                pool.setdefault(person.person_id, person)
        return list(pool.values())

    def _check_cancel(self, session: ImportSession) -> None:
        if self.sessions.cancel_requested(session.upload_id):
            raise ImportCancelledError(session.upload_id, rolled_back=False)

    def _fail(self, session: ImportSession, reporter: ProgressReporter, errors: ErrorLog, phase: str, reason: str) -> None:
        errors.append(phase, session.file_name, reason)
        transition(session, SessionStatus.FAILED)
        reporter.finish(SessionStatus.FAILED)
        self.sessions.clear_cancel(session.upload_id)
        self.sessions.save(session)
        log.error("Upload %s failed during %s: %s", session.upload_id, phase, reason)


# ---------------------------------------------------------------------------
# Preview helpers
# ---------------------------------------------------------------------------

def preview_rows(session: ImportSession) -> List[PreviewRow]:
    """One row per parsed individual, in parse order."""
    rows = []
    for ind in session.parsed_individuals:
        candidate = session.candidates.get(ind.source_id)
        rows.append(
            PreviewRow(
                source_id=ind.source_id,
                name=ind.display_name,
                birth_date=ind.birth_date,
                death_date=ind.death_date,
                gender=ind.gender,
                status="duplicate" if candidate is not None else "new",
                candidate=candidate,
            )
        )
    return rows


def session_statistics(session: ImportSession) -> Dict[str, Any]:
    result = ParseResult(
        individuals=session.parsed_individuals,
        relationships=session.parsed_relationships,
        version=session.gedcom_version,
    )
    stats = extract_statistics(result)
    # parse issues live in the session log once absorbed
    stats["total_errors"] = sum(1 for e in session.errors if e.severity == "error")
    stats["total_warnings"] = sum(1 for e in session.errors if e.severity == "warning")
    stats["duplicates"] = len(session.candidates)
    stats["new"] = len(session.parsed_individuals) - len(session.candidates)
    return stats


def _sort_key(row: PreviewRow, sort_by: str):
    if sort_by == "confidence":
        return (row.candidate.confidence if row.candidate else -1, row.source_id)
    if sort_by == "status":
        return (row.status, row.name.lower(), row.source_id)
    if sort_by == "name":
        return (row.name.lower(), row.source_id)
    value = getattr(row, sort_by) or ""
    # unknown dates sort last in ascending order
    return (value == "", value, row.source_id)
