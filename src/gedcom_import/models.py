"""
Core value types for the import pipeline.

Parsed records are frozen: once the parser hands them over nothing downstream
may change them. The session and its progress are the only mutable pieces,
and only the component owning the current phase mutates them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Literal, Mapping, Optional, Tuple, Union

from gedcom_import.errors import ValidationError

PersonId = int

RelationshipType = Literal["parentOf", "spouse"]
ParentRole = Literal["mother", "father"]
Severity = Literal["error", "warning"]

RELATIONSHIP_TYPES = ("parentOf", "spouse")
PARENT_ROLES = ("mother", "father")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Parser output
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ParsedIndividual:
    source_id: str
    first_name: str = ""
    last_name: str = ""
    birth_date: Optional[str] = None
    death_date: Optional[str] = None
    gender: Optional[str] = None
    birth_place: Optional[str] = None
    death_place: Optional[str] = None
    lineno: int = 0
    parent_family: Optional[str] = None
    spouse_families: Tuple[str, ...] = ()
    # field name -> GEDCOM qualifier (ABT, BEF, ...) stripped from the date
    date_modifiers: Tuple[Tuple[str, str], ...] = ()

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True, slots=True)
class ParsedRelationship:
    """
    A pairwise link synthesized from a FAM block.

    For ``parentOf`` the parent is ``source_id1`` and the child ``source_id2``.
    """
    source_id1: str
    source_id2: str
    type: RelationshipType
    parent_role: Optional[ParentRole] = None
    family_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.source_id1 == self.source_id2:
            raise ValueError(f"Relationship endpoints must differ (both {self.source_id1!r})")
        if self.type not in RELATIONSHIP_TYPES:
            raise ValueError(f"Unknown relationship type {self.type!r}")
        if self.type == "parentOf" and self.parent_role not in PARENT_ROLES:
            raise ValueError("parentOf relationships require parent_role 'mother' or 'father'")
        if self.type == "spouse" and self.parent_role is not None:
            raise ValueError("spouse relationships carry no parent_role")

    @property
    def key(self) -> Tuple[str, str, str, Optional[str]]:
        return (self.source_id1, self.source_id2, self.type, self.parent_role)


@dataclass(frozen=True, slots=True)
class ParseError:
    """A recoverable problem with one input line."""
    lineno: int
    raw_line: str
    reason: str
    severity: Severity = "error"
    # level as read from the line; None when the level itself was unreadable
    level: Optional[int] = None


@dataclass(slots=True)
class ParseResult:
    individuals: List[ParsedIndividual] = field(default_factory=list)
    relationships: List[ParsedRelationship] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)
    version: Optional[str] = None
    # version, date and orphaned-reference notices; malformed lines stay in errors
    warnings: List[ParseError] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class MatchCandidate:
    source_id: str
    existing_person_id: PersonId
    confidence: int
    match_details: Dict[str, int] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Resolution decisions (closed variant)
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Merge:
    target_person_id: PersonId
    kind: ClassVar[str] = "merge"


@dataclass(frozen=True, slots=True)
class ImportAsNew:
    kind: ClassVar[str] = "import_as_new"


@dataclass(frozen=True, slots=True)
class Skip:
    kind: ClassVar[str] = "skip"


Resolution = Union[Merge, ImportAsNew, Skip]
RESOLUTION_KINDS = ("merge", "import_as_new", "skip")


@dataclass(frozen=True, slots=True)
class ResolutionDecision:
    source_id: str
    resolution: Resolution

    @property
    def kind(self) -> str:
        return self.resolution.kind

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"sourceId": self.source_id, "resolution": self.kind}
        if isinstance(self.resolution, Merge):
            payload["targetPersonId"] = self.resolution.target_person_id
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ResolutionDecision":
        """
        Build a decision from a loose payload (JSON body, decisions file).

        Accepts camelCase or snake_case keys. Raises ValidationError naming the
        source id when the shape is invalid.
        """
        source_id = payload.get("sourceId", payload.get("source_id"))
        if not source_id or not isinstance(source_id, str):
            raise ValidationError("Decision is missing a sourceId")

        kind = payload.get("resolution")
        target = payload.get("targetPersonId", payload.get("target_person_id"))

        if kind == "merge":
            if target is None or isinstance(target, bool):
                raise ValidationError(f"{source_id}: merge requires targetPersonId", source_id=source_id)
            try:
                target_id = int(target)
            except (TypeError, ValueError):
                raise ValidationError(
                    f"{source_id}: targetPersonId {target!r} is not a person id", source_id=source_id
                ) from None
            return cls(source_id, Merge(target_id))

        if kind in ("import_as_new", "skip"):
            if target is not None:
                raise ValidationError(
                    f"{source_id}: targetPersonId is only valid for merge", source_id=source_id
                )
            return cls(source_id, ImportAsNew() if kind == "import_as_new" else Skip())

        raise ValidationError(
            f"{source_id}: unknown resolution {kind!r} (expected one of {', '.join(RESOLUTION_KINDS)})",
            source_id=source_id,
        )


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class SessionStatus:
    UPLOADED = "uploaded"
    PARSING = "parsing"
    PARSED = "parsed"
    AWAITING_RESOLUTION = "awaiting_resolution"
    RESOLVED = "resolved"
    COMMITTED = "committed"
    FAILED = "failed"

    TERMINAL = frozenset({COMMITTED, FAILED})


@dataclass(slots=True)
class Progress:
    phase: str = SessionStatus.UPLOADED
    percentage: int = 0
    estimated_remaining: Optional[float] = None
    updated_at: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ErrorEntry:
    phase: str
    reference: str
    reason: str
    severity: Severity = "error"
    timestamp: str = ""


@dataclass(slots=True)
class ImportSummary:
    persons_added: int = 0
    persons_updated: int = 0
    persons_skipped: int = 0
    relationships_created: int = 0
    duration_millis: int = 0
    relationships_skipped: int = 0
    partial: bool = False


@dataclass(slots=True)
class ImportSession:
    upload_id: str
    status: str = SessionStatus.UPLOADED
    file_name: str = "upload.ged"
    raw_bytes: Optional[bytes] = None
    gedcom_version: Optional[str] = None
    parsed_individuals: List[ParsedIndividual] = field(default_factory=list)
    parsed_relationships: List[ParsedRelationship] = field(default_factory=list)
    candidates: Dict[str, MatchCandidate] = field(default_factory=dict)
    decisions: Dict[str, ResolutionDecision] = field(default_factory=dict)
    errors: List[ErrorEntry] = field(default_factory=list)
    progress: Progress = field(default_factory=Progress)
    summary: Optional[ImportSummary] = None
    cancel_requested: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in SessionStatus.TERMINAL

    def individual(self, source_id: str) -> Optional[ParsedIndividual]:
        for ind in self.parsed_individuals:
            if ind.source_id == source_id:
                return ind
        return None

    def undecided_source_ids(self) -> List[str]:
        """Source ids that have a candidate but no explicit decision, in parse order."""
        return [
            ind.source_id
            for ind in self.parsed_individuals
            if ind.source_id in self.candidates and ind.source_id not in self.decisions
        ]

    def effective_decision(self, source_id: str) -> Optional[ResolutionDecision]:
        """Explicit decision, or the import_as_new default when no candidate exists."""
        decision = self.decisions.get(source_id)
        if decision is not None:
            return decision
        if source_id not in self.candidates:
            return ResolutionDecision(source_id, ImportAsNew())
        return None


# ---------------------------------------------------------------------------
# Storage-side view
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class StoredPerson:
    person_id: PersonId
    first_name: str = ""
    last_name: str = ""
    birth_date: Optional[str] = None
    death_date: Optional[str] = None
    birth_place: Optional[str] = None
    death_place: Optional[str] = None
    gender: Optional[str] = None
    parent_ids: frozenset = frozenset()

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
