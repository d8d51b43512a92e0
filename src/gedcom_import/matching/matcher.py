"""
Duplicate detection between parsed individuals and the existing tree.

Scoring
-------
Each criterion yields 0-100 or is *omitted* when either side lacks the data:

- name        100 on normalized equality, otherwise Levenshtein similarity
- birthDate   100 equal / 0 different / omitted if either is missing
- birthPlace  100 equal (normalized) / omitted otherwise
- parents     100 when every resolved parent is a recorded parent of the
              existing person / 0 otherwise / omitted if unknown on either side

Confidence is the weighted average over the criteria present, with weights
renormalized over those criteria, rounded half-up to an integer.
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from rapidfuzz.distance import Levenshtein

from gedcom_import.config import DEFAULT_WEIGHTS
from gedcom_import.logging import get_logger
from gedcom_import.models import (
    MatchCandidate,
    ParsedIndividual,
    ParsedRelationship,
    PersonId,
    StoredPerson,
)

log = get_logger("matcher")

DEFAULT_MIN_CONFIDENCE = 50
CRITERIA = ("name", "birthDate", "birthPlace", "parents")


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------

def normalize_text(value: Optional[str]) -> str:
    """Lowercase and collapse whitespace."""
    if not value:
        return ""
    return " ".join(value.lower().split())


def full_name(first: Optional[str], last: Optional[str]) -> str:
    return normalize_text(f"{first or ''} {last or ''}")


def normalize_place(value: Optional[str]) -> str:
    """Places compare case-insensitively with comma spacing ignored."""
    if not value:
        return ""
    parts = [normalize_text(p) for p in value.split(",")]
    return ",".join(p for p in parts if p)


def round_half_up(value: float) -> int:
    # Small epsilon absorbs binary error in sums like 0.4*100 + 0.3*85.
    return int(math.floor(value + 0.5 + 1e-9))


# ---------------------------------------------------------------------------
# Per-criterion scores
# ---------------------------------------------------------------------------

def compare_names(name1: str, name2: str) -> int:
    """0-100 similarity of two already-built full names."""
    n1, n2 = normalize_text(name1), normalize_text(name2)
    if not n1 or not n2:
        return 0
    if n1 == n2:
        return 100
    similarity = Levenshtein.normalized_similarity(n1, n2) * 100
    return max(0, min(100, round_half_up(similarity)))


def compare_birth_dates(date1: Optional[str], date2: Optional[str]) -> Optional[int]:
    if not date1 or not date2:
        return None
    return 100 if date1.strip() == date2.strip() else 0


def compare_birth_places(place1: Optional[str], place2: Optional[str]) -> Optional[int]:
    p1, p2 = normalize_place(place1), normalize_place(place2)
    if not p1 or not p2:
        return None
    return 100 if p1 == p2 else None


def compare_parents(parsed_parents: Set[PersonId], existing_parents: Iterable[PersonId]) -> Optional[int]:
    existing = set(existing_parents)
    if not parsed_parents or not existing:
        return None
    return 100 if parsed_parents <= existing else 0


def aggregate_confidence(details: Mapping[str, int], weights: Mapping[str, float]) -> int:
    """Weighted average over the criteria present in ``details``."""
    total_weight = sum(weights[c] for c in details)
    if total_weight <= 0:
        return 0
    score = sum(details[c] * weights[c] for c in details) / total_weight
    return max(0, min(100, round_half_up(score)))


# ---------------------------------------------------------------------------
# Matcher
# ---------------------------------------------------------------------------

def parent_source_ids(relationships: Iterable[ParsedRelationship]) -> Dict[str, Set[str]]:
    """child source id -> parent source ids, from parentOf relationships."""
    parents: Dict[str, Set[str]] = {}
    for rel in relationships:
        if rel.type == "parentOf":
            parents.setdefault(rel.source_id2, set()).add(rel.source_id1)
    return parents


def blocking_key(last_name: Optional[str]) -> str:
    """First letter of the normalized surname ('' when unknown)."""
    norm = normalize_text(last_name)
    return norm[:1]


class DuplicateMatcher:
    """
    Compare parsed individuals with stored ones.

    Matching is O(parsed x existing); with ``blocking`` enabled, only stored
    people sharing the surname initial (or without a surname) are compared.
    """

    def __init__(
        self,
        weights: Optional[Mapping[str, float]] = None,
        min_confidence: int = DEFAULT_MIN_CONFIDENCE,
        blocking: bool = False,
    ):
        self.weights = dict(DEFAULT_WEIGHTS)
        if weights:
            self.weights.update(weights)
        unknown = set(self.weights) - set(CRITERIA)
        if unknown:
            raise ValueError(f"Unknown matching criteria: {sorted(unknown)}")
        if not math.isclose(sum(self.weights.values()), 1.0, abs_tol=1e-6):
            raise ValueError(f"Matching weights must sum to 1.0, got {sum(self.weights.values())}")
        self.min_confidence = int(min_confidence)
        self.blocking = blocking

    @classmethod
    def from_config(cls, cfg) -> "DuplicateMatcher":
        return cls(weights=cfg.weights, min_confidence=cfg.min_confidence, blocking=cfg.blocking)

    # ------------------------------------------------------------------ #

    def score(
        self,
        individual: ParsedIndividual,
        existing: StoredPerson,
        parent_ids: Optional[Set[PersonId]] = None,
    ) -> MatchCandidate:
        """Score one pair; always returns a candidate (threshold not applied)."""
        details: Dict[str, int] = {
            "name": compare_names(
                full_name(individual.first_name, individual.last_name),
                full_name(existing.first_name, existing.last_name),
            )
        }

        birth = compare_birth_dates(individual.birth_date, existing.birth_date)
        if birth is not None:
            details["birthDate"] = birth

        place = compare_birth_places(individual.birth_place, existing.birth_place)
        if place is not None:
            details["birthPlace"] = place

        parents = compare_parents(parent_ids or set(), existing.parent_ids)
        if parents is not None:
            details["parents"] = parents

        return MatchCandidate(
            source_id=individual.source_id,
            existing_person_id=existing.person_id,
            confidence=aggregate_confidence(details, self.weights),
            match_details=details,
        )

    def match(
        self,
        individual: ParsedIndividual,
        existing_individuals: Sequence[StoredPerson],
        parent_ids: Optional[Set[PersonId]] = None,
    ) -> Optional[MatchCandidate]:
        """
        Best-scoring existing person for ``individual``, or None when nobody
        reaches ``min_confidence``. Ties go to the lowest person id.
        """
        best: Optional[MatchCandidate] = None
        key = blocking_key(individual.last_name)

        for existing in existing_individuals:
            if self.blocking and key:
                other = blocking_key(existing.last_name)
                if other and other != key:
                    continue
            candidate = self.score(individual, existing, parent_ids)
            if best is None or (candidate.confidence, -_sort_id(candidate.existing_person_id)) > (
                best.confidence,
                -_sort_id(best.existing_person_id),
            ):
                best = candidate

        if best is None or best.confidence < self.min_confidence:
            return None
        return best

    def match_all(
        self,
        individuals: Sequence[ParsedIndividual],
        existing_individuals: Sequence[StoredPerson],
        relationships: Sequence[ParsedRelationship] = (),
        resolved: Optional[Mapping[str, PersonId]] = None,
    ) -> Dict[str, MatchCandidate]:
        """
        Match every individual, in parse order.

        Runs twice: the first pass ignores parentage; its matches (overridden
        by ``resolved``, e.g. explicit merge targets) supply the store ids of
        each individual's parents for the second pass.
        """
        first_pass: Dict[str, MatchCandidate] = {}
        for ind in individuals:
            cand = self.match(ind, existing_individuals)
            if cand is not None:
                first_pass[ind.source_id] = cand

        mapping: Dict[str, PersonId] = {sid: c.existing_person_id for sid, c in first_pass.items()}
        mapping.update(resolved or {})

        parents_of = parent_source_ids(relationships)
        if not parents_of:
            log.debug("No parentage in upload; single matching pass (%d candidates)", len(first_pass))
            return first_pass

        candidates: Dict[str, MatchCandidate] = {}
        for ind in individuals:
            parent_ids = {mapping[p] for p in parents_of.get(ind.source_id, ()) if p in mapping}
            cand = self.match(ind, existing_individuals, parent_ids or None)
            if cand is not None:
                candidates[ind.source_id] = cand

        log.info(
            "Matched %d/%d individuals against %d existing (min_confidence=%d)",
            len(candidates),
            len(individuals),
            len(existing_individuals),
            self.min_confidence,
        )
        return candidates


def _sort_id(person_id: PersonId) -> int:
    try:
        return int(person_id)
    except (TypeError, ValueError):
        return 0


def match(
    individual: ParsedIndividual,
    existing_individuals: Sequence[StoredPerson],
    parent_ids: Optional[Set[PersonId]] = None,
    min_confidence: int = DEFAULT_MIN_CONFIDENCE,
) -> Optional[MatchCandidate]:
    """Module-level shortcut with default weights."""
    return DuplicateMatcher(min_confidence=min_confidence).match(individual, existing_individuals, parent_ids)


def candidates_list(candidates: Mapping[str, MatchCandidate]) -> List[MatchCandidate]:
    """Candidates sorted by confidence (highest first), for review screens."""
    return sorted(candidates.values(), key=lambda c: (-c.confidence, c.source_id))
