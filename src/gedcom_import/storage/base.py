"""
Storage interface consumed by the import pipeline.

The relational schema lives outside this package; the pipeline only talks to
a ``TreeStore``. All writes made by a commit happen inside
``with store.transaction():`` and while holding ``store.write_lock``.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional

from gedcom_import.models import ParentRole, PersonId, RelationshipType, StoredPerson

# Fields a person record can carry. Anything else is rejected by the stores.
PERSON_FIELDS = (
    "first_name",
    "last_name",
    "birth_date",
    "death_date",
    "birth_place",
    "death_place",
    "gender",
    "notes",
)


class TreeStore(ABC):
    """
    Abstract family-tree store.

    Implementations must make ``transaction()`` all-or-nothing: leaving the
    block normally commits, leaving it by exception rolls back every write made
    inside it and re-raises.
    """

    def __init__(self) -> None:
        # Serializes commits against this tree.
        self.write_lock = threading.RLock()

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    @abstractmethod
    def all_individuals(self) -> List[StoredPerson]:
        ...

    @abstractmethod
    def get_individual(self, person_id: PersonId) -> Optional[StoredPerson]:
        ...

    def find_individuals_by_approximate_name(
        self, first_name: str, last_name: str
    ) -> List[StoredPerson]:
        """
        People whose surname shares the initial of ``last_name`` (or who have
        no surname). Implementations backed by a database should push this
        down to an indexed query.
        """
        initial = (last_name or "").strip().lower()[:1]
        if not initial:
            return self.all_individuals()
        return [
            p
            for p in self.all_individuals()
            if not p.last_name.strip() or p.last_name.strip().lower()[:1] == initial
        ]

    @abstractmethod
    def relationship_exists(
        self,
        person1_id: PersonId,
        person2_id: PersonId,
        type: RelationshipType,
        parent_role: Optional[ParentRole] = None,
    ) -> bool:
        ...

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    @abstractmethod
    def create_individual(self, fields: Mapping[str, Any]) -> PersonId:
        ...

    @abstractmethod
    def update_individual_fields(self, person_id: PersonId, fields: Mapping[str, Any]) -> None:
        ...

    @abstractmethod
    def create_relationship(
        self,
        person1_id: PersonId,
        person2_id: PersonId,
        type: RelationshipType,
        parent_role: Optional[ParentRole] = None,
    ) -> None:
        """Raises DuplicateRelationshipError if the exact relationship exists."""

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #

    @abstractmethod
    def begin(self) -> None:
        ...

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...

    @contextmanager
    def transaction(self) -> Iterator["TreeStore"]:
        self.begin()
        try:
            yield self
            self.commit()
        except BaseException:
            self.rollback()
            raise


def validate_person_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - set(PERSON_FIELDS)
    if unknown:
        raise ValueError(f"Unknown person fields: {sorted(unknown)}")
    return dict(fields)
