from __future__ import annotations

import copy
from typing import Any, Dict, List, Mapping, Optional, Tuple

from gedcom_import.errors import DuplicateRelationshipError, StorageError
from gedcom_import.logging import get_logger
from gedcom_import.models import ParentRole, PersonId, RelationshipType, StoredPerson

from .base import TreeStore, validate_person_fields

log = get_logger("tree_store")

RelationshipKey = Tuple[PersonId, PersonId, str, Optional[str]]


class InMemoryTreeStore(TreeStore):
    """
    Dict-backed store with snapshot transactions.

    ``begin`` snapshots people and relationships; ``rollback`` restores the
    snapshot. Used by tests and as the base of ``JsonTreeStore``.

    ``fail_on(operation, call_number)`` makes the n-th call of a write method
    raise StorageError, to exercise partial-failure handling.
    """

    def __init__(self, people: Optional[List[Mapping[str, Any]]] = None, relationships=None):
        super().__init__()
        self._people: Dict[PersonId, Dict[str, Any]] = {}
        self._relationships: List[RelationshipKey] = []
        self._next_id: PersonId = 1
        self._snapshot: Optional[Tuple[Dict, List, PersonId]] = None
        self._faults: Dict[str, int] = {}
        self._calls: Dict[str, int] = {}

        for person in people or []:
            data = dict(person)
            person_id = data.pop("person_id", None) or data.pop("id", None)
            if person_id is None:
                person_id = self._next_id
            self._people[int(person_id)] = validate_person_fields(data)
            self._next_id = max(self._next_id, int(person_id) + 1)

        for rel in relationships or []:
            self._relationships.append(_relationship_key(rel))

    # ------------------------------------------------------------------ #
    # Fault injection
    # ------------------------------------------------------------------ #

    def fail_on(self, operation: str, call_number: int = 1) -> None:
        self._faults[operation] = call_number

    def _tick(self, operation: str) -> None:
        self._calls[operation] = self._calls.get(operation, 0) + 1
        if self._faults.get(operation) == self._calls[operation]:
            raise StorageError(f"{operation} failed (injected fault on call {self._calls[operation]})")

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def _to_stored(self, person_id: PersonId, data: Mapping[str, Any]) -> StoredPerson:
        parents = frozenset(
            p1 for (p1, p2, rtype, _role) in self._relationships if rtype == "parentOf" and p2 == person_id
        )
        return StoredPerson(
            person_id=person_id,
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
            birth_date=data.get("birth_date"),
            death_date=data.get("death_date"),
            birth_place=data.get("birth_place"),
            death_place=data.get("death_place"),
            gender=data.get("gender"),
            parent_ids=parents,
        )

    def all_individuals(self) -> List[StoredPerson]:
        return [self._to_stored(pid, data) for pid, data in sorted(self._people.items())]

    def get_individual(self, person_id: PersonId) -> Optional[StoredPerson]:
        data = self._people.get(person_id)
        return self._to_stored(person_id, data) if data is not None else None

    def person_fields(self, person_id: PersonId) -> Dict[str, Any]:
        """Raw stored fields (including notes) for inspection."""
        return dict(self._people[person_id])

    def relationship_exists(
        self,
        person1_id: PersonId,
        person2_id: PersonId,
        type: RelationshipType,
        parent_role: Optional[ParentRole] = None,
    ) -> bool:
        return (person1_id, person2_id, type, parent_role) in self._relationships

    @property
    def relationships(self) -> List[RelationshipKey]:
        return list(self._relationships)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def create_individual(self, fields: Mapping[str, Any]) -> PersonId:
        self._tick("create_individual")
        data = validate_person_fields(fields)
        person_id = self._next_id
        self._next_id += 1
        self._people[person_id] = data
        return person_id

    def update_individual_fields(self, person_id: PersonId, fields: Mapping[str, Any]) -> None:
        self._tick("update_individual_fields")
        if person_id not in self._people:
            raise StorageError(f"Person {person_id} does not exist")
        self._people[person_id].update(validate_person_fields(fields))

    def create_relationship(
        self,
        person1_id: PersonId,
        person2_id: PersonId,
        type: RelationshipType,
        parent_role: Optional[ParentRole] = None,
    ) -> None:
        self._tick("create_relationship")
        for pid in (person1_id, person2_id):
            if pid not in self._people:
                raise StorageError(f"Relationship references unknown person {pid}")
        key = (person1_id, person2_id, type, parent_role)
        if key in self._relationships:
            raise DuplicateRelationshipError(f"Relationship {key} already exists")
        self._relationships.append(key)

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #

    @property
    def in_transaction(self) -> bool:
        return self._snapshot is not None

    def begin(self) -> None:
        if self._snapshot is not None:
            raise StorageError("Nested transactions are not supported")
        self._snapshot = (copy.deepcopy(self._people), list(self._relationships), self._next_id)

    def commit(self) -> None:
        if self._snapshot is None:
            raise StorageError("commit() without begin()")
        self._snapshot = None

    def rollback(self) -> None:
        if self._snapshot is None:
            return
        self._people, self._relationships, self._next_id = self._snapshot
        self._snapshot = None
        log.warning("Tree store transaction rolled back")


def _relationship_key(rel: Any) -> RelationshipKey:
    if isinstance(rel, Mapping):
        return (
            int(rel["person1_id"]),
            int(rel["person2_id"]),
            rel["type"],
            rel.get("parent_role"),
        )
    p1, p2, rtype, role = rel
    return (int(p1), int(p2), rtype, role)
