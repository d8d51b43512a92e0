# tests/test_storage.py

from __future__ import annotations

import json
import shutil

import pytest

from gedcom_import.errors import DuplicateRelationshipError, StorageError
from gedcom_import.storage import InMemoryTreeStore, JsonTreeStore
from gedcom_import.utils import mock_file_path


def test_create_and_read_back() -> None:
    store = InMemoryTreeStore()
    pa = store.create_individual({"first_name": "Pa", "last_name": "Roe"})
    kid = store.create_individual({"first_name": "Kid", "last_name": "Roe", "notes": "(Date approximate)"})
    store.create_relationship(pa, kid, "parentOf", "father")

    assert (pa, kid) == (1, 2)
    assert store.get_individual(kid).parent_ids == frozenset({pa})
    assert store.relationship_exists(pa, kid, "parentOf", "father")
    assert not store.relationship_exists(pa, kid, "parentOf", "mother")
    assert store.get_individual(99) is None


def test_unknown_fields_are_rejected() -> None:
    with pytest.raises(ValueError):
        InMemoryTreeStore().create_individual({"shoe_size": 9})


def test_duplicate_relationship_raises() -> None:
    store = InMemoryTreeStore(people=[{"person_id": 1}, {"person_id": 2}])
    store.create_relationship(1, 2, "spouse")
    with pytest.raises(DuplicateRelationshipError):
        store.create_relationship(1, 2, "spouse")


def test_relationship_to_unknown_person_is_a_storage_error() -> None:
    store = InMemoryTreeStore(people=[{"person_id": 1}])
    with pytest.raises(StorageError):
        store.create_relationship(1, 7, "spouse")


def test_transaction_rolls_back_on_error() -> None:
    store = InMemoryTreeStore(people=[{"person_id": 1, "first_name": "Ann"}])

    with pytest.raises(RuntimeError):
        with store.transaction():
            store.create_individual({"first_name": "Temp"})
            store.update_individual_fields(1, {"last_name": "Changed"})
            raise RuntimeError("boom")

    assert [p.person_id for p in store.all_individuals()] == [1]
    assert store.get_individual(1).last_name == ""
    assert not store.in_transaction
    # ids handed out inside the rolled back transaction are reused
    assert store.create_individual({"first_name": "Next"}) == 2


def test_fault_injection_hits_the_nth_call() -> None:
    store = InMemoryTreeStore()
    store.fail_on("create_individual", 2)
    store.create_individual({"first_name": "One"})
    with pytest.raises(StorageError, match="injected fault"):
        store.create_individual({"first_name": "Two"})


def test_approximate_name_lookup_blocks_on_surname_initial() -> None:
    store = InMemoryTreeStore(
        people=[
            {"person_id": 1, "first_name": "John", "last_name": "Smith"},
            {"person_id": 2, "first_name": "John", "last_name": "Jones"},
            {"person_id": 3, "first_name": "Nameless"},
        ]
    )
    found = store.find_individuals_by_approximate_name("Jon", "Smyth")
    assert [p.person_id for p in found] == [1, 3]


def test_json_store_loads_and_persists_on_commit(tmp_path) -> None:
    path = tmp_path / "tree.json"
    shutil.copy(mock_file_path("existing_tree.json"), path)
    store = JsonTreeStore(path)
    assert [p.person_id for p in store.all_individuals()] == [42, 50]

    with store.transaction():
        new_id = store.create_individual({"first_name": "Robert", "last_name": "Smith"})
        store.create_relationship(42, new_id, "parentOf", "father")

    data = json.loads(path.read_text(encoding="utf-8"))
    assert new_id == 51
    assert data["people"][-1] == {"person_id": 51, "first_name": "Robert", "last_name": "Smith"}
    assert data["relationships"] == [
        {"person1_id": 42, "person2_id": 51, "type": "parentOf", "parent_role": "father"}
    ]
    assert JsonTreeStore(path).get_individual(51).parent_ids == frozenset({42})


def test_json_store_leaves_file_untouched_on_rollback(tmp_path) -> None:
    path = tmp_path / "tree.json"
    shutil.copy(mock_file_path("existing_tree.json"), path)
    before = path.read_text(encoding="utf-8")
    store = JsonTreeStore(path)

    with pytest.raises(StorageError):
        with store.transaction():
            store.create_individual({"first_name": "Ghost"})
            store.create_relationship(42, 999, "spouse")

    assert path.read_text(encoding="utf-8") == before
    assert len(store.all_individuals()) == 2


def test_json_store_missing_file_starts_empty(tmp_path) -> None:
    store = JsonTreeStore(tmp_path / "new" / "tree.json")
    assert store.all_individuals() == []


def test_json_store_unreadable_file(tmp_path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError, match="Could not read"):
        JsonTreeStore(path)
