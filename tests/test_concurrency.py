# tests/test_concurrency.py

from __future__ import annotations

import threading

import pytest

from gedcom_import.errors import InvalidStateError, StorageError
from gedcom_import.models import ImportSummary
from gedcom_import.pipeline import ImportPipeline
from gedcom_import.session import InMemorySessionStore
from gedcom_import.storage import InMemoryTreeStore
from gedcom_import.utils import mock_file_path


class InterleavingTreeStore(InMemoryTreeStore):
    """Calls ``on_first_create`` from inside the first create_individual."""

    def __init__(self):
        super().__init__()
        self.on_first_create = None

    def create_individual(self, fields):
        person_id = super().create_individual(fields)
        hook, self.on_first_create = self.on_first_create, None
        if hook is not None:
            hook()
        return person_id


def _family_bytes() -> bytes:
    return mock_file_path("family_551.ged").read_bytes()


def _run_together(*targets):
    barrier = threading.Barrier(len(targets))

    def wrap(target):
        def run():
            barrier.wait()
            target()

        return run

    threads = [threading.Thread(target=wrap(t)) for t in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)


def test_session_lock_is_exclusive_per_upload_and_independent_across_uploads(session_store) -> None:
    first = session_store.create("a.ged", b"").upload_id
    second = session_store.create("b.ged", b"").upload_id
    outcome = {}

    def other_thread():
        lock = session_store.lock(first)
        outcome["same"] = lock.acquire(blocking=False)
        if outcome["same"]:
            lock.release()
        lock = session_store.lock(second)
        outcome["other"] = lock.acquire(timeout=5)
        if outcome["other"]:
            lock.release()

    with session_store.lock(first):
        worker = threading.Thread(target=other_thread)
        worker.start()
        worker.join(timeout=10)

    assert outcome == {"same": False, "other": True}


def test_racing_commits_of_one_upload_write_once(config) -> None:
    tree = InMemoryTreeStore()
    pipeline = ImportPipeline(tree, InMemorySessionStore(), config)
    upload_id = pipeline.upload("family_551.ged", _family_bytes())
    pipeline.parse(upload_id)
    results = []

    def commit():
        try:
            results.append(pipeline.commit(upload_id))
        except InvalidStateError as exc:
            results.append(exc)

    _run_together(commit, commit)

    assert sorted(type(r).__name__ for r in results) == ["ImportSummary", "InvalidStateError"]
    assert len(tree.all_individuals()) == 3


def test_commits_of_different_uploads_are_serialized_on_the_tree(config) -> None:
    tree = InMemoryTreeStore()
    pipeline = ImportPipeline(tree, InMemorySessionStore(), config)
    uploads = [pipeline.upload(f"copy{n}.ged", _family_bytes()) for n in (1, 2)]
    for upload_id in uploads:
        pipeline.parse(upload_id)
    summaries = {}

    _run_together(*[lambda u=u: summaries.setdefault(u, pipeline.commit(u)) for u in uploads])

    assert all(isinstance(s, ImportSummary) for s in summaries.values())
    assert [s.persons_added for s in summaries.values()] == [3, 3]
    assert len(tree.all_individuals()) == 6
    assert len(tree.relationships) == 6


def test_matching_never_sees_rows_of_a_commit_that_rolls_back(config) -> None:
    tree = InterleavingTreeStore()
    pipeline = ImportPipeline(tree, InMemorySessionStore(), config)
    first = pipeline.upload("first.ged", _family_bytes())
    pipeline.parse(first)
    second = pipeline.upload("second.ged", _family_bytes())
    tree.fail_on("create_relationship", 1)

    parsed = {}
    # parse the second upload while the first commit is mid-transaction
    worker = threading.Thread(target=lambda: parsed.setdefault("session", pipeline.parse(second)))
    tree.on_first_create = worker.start

    with pytest.raises(StorageError):
        pipeline.commit(first)
    worker.join(timeout=10)

    assert tree.all_individuals() == []
    assert parsed["session"].candidates == {}
