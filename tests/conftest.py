import sys
from pathlib import Path

import pytest

# Ensure the project src directory is on sys.path for test imports
PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from gedcom_import.config import GIConfig  # noqa: E402
from gedcom_import.pipeline import ImportPipeline  # noqa: E402
from gedcom_import.session import InMemorySessionStore  # noqa: E402
from gedcom_import.storage import InMemoryTreeStore  # noqa: E402

HEADER = ["0 HEAD", "1 GEDC", "2 VERS 5.5.1", "1 CHAR UTF-8"]


@pytest.fixture
def make_gedcom():
    """Build GEDCOM bytes from body lines, wrapped in a 5.5.1 header and trailer."""

    def _make(*lines: str, header: bool = True) -> bytes:
        body = (HEADER if header else []) + list(lines) + ["0 TRLR"]
        return ("\n".join(body) + "\n").encode("utf-8")

    return _make


@pytest.fixture
def config() -> GIConfig:
    return GIConfig({"progress": {"batch_size": 2}})


@pytest.fixture
def tree_store() -> InMemoryTreeStore:
    return InMemoryTreeStore(
        people=[
            {
                "person_id": 42,
                "first_name": "John",
                "last_name": "Smith",
                "birth_date": "1900-01-01",
                "gender": "male",
            },
        ]
    )


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def pipeline(tree_store, session_store, config) -> ImportPipeline:
    return ImportPipeline(tree_store, session_store, config)
