"""
GEDCOM import pipeline: parse an uploaded family-tree file, detect people
already in the tree, let an operator resolve duplicates, then commit.

    from gedcom_import import ImportPipeline, InMemorySessionStore, JsonTreeStore
"""

from gedcom_import.errors import (
    DuplicateRelationshipError,
    ExpiredSessionError,
    GedcomDecodeError,
    GedcomImportError,
    ImportCancelledError,
    InvalidStateError,
    SessionNotFoundError,
    StorageError,
    ValidationError,
)
from gedcom_import.pipeline import ImportPipeline, PreviewPage, PreviewRow
from gedcom_import.session import InMemorySessionStore, JsonFileSessionStore
from gedcom_import.storage import InMemoryTreeStore, JsonTreeStore, TreeStore

__version__ = "0.1.0"

__all__ = [
    "DuplicateRelationshipError",
    "ExpiredSessionError",
    "GedcomDecodeError",
    "GedcomImportError",
    "ImportCancelledError",
    "ImportPipeline",
    "InMemorySessionStore",
    "InMemoryTreeStore",
    "InvalidStateError",
    "JsonFileSessionStore",
    "JsonTreeStore",
    "PreviewPage",
    "PreviewRow",
    "SessionNotFoundError",
    "StorageError",
    "TreeStore",
    "ValidationError",
]
