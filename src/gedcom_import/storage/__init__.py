from .base import PERSON_FIELDS, TreeStore
from .json_store import JsonTreeStore
from .memory import InMemoryTreeStore

__all__ = ["PERSON_FIELDS", "InMemoryTreeStore", "JsonTreeStore", "TreeStore"]
