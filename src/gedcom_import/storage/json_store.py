from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Union

from gedcom_import.errors import StorageError
from gedcom_import.logging import get_logger

from .memory import InMemoryTreeStore

log = get_logger("json_tree_store")


class JsonTreeStore(InMemoryTreeStore):
    """
    A tree kept in a single JSON file:

        {"people": [{"person_id": 1, "first_name": ...}, ...],
         "relationships": [{"person1_id": 1, "person2_id": 2,
                            "type": "parentOf", "parent_role": "father"}]}

    The file is rewritten atomically when a transaction commits, so a failed
    commit leaves it untouched.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        data: Dict[str, Any] = {"people": [], "relationships": []}
        if self.path.exists():
            try:
                with self.path.open("r", encoding="utf-8") as f:
                    data = json.load(f) or data
            except (OSError, json.JSONDecodeError) as exc:
                raise StorageError(f"Could not read tree file {self.path}: {exc}") from exc
        super().__init__(people=data.get("people", []), relationships=data.get("relationships", []))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "people": [
                {"person_id": pid, **fields} for pid, fields in sorted(self._people.items())
            ],
            "relationships": [
                {"person1_id": p1, "person2_id": p2, "type": rtype, "parent_role": role}
                for (p1, p2, rtype, role) in self._relationships
            ],
        }

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StorageError(f"Could not write tree file {self.path}: {exc}") from exc
        log.info("Tree saved to %s (%d people, %d relationships)", self.path, len(self._people), len(self._relationships))

    def commit(self) -> None:
        # Persist first: if the write fails the caller's rollback restores memory.
        self.save()
        super().commit()
