# src/gedcom_import/utils/pathing.py

from __future__ import annotations

from pathlib import Path
from typing import Union

# <project_root>/src/gedcom_import/utils/pathing.py -> parents[3] is the root
# holding src/, tests/, config/ and mock_files/.
_PROJECT_ROOT = Path(__file__).resolve().parents[3]


def project_root() -> Path:
    return _PROJECT_ROOT


def resolve_project_path(relative: Union[str, Path]) -> Path:
    """
    Resolve a path relative to the project root. Absolute paths are returned
    unchanged, so configured directories may point anywhere.

    Examples:
        resolve_project_path("outputs/exports")
        resolve_project_path("/var/lib/gedcom-import/exports")
    """
    path = Path(relative)
    if path.is_absolute():
        return path
    return project_root() / path


def mock_file_path(filename: Union[str, Path]) -> Path:
    """Absolute path of a fixture under the top-level mock_files/ directory."""
    return resolve_project_path(Path("mock_files") / filename)
