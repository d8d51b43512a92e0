# src/gedcom_import/utils/__init__.py

from .pathing import (
    mock_file_path,
    project_root,
    resolve_project_path,
)

__all__ = [
    "mock_file_path",
    "project_root",
    "resolve_project_path",
]
