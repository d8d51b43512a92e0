
"""
CLI command modules for gedcom_import.

Each command module defines a single Typer-compatible command function.
"""

from gedcom_import.cli.commands.errors import errors_command
from gedcom_import.cli.commands.import_file import import_command
from gedcom_import.cli.commands.preview import preview_command

__all__ = [
    "errors_command",
    "import_command",
    "preview_command",
]
