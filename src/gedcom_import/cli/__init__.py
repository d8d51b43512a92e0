
"""
CLI package for gedcom_import.

Provides the Typer application entrypoint and shared CLI utilities.
"""

from gedcom_import.cli.app import app, main

__all__ = [
    "app",
    "main",
]
