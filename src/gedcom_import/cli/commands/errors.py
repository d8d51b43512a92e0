from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from gedcom_import.cli.utils import parse_upload

console = Console()


def errors_command(
    gedcom: Path = typer.Argument(..., exists=True, readable=True),
    out: Path = typer.Option(
        Path("."),
        "--out",
        "-o",
        help="Directory for the error CSV",
    ),
):
    """
    Parse a GEDCOM file and write its problems to a CSV report.
    """
    pipeline, session = parse_upload(gedcom, None)
    path = pipeline.export_errors(session.upload_id, out)
    console.print(f"{len(session.errors)} issue(s) written to {path}")
