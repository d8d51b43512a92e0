from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from gedcom_import.cli.utils import fail, parse_upload, preview_table, statistics_table
from gedcom_import.errors import ValidationError
from gedcom_import.pipeline import DEFAULT_PAGE_SIZE

console = Console()


def preview_command(
    gedcom: Path = typer.Argument(..., exists=True, readable=True),
    tree: Optional[Path] = typer.Option(
        None,
        "--tree",
        "-t",
        help="JSON tree file to match against (nothing is written)",
    ),
    page: int = typer.Option(1, "--page", min=1),
    page_size: int = typer.Option(DEFAULT_PAGE_SIZE, "--page-size", min=1),
    sort: str = typer.Option("name", "--sort", help="name, birth_date, death_date, status or confidence"),
    descending: bool = typer.Option(False, "--desc", help="Sort descending"),
    search: str = typer.Option("", "--search", "-s", help="Filter by name (case-insensitive)"),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable rich logging",
    ),
):
    """
    Parse a GEDCOM file and show which individuals look like duplicates.
    """
    pipeline, session = parse_upload(gedcom, tree, verbose=verbose)
    try:
        result = pipeline.preview(
            session.upload_id,
            page=page,
            page_size=page_size,
            sort_by=sort,
            descending=descending,
            search=search,
        )
    except ValidationError as exc:
        raise fail(str(exc), code=2) from exc

    console.print(statistics_table(result.statistics))
    console.print(preview_table(result))
