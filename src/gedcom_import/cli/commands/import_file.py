from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from gedcom_import.cli.utils import (
    default_decisions,
    fail,
    load_decisions,
    parse_upload,
    summary_table,
)
from gedcom_import.errors import GedcomImportError, StorageError
from gedcom_import.resolution import summarize_decisions

console = Console()


def import_command(
    gedcom: Path = typer.Argument(..., exists=True, readable=True),
    tree: Path = typer.Option(
        ...,
        "--tree",
        "-t",
        help="JSON tree file to import into (created if missing)",
    ),
    decisions: Optional[Path] = typer.Option(
        None,
        "--decisions",
        "-d",
        exists=True,
        readable=True,
        help="JSON list of duplicate resolutions",
    ),
    merge_above: Optional[int] = typer.Option(
        None,
        "--default-merge-above",
        min=0,
        max=100,
        help="Merge undecided duplicates at or above this confidence; import the rest as new",
    ),
    errors_dir: Optional[Path] = typer.Option(
        None,
        "--errors-dir",
        help="Where to write the error CSV (defaults to the configured exports dir)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable rich logging",
    ),
):
    """
    Import a GEDCOM file into a JSON tree, resolving duplicates first.
    """
    pipeline, session = parse_upload(gedcom, tree, verbose=verbose)
    upload_id = session.upload_id

    try:
        if decisions is not None:
            session = pipeline.record_decisions(upload_id, load_decisions(decisions))
        if merge_above is not None:
            batch = default_decisions(session, merge_above)
            if batch:
                session = pipeline.record_decisions(upload_id, batch)
    except GedcomImportError as exc:
        raise fail(str(exc), code=2) from exc

    undecided = session.undecided_source_ids()
    if undecided:
        console.print(
            f"[yellow]{len(undecided)} possible duplicate(s) need a decision:[/yellow] {', '.join(undecided)}"
        )
        raise fail("pass --decisions or --default-merge-above to resolve them")

    if verbose:
        counts = summarize_decisions(session.decisions.values())
        console.log(f"Decisions: {counts}")

    try:
        summary = pipeline.commit(upload_id)
    except StorageError as exc:
        _export_errors(pipeline, upload_id, errors_dir)
        raise fail(str(exc)) from exc
    except GedcomImportError as exc:
        raise fail(str(exc)) from exc

    console.print(summary_table(summary))
    _export_errors(pipeline, upload_id, errors_dir)


def _export_errors(pipeline, upload_id: str, errors_dir: Optional[Path]) -> None:
    session = pipeline.status(upload_id)
    if not session.errors:
        return
    path = pipeline.export_errors(upload_id, errors_dir)
    console.print(f"[yellow]{len(session.errors)} issue(s) written to[/yellow] {path}")
