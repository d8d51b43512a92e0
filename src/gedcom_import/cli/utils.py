
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import typer
from rich.console import Console
from rich.table import Table

from gedcom_import.config import GIConfig, get_config
from gedcom_import.errors import GedcomImportError, ValidationError
from gedcom_import.logging import set_console_level
from gedcom_import.models import ImportSession, ImportSummary, ResolutionDecision
from gedcom_import.pipeline import ImportPipeline, PreviewPage
from gedcom_import.session import InMemorySessionStore
from gedcom_import.storage import InMemoryTreeStore, JsonTreeStore, TreeStore
from gedcom_import.upload import validate_upload

console = Console()


def fail(message: str, code: int = 1) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {message}")
    return typer.Exit(code=code)


def read_upload(path: Path, cfg: GIConfig) -> Tuple[str, bytes]:
    """
    Read a GEDCOM file from disk and apply the upload checks.
    """
    raw = path.read_bytes()
    try:
        file_name = validate_upload(path.name, len(raw), cfg.max_upload_bytes, cfg.upload_extensions)
    except ValidationError as exc:
        raise fail(str(exc), code=2) from exc
    return file_name, raw


def build_pipeline(tree: Optional[Path], cfg: Optional[GIConfig] = None) -> ImportPipeline:
    cfg = cfg or get_config()
    store: TreeStore
    if tree is None:
        store = InMemoryTreeStore()
    else:
        try:
            store = JsonTreeStore(tree)
        except GedcomImportError as exc:
            raise fail(str(exc)) from exc
    sessions = InMemorySessionStore(retention_seconds=cfg.retention_seconds)
    return ImportPipeline(store, sessions, cfg)


def parse_upload(path: Path, tree: Optional[Path], verbose: bool = False) -> Tuple[ImportPipeline, ImportSession]:
    cfg = get_config()
    if verbose:
        set_console_level(logging.INFO)
    file_name, raw = read_upload(path, cfg)
    pipeline = build_pipeline(tree, cfg)
    upload_id = pipeline.upload(file_name, raw)
    try:
        session = pipeline.parse(upload_id)
    except GedcomImportError as exc:
        raise fail(str(exc)) from exc
    if verbose:
        console.log(
            f"Parsed {file_name}: {len(session.parsed_individuals)} individual(s), "
            f"{len(session.candidates)} possible duplicate(s)"
        )
    return pipeline, session


def load_decisions(path: Path) -> List[Dict[str, Any]]:
    """
    Decisions file: a JSON list of
    ``{"sourceId": "@I1@", "resolution": "merge", "targetPersonId": 7}``.
    """
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise fail(f"Could not read decisions file {path}: {exc}", code=2) from exc
    if isinstance(payload, dict):
        payload = payload.get("decisions", [])
    if not isinstance(payload, list):
        raise fail(f"Decisions file {path} must hold a JSON list", code=2)
    return payload


def default_decisions(session: ImportSession, merge_above: int) -> List[ResolutionDecision]:
    """
    Decisions for every still-undecided candidate: merge when the confidence
    reaches ``merge_above``, otherwise import as a new person.
    """
    decisions = []
    for sid in session.undecided_source_ids():
        candidate = session.candidates[sid]
        if candidate.confidence >= merge_above:
            payload = {"sourceId": sid, "resolution": "merge", "targetPersonId": candidate.existing_person_id}
        else:
            payload = {"sourceId": sid, "resolution": "import_as_new"}
        decisions.append(ResolutionDecision.from_dict(payload))
    return decisions


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def statistics_table(stats: Dict[str, Any]) -> Table:
    table = Table(title="GEDCOM Statistics")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Version", str(stats.get("version") or "unknown"))
    table.add_row("Individuals", str(stats.get("total_individuals", 0)))
    table.add_row("Relationships", str(stats.get("total_relationships", 0)))
    table.add_row("New", str(stats.get("new", 0)))
    table.add_row("Possible duplicates", str(stats.get("duplicates", 0)))
    table.add_row("Errors", str(stats.get("total_errors", 0)))
    table.add_row("Warnings", str(stats.get("total_warnings", 0)))
    date_range = stats.get("date_range")
    if date_range:
        table.add_row("Date range", f"{date_range['earliest']} .. {date_range['latest']}")
    return table


def preview_table(page: PreviewPage) -> Table:
    table = Table(title=f"Individuals (page {page.page}/{page.total_pages}, {page.total} total)")
    table.add_column("Source ID", style="bold")
    table.add_column("Name")
    table.add_column("Born")
    table.add_column("Died")
    table.add_column("Status")
    table.add_column("Match", justify="right")

    for row in page.rows:
        match = ""
        status = "[green]new[/green]"
        if row.candidate is not None:
            status = "[yellow]duplicate[/yellow]"
            match = f"#{row.candidate.existing_person_id} ({row.candidate.confidence}%)"
        table.add_row(row.source_id, row.name, row.birth_date or "", row.death_date or "", status, match)
    return table


def summary_table(summary: ImportSummary) -> Table:
    table = Table(title="Import Summary")
    table.add_column("Result", style="bold")
    table.add_column("Count", justify="right")

    table.add_row("Persons added", str(summary.persons_added))
    table.add_row("Persons updated", str(summary.persons_updated))
    table.add_row("Persons skipped", str(summary.persons_skipped))
    table.add_row("Relationships created", str(summary.relationships_created))
    table.add_row("Relationships skipped", str(summary.relationships_skipped))
    table.add_row("Duration (ms)", str(summary.duration_millis))
    return table
