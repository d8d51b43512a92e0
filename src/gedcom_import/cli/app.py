
from __future__ import annotations

import typer
from rich.console import Console

from gedcom_import.cli.commands.errors import errors_command
from gedcom_import.cli.commands.import_file import import_command
from gedcom_import.cli.commands.preview import preview_command

app = typer.Typer(
    name="gedcom-import",
    help="Import GEDCOM files into a family tree, resolving duplicates first",
    add_completion=False,
)

console = Console()

app.command("preview")(preview_command)
app.command("import")(import_command)
app.command("errors")(errors_command)


def main():
    app()


if __name__ == "__main__":
    main()
