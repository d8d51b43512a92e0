# tests/test_cli.py

from __future__ import annotations

import json
import shutil

from typer.testing import CliRunner

from gedcom_import.cli.app import app
from gedcom_import.cli.utils import default_decisions, load_decisions
from gedcom_import.models import ImportSession, MatchCandidate, ParsedIndividual
from gedcom_import.utils import mock_file_path

runner = CliRunner()


def _tree_copy(tmp_path):
    tree = tmp_path / "tree.json"
    shutil.copy(mock_file_path("existing_tree.json"), tree)
    return tree


def test_preview_shows_statistics() -> None:
    result = runner.invoke(app, ["preview", str(mock_file_path("family_551.ged"))])
    assert result.exit_code == 0, result.output
    assert "GEDCOM Statistics" in result.output
    assert "5.5.1" in result.output


def test_preview_rejects_empty_upload() -> None:
    result = runner.invoke(app, ["preview", str(mock_file_path("empty.ged"))])
    assert result.exit_code == 2
    assert "file is empty" in result.output


def test_preview_rejects_unknown_sort() -> None:
    result = runner.invoke(app, ["preview", str(mock_file_path("family_551.ged")), "--sort", "height"])
    assert result.exit_code == 2


def test_import_stops_when_duplicates_are_undecided(tmp_path) -> None:
    tree = _tree_copy(tmp_path)
    before = tree.read_text(encoding="utf-8")

    result = runner.invoke(app, ["import", str(mock_file_path("family_551.ged")), "--tree", str(tree)])

    assert result.exit_code == 1
    assert "need a decision" in result.output
    assert tree.read_text(encoding="utf-8") == before


def test_import_with_default_merge(tmp_path) -> None:
    tree = _tree_copy(tmp_path)

    result = runner.invoke(
        app,
        [
            "import",
            str(mock_file_path("family_551.ged")),
            "--tree",
            str(tree),
            "--default-merge-above",
            "90",
            "--errors-dir",
            str(tmp_path / "errors"),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Import Summary" in result.output
    data = json.loads(tree.read_text(encoding="utf-8"))
    assert len(data["people"]) == 4
    assert len(data["relationships"]) == 3
    john = next(p for p in data["people"] if p["person_id"] == 42)
    assert john["birth_place"] == "Boston, Massachusetts, USA"


def test_import_with_decisions_file(tmp_path) -> None:
    tree = _tree_copy(tmp_path)
    decisions = tmp_path / "decisions.json"
    decisions.write_text(json.dumps([{"sourceId": "@I1@", "resolution": "skip"}]), encoding="utf-8")

    result = runner.invoke(
        app,
        [
            "import",
            str(mock_file_path("family_551.ged")),
            "-t",
            str(tree),
            "-d",
            str(decisions),
            "--errors-dir",
            str(tmp_path / "errors"),
        ],
    )

    assert result.exit_code == 0, result.output
    data = json.loads(tree.read_text(encoding="utf-8"))
    # Mary and Robert are added; only the mother link survives without John
    assert len(data["people"]) == 4
    assert len(data["relationships"]) == 1
    assert len(list((tmp_path / "errors").glob("*.csv"))) == 1


def test_errors_command_writes_csv(tmp_path) -> None:
    result = runner.invoke(app, ["errors", str(mock_file_path("malformed.ged")), "--out", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "5 issue(s)" in result.output
    csvs = list(tmp_path.glob("gedcom-import-errors_*.csv"))
    assert len(csvs) == 1
    assert len(csvs[0].read_text(encoding="utf-8").splitlines()) == 6


def test_load_decisions_accepts_wrapped_list(tmp_path) -> None:
    path = tmp_path / "d.json"
    path.write_text(json.dumps({"decisions": [{"sourceId": "@I1@", "resolution": "skip"}]}), encoding="utf-8")
    assert load_decisions(path) == [{"sourceId": "@I1@", "resolution": "skip"}]


def test_default_decisions_split_on_threshold() -> None:
    session = ImportSession("u_1_ab")
    session.candidates = {
        "@I1@": MatchCandidate("@I1@", 42, 95, {"name": 95}),
        "@I2@": MatchCandidate("@I2@", 50, 60, {"name": 60}),
    }
    session.parsed_individuals = [ParsedIndividual("@I1@", "A", "B"), ParsedIndividual("@I2@", "C", "D")]

    decisions = {d.source_id: d.kind for d in default_decisions(session, 90)}
    assert decisions == {"@I1@": "merge", "@I2@": "import_as_new"}
