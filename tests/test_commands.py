"""
Tests for the Flask CLI commands.

Covers:
  - export-snapshot / import-snapshot through files
  - change-script to a file
  - seed reports what is present
"""

import json


def test_export_then_import_snapshot(app, tmp_path):
    runner = app.test_cli_runner()
    path = tmp_path / "backup.json"

    result = runner.invoke(args=["export-snapshot", str(path)])
    assert result.exit_code == 0, result.output
    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc["projects"][0]["title"] == "Welcome Project"

    doc["projects"] = []
    path.write_text(json.dumps(doc), encoding="utf-8")
    result = runner.invoke(args=["import-snapshot", str(path), "--yes"])
    assert result.exit_code == 0, result.output
    assert "0 projects" in result.output
    assert app.extensions["projects"].list() == []


def test_import_requires_confirmation(app, tmp_path):
    path = tmp_path / "backup.json"
    path.write_text(json.dumps({"users": [], "projects": []}), encoding="utf-8")

    result = app.test_cli_runner().invoke(args=["import-snapshot", str(path)], input="n\n")

    assert result.exit_code != 0
    assert len(app.extensions["users"].list()) == 1


def test_change_script_to_file(app, tmp_path):
    path = tmp_path / "change.sql"
    result = app.test_cli_runner().invoke(args=["change-script", str(path)])

    assert result.exit_code == 0, result.output
    assert path.read_text(encoding="utf-8").rstrip().endswith("COMMIT;")


def test_seed(app):
    result = app.test_cli_runner().invoke(args=["seed"])
    assert result.exit_code == 0, result.output
    assert "1 user(s), 1 project(s) present." in result.output
