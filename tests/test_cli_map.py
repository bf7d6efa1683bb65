import json
import shutil

from typer.testing import CliRunner

from process_map.cli import app

runner = CliRunner()


def _home_with_sample(tmp_path):
    shutil.copy("examples/sample-state.json", tmp_path / "process-map-storage.json")
    return str(tmp_path)


def test_cli_map_json(tmp_path):
    home = _home_with_sample(tmp_path)
    r = runner.invoke(app, ["--home", home, "map", "--start", "2024-01", "--format", "json"])
    assert r.exit_code == 0, r.output
    payload = json.loads(r.stdout)
    assert [n["id"] for n in payload["nodes"]] == ["ACT-FORECAST", "ACT-BUDGET"]
    assert payload["connectors"][0]["id"] == "ACT-FORECAST-ACT-BUDGET"
    assert [e["row"] for e in payload["entities"]] == [0, 1, 2]


def test_cli_map_svg_to_file(tmp_path):
    home = _home_with_sample(tmp_path)
    out = tmp_path / "out" / "map.svg"
    r = runner.invoke(app, ["--home", home, "map", "--start", "2024-01-01", "--format", "svg", "--out", str(out)])
    assert r.exit_code == 0, r.output
    assert out.read_text(encoding="utf-8").startswith("<svg")


def test_cli_map_layout_file_errors(tmp_path):
    home = _home_with_sample(tmp_path)
    r = runner.invoke(app, ["--home", home, "map", "--layout-file", str(tmp_path / "missing.yaml")])
    assert r.exit_code == 1
    assert "E_LAYOUT_FILE_NOT_FOUND" in r.output

    bad = tmp_path / "bad.yaml"
    bad.write_text("cell_width: 0\n", encoding="utf-8")
    r = runner.invoke(app, ["--home", home, "map", "--layout-file", str(bad)])
    assert r.exit_code == 2
    assert "E_LAYOUT_FILE_INVALID" in r.output


def test_cli_map_bad_start(tmp_path):
    r = runner.invoke(app, ["--home", str(tmp_path), "map", "--start", "March"])
    assert r.exit_code == 2
    assert "E_INVALID_DATE" in r.output


def test_cli_lint_json(tmp_path):
    home = _home_with_sample(tmp_path)
    r = runner.invoke(app, ["--home", home, "lint", "--format", "json"])
    assert r.exit_code == 0, r.output
    payload = json.loads(r.stdout)
    assert payload["ok"] is True
    assert payload["errors"] == []


def test_cli_validate_text_and_json():
    r = runner.invoke(app, ["validate", "examples/sample-state.json"])
    assert r.exit_code == 0
    assert "2 stakeholders" in r.stdout

    r = runner.invoke(app, ["validate", "examples/invalid-state.json", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    assert "E_DUPLICATE_ID" in {e["code"] for e in payload["errors"]}


def test_cli_validate_missing_file():
    r = runner.invoke(app, ["validate", "examples/does-not-exist.json"])
    assert r.exit_code == 1
    assert "E_FILE_NOT_FOUND" in r.output
