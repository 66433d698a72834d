import json

from typer.testing import CliRunner

from galaxybang.cli.app import app

runner = CliRunner()


def _generate(path, *extra):
    return runner.invoke(
        app,
        ["generate", "120", "--seed", "9", "--alien-planets", "2", "--out", str(path), *extra],
    )


def test_generate_writes_universe(tmp_path):
    path = tmp_path / "universe.json"
    result = _generate(path)

    assert result.exit_code == 0, result.output
    payload = json.loads(path.read_text())
    assert payload["meta"]["seed"] == 9
    assert len(payload["sectors"]) == 120


def test_generate_does_not_overwrite_without_force(tmp_path):
    path = tmp_path / "universe.json"
    assert _generate(path).exit_code == 0
    before = path.read_text()

    result = _generate(path, "--seed", "10")
    assert result.exit_code == 0
    assert "already exists" in result.output
    assert path.read_text() == before

    assert _generate(path, "--force").exit_code == 0


def test_generate_reports_configuration_errors(tmp_path):
    result = runner.invoke(
        app, ["generate", "10", "--stardocks", "15", "--out", str(tmp_path / "u.json")]
    )
    assert result.exit_code == 1
    assert "Error" in result.output
    assert not (tmp_path / "u.json").exists()


def test_validate_accepts_generated_universe(tmp_path):
    path = tmp_path / "universe.json"
    _generate(path)
    result = runner.invoke(app, ["validate", str(path)])
    assert result.exit_code == 0, result.output
    assert "passed" in result.output


def test_validate_flags_broken_universe(tmp_path):
    path = tmp_path / "universe.json"
    _generate(path)
    payload = json.loads(path.read_text())
    # Strand the last sector by dropping it from every warp list
    last = payload["sectors"][-1]["id"]
    for sector in payload["sectors"]:
        sector["warps"] = [w for w in sector["warps"] if w["to"] != last]
    payload["sectors"][-1]["warps"] = []
    path.write_text(json.dumps(payload))

    result = runner.invoke(app, ["validate", str(path)])
    assert result.exit_code == 1
    assert "connected" in result.output


def test_validate_missing_file(tmp_path):
    result = runner.invoke(app, ["validate", str(tmp_path / "nope.json")])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_validate_flags_sector_with_two_features(tmp_path):
    path = tmp_path / "universe.json"
    _generate(path)
    payload = json.loads(path.read_text())
    port_sector = next(s for s in payload["sectors"] if (s["feature"] or {}).get("kind") == "port")
    payload["sectors"].append(dict(port_sector, feature={"kind": "planet", "name": "Vega Haven"}))
    path.write_text(json.dumps(payload))

    result = runner.invoke(app, ["validate", str(path)])
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)


def test_validate_reports_sector_without_id(tmp_path):
    path = tmp_path / "universe.json"
    _generate(path)
    payload = json.loads(path.read_text())
    del payload["sectors"][3]["id"]
    path.write_text(json.dumps(payload))

    result = runner.invoke(app, ["validate", str(path)])
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "format" in result.output


def test_generate_defaults_to_world_data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("WORLD_DATA_DIR", str(tmp_path / "world"))
    result = runner.invoke(app, ["generate", "40", "--seed", "3"])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "world" / "universe.json").exists()
