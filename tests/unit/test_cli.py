import json

import pytest
import yaml
from typer.testing import CliRunner

from goldmatch.cli import app

runner = CliRunner()


@pytest.fixture
def records_file(tmp_path, person_records):
    """Fixture providing the person records as a JSON file."""
    path = tmp_path / "records.json"
    path.write_text(json.dumps({"records": [r.to_dict() for r in person_records]}), encoding="utf-8")
    return path


def test_compare_prints_score():
    result = runner.invoke(app, ["compare", "MARTHA", "MARHTA", "--algorithm", "jaro-winkler"])
    assert result.exit_code == 0
    assert "jaro-winkler: 0.9611" in result.output


def test_compare_rejects_unknown_algorithm():
    result = runner.invoke(app, ["compare", "a", "b", "-a", "sounds-like"])
    assert result.exit_code == 2


def test_resolve_with_preset(tmp_path, records_file):
    """Test a full run from the command line."""
    output = tmp_path / "result.json"
    result = runner.invoke(app, [
        "resolve", str(records_file), "--preset", "person", "--output", str(output), "--workers", "2"
    ])

    assert result.exit_code == 0, result.output
    assert "Resolution summary" in result.output
    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["stats"]["records_accepted"] == 4
    assert len(data["golden_records"]) == data["stats"]["golden_records"]


def test_resolve_with_config_file(tmp_path, records_file):
    """Test a run driven by a YAML configuration."""
    config = tmp_path / "resolution.yaml"
    config.write_text(yaml.safe_dump({
        "entity_type": "person",
        "match": {"fields": [
            {"field": "last_name", "algorithm": "jaro-winkler", "weight": 2, "required": True},
            {"field": "email", "algorithm": "exact", "weight": 3},
        ]},
        "blocking": {"passes": [
            {"name": "email", "components": [{"field": "email", "method": "normalized"}]}
        ]},
    }), encoding="utf-8")

    result = runner.invoke(app, ["resolve", str(records_file), "-c", str(config)])
    assert result.exit_code == 0, result.output


def test_resolve_with_invalid_config(tmp_path, records_file):
    """Test that configuration errors exit with code 2."""
    config = tmp_path / "resolution.yaml"
    config.write_text("entity_type: person\n", encoding="utf-8")

    result = runner.invoke(app, ["resolve", str(records_file), "-c", str(config)])
    assert result.exit_code == 2
    assert "Configuration error" in result.output


def test_resolve_with_unknown_preset(records_file):
    result = runner.invoke(app, ["resolve", str(records_file), "--preset", "spaceship"])
    assert result.exit_code == 2
