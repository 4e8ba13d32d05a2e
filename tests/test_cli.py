"""CLI commands over saved responses (no network)."""

import json

import pytest
from typer.testing import CliRunner

from polymovers.cli.app import app

runner = CliRunner()

CONFIG = """
[pipeline]
spread_jitter = false
relevance_keywords = ["bitcoin"]

[dashboard]
exclude_resolving_soon = false
limit = 50

[logging]
level = "WARNING"
"""


@pytest.fixture
def config_dir(tmp_path):
    d = tmp_path / "config"
    d.mkdir()
    (d / "default.toml").write_text(CONFIG, encoding="utf-8")
    return d


@pytest.fixture
def saved(tmp_path, make_raw):
    payload = [
        make_raw("p", "Who wins the election?"),
        make_raw("c", "Bitcoin above 100k?", tokens=[{"outcome": "Yes", "price": 0.5}, {"outcome": "No", "price": 0.49}]),
        {"question": "No id"},
    ]
    path = tmp_path / "markets.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def invoke(config_dir, *args):
    return runner.invoke(app, ["--config-dir", str(config_dir), *args])


def test_process_json(config_dir, saved):
    result = invoke(config_dir, "markets", "process", str(saved), "--json")
    assert result.exit_code == 0, result.output
    markets = json.loads(result.stdout)
    assert [m["id"] for m in markets] == ["p", "c"]
    assert markets[0]["category"] == "politics"
    assert markets[0]["movement"] == 0.2


def test_process_table_with_filters(config_dir, saved):
    result = invoke(config_dir, "markets", "process", str(saved), "--min-movement", "0.1", "--category", "politics")
    assert result.exit_code == 0, result.output
    assert "Who wins the election?" in result.stdout
    assert "Bitcoin" not in result.stdout
    assert "Total: 1 markets" in result.stdout


def test_process_event_payload(config_dir, tmp_path):
    path = tmp_path / "events.json"
    path.write_text(
        json.dumps([{"title": "Finals", "tags": [{"label": "NBA"}], "markets": [{"id": "1", "question": "Game 7?"}]}]),
        encoding="utf-8",
    )
    result = invoke(config_dir, "markets", "process", str(path), "--json")
    assert result.exit_code == 0, result.output
    markets = json.loads(result.stdout)
    assert markets[0]["category"] == "nba"
    assert markets[0]["event_title"] == "Finals"


def test_process_invalid_json(config_dir, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    result = invoke(config_dir, "markets", "process", str(path))
    assert result.exit_code == 1


def test_categories(config_dir):
    result = invoke(config_dir, "markets", "categories")
    assert result.exit_code == 0, result.output
    lines = result.stdout.split()
    assert lines[0] == "all"
    assert lines[-1] == "other"
    assert "crypto" in lines


def test_api_receives_config_dir(config_dir, monkeypatch):
    from polymovers.cli import api_cmd

    calls = []
    monkeypatch.setattr(api_cmd, "run_api", lambda **kwargs: calls.append(kwargs))
    result = runner.invoke(app, ["-C", str(config_dir), "-p", "dev", "api", "--port", "9000"])
    assert result.exit_code == 0, result.output
    assert calls == [{"host": "127.0.0.1", "port": 9000, "profile": "dev", "config_dir": config_dir}]
