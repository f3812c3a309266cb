"""Tests for the click command line."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

pytestmark = [pytest.mark.unit, pytest.mark.cli]

from magnetdav import __version__
from magnetdav.cli import main as cli_main


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return CliRunner()


def test_version(runner):
    result = runner.invoke(cli_main.cli, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_config_show_json(runner, tmp_path):
    config_file = tmp_path / "magnetdav.toml"
    config_file.write_text("[server]\nport = 4000\n", encoding="utf-8")
    result = runner.invoke(cli_main.cli, ["config", "show", "--format", "json"])
    assert result.exit_code == 0
    payload = result.output[result.output.index("{") :]
    assert json.loads(payload)["server"]["port"] == 4000


def test_config_show_missing_file(runner):
    result = runner.invoke(cli_main.cli, ["config", "show", "--config", "missing.toml"])
    assert result.exit_code == 2
    assert "Configuration error" in result.output


def test_serve_passes_overrides(runner, monkeypatch):
    calls = {}

    def fake_main(config_file, host=None, port=None):
        calls.update(config_file=config_file, host=host, port=port)
        return 0

    monkeypatch.setattr("magnetdav.daemon.main.main", fake_main)
    result = runner.invoke(cli_main.cli, ["serve", "--host", "127.0.0.1", "--port", "8123"])
    assert result.exit_code == 0
    assert calls == {"config_file": None, "host": "127.0.0.1", "port": 8123}


def test_add_prints_record(runner, monkeypatch):
    async def fake_post(url, uri):
        return 201, {"id": "abc", "status": "pending", "name": ""}

    monkeypatch.setattr(cli_main, "_post_magnet", fake_post)
    result = runner.invoke(
        cli_main.cli, ["add", "magnet:?xt=urn:btih:abc", "--url", "http://host:3000/"]
    )
    assert result.exit_code == 0
    assert "abc" in result.output
    assert "http://host:3000/webdav/abc/" in result.output


def test_add_reports_api_error(runner, monkeypatch):
    async def fake_post(url, uri):
        return 400, {"error": "Invalid request body"}

    monkeypatch.setattr(cli_main, "_post_magnet", fake_post)
    result = runner.invoke(cli_main.cli, ["add", " "])
    assert result.exit_code == 1
    assert "Invalid request body" in result.output
