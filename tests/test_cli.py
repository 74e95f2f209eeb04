"""Tests for the watchstate CLI."""

import orjson
import pytest
from typer.testing import CliRunner

from watchstate import __version__
from watchstate.cli import main as cli
from watchstate.config import settings

runner = CliRunner()


@pytest.fixture(autouse=True)
def workspace(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "data_dir", tmp_path)
    monkeypatch.setattr(settings, "metadata_url", "http://meta.invalid")
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)
    return tmp_path


def test_version_command():
    result = runner.invoke(cli.app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_status_empty_store():
    result = runner.invoke(cli.app, ["status"])
    assert result.exit_code == 0
    assert "empty" in result.stdout


def test_status_needs_migration(workspace):
    (workspace / "video-progress.json").write_bytes(
        orjson.dumps({"items": [], "--version": 1})
    )
    result = runner.invoke(cli.app, ["status"])
    assert result.exit_code == 0
    assert "needs migration" in result.stdout


def test_show_creates_empty_store(workspace):
    result = runner.invoke(cli.app, ["show"])

    assert result.exit_code == 0
    assert "No watch progress stored" in result.stdout
    stored = orjson.loads((workspace / "video-progress.json").read_bytes())
    assert stored == {"items": [], "--version": 2}


def test_show_lists_items(workspace):
    (workspace / "video-progress.json").write_bytes(orjson.dumps({
        "items": [{
            "item": {"meta": {"id": "m1", "type": "movie", "title": "Heat"}},
            "progress": 600,
            "percentage": 50,
            "watchedAt": 1_700_000_000_000,
        }],
        "--version": 2,
    }))

    result = runner.invoke(cli.app, ["show"])

    assert result.exit_code == 0
    assert "Heat" in result.stdout
    assert "50%" in result.stdout


def test_status_reports_item_count(workspace):
    (workspace / "video-progress.json").write_bytes(orjson.dumps({
        "items": [{
            "item": {"meta": {"id": "m1", "type": "movie", "title": "Heat"}},
            "progress": 600,
            "percentage": 50,
            "watchedAt": 1_700_000_000_000,
        }],
        "--version": 2,
    }))

    result = runner.invoke(cli.app, ["status"])

    assert result.exit_code == 0
    assert "Items:     1" in result.stdout
    assert "current" in result.stdout


def test_show_without_metadata_url_on_fresh_store(workspace, monkeypatch):
    monkeypatch.setattr(settings, "metadata_url", "")

    result = runner.invoke(cli.app, ["show"])

    assert result.exit_code == 0
    assert "No watch progress stored" in result.stdout


def test_show_without_metadata_url_keeps_legacy_records(workspace, monkeypatch):
    monkeypatch.setattr(settings, "metadata_url", "")
    path = workspace / "video-progress.json"
    original = orjson.dumps({
        "items": [{
            "mediaId": 1, "mediaType": "movie", "title": "Up", "year": 2009,
            "percentage": 50, "progress": 600, "providerId": "p",
        }],
        "--version": 1,
    })
    path.write_bytes(original)

    result = runner.invoke(cli.app, ["show"])

    assert result.exit_code == 1
    assert "Could not load" in result.stdout
    assert "WATCHSTATE_METADATA_URL" in result.stdout
    assert path.read_bytes() == original
