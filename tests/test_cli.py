"""Tests for the readingroom CLI commands."""

from __future__ import annotations

from typer.testing import CliRunner

from cli.main import app
from readingroom.errors import CollectionNotFound, NoPagesFound
from readingroom.ingest import IngestClient, Item
from readingroom.runner import RunSummary

runner = CliRunner()


def test_scrape_reports_summary(monkeypatch):
    captured = {}

    def fake_run(config):
        captured["config"] = config
        return RunSummary(collection=config.collection, pages=2, uploaded=3, duplicates=1)

    monkeypatch.setattr("readingroom.runner.run_scrape", fake_run)
    result = runner.invoke(
        app,
        ["scrape", "--collection", "stargate", "--pages", "2", "--start-page", "3", "--force", "--fifo", "/tmp/vpn.fifo"],
    )

    assert result.exit_code == 0
    assert "Uploaded 3 links" in result.stdout
    assert "Duplicates : 1" in result.stdout
    config = captured["config"]
    assert (config.collection, config.max_pages, config.start_page) == ("stargate", 2, 3)
    assert config.force is True
    assert config.network_fifo == "/tmp/vpn.fifo"


def test_scrape_failure_exits_nonzero(monkeypatch):
    def fake_run(config):
        raise NoPagesFound("no pages found in collection: stargate")

    monkeypatch.setattr("readingroom.runner.run_scrape", fake_run)
    result = runner.invoke(app, ["scrape", "--collection", "stargate"])

    assert result.exit_code == 1
    assert "Run failed: no pages found" in result.stdout


def test_scrape_requires_collection():
    result = runner.invoke(app, ["scrape"])
    assert result.exit_code != 0


def test_validate_ok(monkeypatch):
    monkeypatch.setattr("readingroom.runner.validate_run", lambda config, http: None)
    result = runner.invoke(app, ["validate", "--collection", "stargate"])

    assert result.exit_code == 0
    assert "Configuration OK" in result.stdout


def test_validate_missing_collection(monkeypatch):
    def fake_validate(config, http):
        raise CollectionNotFound(f"reading room collection does not exist: {config.collection}")

    monkeypatch.setattr("readingroom.runner.validate_run", fake_validate)
    result = runner.invoke(app, ["validate", "--collection", "nope"])

    assert result.exit_code == 1
    assert "does not exist: nope" in result.stdout


def test_documents_lists_folders(monkeypatch):
    folders = {"custom-documents": [Item(name="a.json"), Item(name="b.json")], "pdfs": [Item(name="c.json")]}
    monkeypatch.setattr(IngestClient, "list_documents", lambda self: folders)
    result = runner.invoke(app, ["documents"])

    assert result.exit_code == 0
    assert "custom-documents  (2 documents)" in result.stdout
    assert "Total: 3" in result.stdout


def test_documents_empty(monkeypatch):
    monkeypatch.setattr(IngestClient, "list_documents", lambda self: {})
    result = runner.invoke(app, ["documents"])

    assert result.exit_code == 0
    assert "No documents found" in result.stdout
