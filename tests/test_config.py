"""Tests for settings resolution and per-run option validation."""

from __future__ import annotations

import pytest

from readingroom.config import RunConfig, Settings, settings
from readingroom.errors import ConfigError


def test_env_overrides_defaults(monkeypatch):
    monkeypatch.setenv("PROBE_DELAY", "0.5")
    monkeypatch.setenv("QUEUE_CAPACITY", "10")
    monkeypatch.setenv("READINGROOM_BASE_URL", "https://mirror.test/")
    fresh = Settings()
    assert fresh.probe_delay == 0.5
    assert fresh.queue_capacity == 10
    assert fresh.collection_base_url == "https://mirror.test/readingroom/collection/"
    assert fresh.document_base_url == "https://mirror.test/readingroom/document/"


def test_defaults(monkeypatch):
    for name in ("PAGE_CAPACITY", "QUEUE_CAPACITY", "FLUSH_INTERVAL", "PDF_MAX_CONCURRENCY"):
        monkeypatch.delenv(name, raising=False)
    fresh = Settings()
    assert fresh.page_capacity == 20
    assert fresh.page_channel_capacity == 25
    assert fresh.queue_capacity == 1000
    assert fresh.flush_interval == 10.0
    assert fresh.pdf_max_concurrency == 500


def test_run_config_defaults_from_settings():
    config = RunConfig("stargate")
    assert config.max_pages == settings.default_max_pages
    assert config.start_page == 1
    assert config.force is False


def test_valid_run_config(monkeypatch):
    monkeypatch.setattr(settings, "ingest_endpoint", "http://ingest.test/api")
    RunConfig("stargate", max_pages=3, start_page=2).validate()


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"collection": "  "}, "missing collection"),
        ({"collection": "stargate", "max_pages": 0}, "max pages"),
        ({"collection": "stargate", "start_page": 0}, "start page"),
    ],
)
def test_invalid_run_config(monkeypatch, kwargs, message):
    monkeypatch.setattr(settings, "ingest_endpoint", "http://ingest.test/api")
    with pytest.raises(ConfigError, match=message):
        RunConfig(**kwargs).validate()


def test_missing_endpoint(monkeypatch):
    monkeypatch.setattr(settings, "ingest_endpoint", "")
    with pytest.raises(ConfigError, match="endpoint"):
        RunConfig("stargate").validate()
