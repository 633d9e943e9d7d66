"""End-to-end tests for ``run_scrape`` against mocked source and ingestion APIs.

Mocking strategy:
- ``respx`` serves both the reading room listing pages and the ingestion
  API; every component runs for real, in its own threads.
- Delays are shrunk on the shared ``settings`` object with ``monkeypatch``.
"""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from readingroom.config import RunConfig, settings
from readingroom.errors import CollectionNotFound, ConfigError, NoPagesFound
from readingroom.net import GateRegistry
from readingroom.runner import run_scrape

_SITE = "https://rr.test/"
_API = "http://ingest.test/api/"
_COLLECTION = _SITE + "readingroom/collection/stargate"


def _listing(*slugs: str) -> str:
    return "".join(
        f'<span class="field-content"><a href="/readingroom/document/{slug}">{slug}</a></span>'
        for slug in slugs
    )


def _upload(request: httpx.Request) -> httpx.Response:
    link = json.loads(request.content)["link"]
    slug = link.rsplit("/", 1)[1]
    return httpx.Response(
        200,
        json={
            "success": True,
            "documents": [{"id": slug, "pageContent": "memo", "location": f"custom-documents/{slug}.json"}],
        },
    )


@pytest.fixture()
def fast_settings(monkeypatch):
    monkeypatch.setattr(settings, "site_base_url", _SITE)
    monkeypatch.setattr(settings, "ingest_endpoint", _API)
    monkeypatch.setattr(settings, "ingest_workspace", "stargate")
    monkeypatch.setattr(settings, "probe_delay", 0.0)
    monkeypatch.setattr(settings, "requeue_delay", 0.01)
    monkeypatch.setattr(settings, "flush_interval", 60.0)
    monkeypatch.setattr(settings, "gate_release_delay", 0.0)
    monkeypatch.setattr(settings, "network_fifo", "")
    return settings


def _mock_auth() -> None:
    respx.get(_API + "v1/auth").mock(return_value=httpx.Response(200, json={"authenticated": True}))


def _mock_source() -> None:
    _mock_auth()
    respx.head(_COLLECTION + "?page=1").mock(return_value=httpx.Response(404))
    respx.head(_COLLECTION).mock(return_value=httpx.Response(200))
    respx.get(_COLLECTION).mock(return_value=httpx.Response(200, text=_listing("doc-a", "doc-b")))


def test_run_uploads_and_embeds_every_link(fast_settings):
    with respx.mock:
        _mock_source()
        upload = respx.post(_API + "v1/document/upload-link").mock(side_effect=_upload)
        embed = respx.post(_API + "v1/workspace/stargate/update-embeddings").mock(return_value=httpx.Response(200))

        summary = run_scrape(RunConfig("stargate", max_pages=5, force=True), GateRegistry(), handle_sighup=False)

    assert summary.pages == 1
    assert summary.uploaded == 2
    assert upload.call_count == 2
    assert embed.call_count == 1
    adds = json.loads(embed.calls.last.request.content)["adds"]
    assert sorted(adds) == ["custom-documents/doc-a.json", "custom-documents/doc-b.json"]


def test_run_skips_already_ingested(fast_settings):
    listing = {
        "localFiles": {
            "items": [
                {
                    "name": "custom-documents",
                    "type": "folder",
                    "items": [{"name": "a.json", "type": "file", "url": "link://" + _SITE + "readingroom/document/doc-a"}],
                }
            ]
        }
    }
    with respx.mock:
        _mock_source()
        respx.get(_API + "v1/documents").mock(return_value=httpx.Response(200, json=listing))
        upload = respx.post(_API + "v1/document/upload-link").mock(side_effect=_upload)
        respx.post(_API + "v1/workspace/stargate/update-embeddings").mock(return_value=httpx.Response(200))

        summary = run_scrape(RunConfig("stargate", max_pages=5), GateRegistry(), handle_sighup=False)

    assert summary.uploaded == 1
    assert summary.duplicates == 1
    assert json.loads(upload.calls.last.request.content)["link"].endswith("doc-b")


def test_missing_collection_fails_before_crawl(fast_settings):
    with respx.mock:
        _mock_auth()
        root = respx.head(_COLLECTION).mock(return_value=httpx.Response(404))
        listing = respx.get(_COLLECTION).mock(return_value=httpx.Response(200, text=_listing("doc-a")))
        upload = respx.post(_API + "v1/document/upload-link").mock(side_effect=_upload)

        with pytest.raises(CollectionNotFound):
            run_scrape(RunConfig("stargate", force=True), GateRegistry(), handle_sighup=False)

    assert root.call_count == 1
    assert not listing.called
    assert not upload.called


def test_rejected_api_key_fails_before_crawl(fast_settings):
    with respx.mock:
        respx.get(_API + "v1/auth").mock(return_value=httpx.Response(403, json={"message": "Invalid API Key"}))
        root = respx.head(_COLLECTION).mock(return_value=httpx.Response(200))
        listing = respx.get(_COLLECTION).mock(return_value=httpx.Response(200, text=_listing("doc-a")))

        with pytest.raises(ConfigError, match="Invalid API Key"):
            run_scrape(RunConfig("stargate", force=True), GateRegistry(), handle_sighup=False)

    assert root.called
    assert not listing.called


def test_missing_start_page_fails_run(fast_settings):
    with respx.mock:
        _mock_auth()
        respx.head(_COLLECTION + "?page=1").mock(return_value=httpx.Response(404))
        respx.head(_COLLECTION).mock(return_value=httpx.Response(200))
        embed = respx.post(_API + "v1/workspace/stargate/update-embeddings").mock(return_value=httpx.Response(200))

        with pytest.raises(NoPagesFound):
            run_scrape(RunConfig("stargate", start_page=2, force=True), GateRegistry(), handle_sighup=False)

    assert not embed.called
