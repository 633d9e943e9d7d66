"""Fetch one collection listing page and push its document links."""

from __future__ import annotations

import re
import threading
from typing import List

import httpx

from readingroom.config import settings
from readingroom.errors import BadStatusCode, NoDocumentsFound, PageNotFound
from readingroom.log import get_logger
from readingroom.net.client import GatedClient
from readingroom.scraper.models import LinkChannel

logger = get_logger(__name__)

_DOCUMENT_LINK = re.compile(r'field-content"><a href="/readingroom/document/([^"]*)">')


def collection_url(name: str) -> str:
    """Return the root URL of collection *name*."""
    return settings.collection_base_url + name


def page_url(name: str, index: int) -> str:
    """Return the listing URL for zero-based page *index* of collection *name*.

    Index 0 is the bare collection URL; later pages use ``?page=N``.
    """
    if index < 1:
        return collection_url(name)
    return f"{collection_url(name)}?page={index}"


def _response_url(response: httpx.Response) -> str:
    try:
        return str(response.request.url)
    except RuntimeError:
        return ""


def parse_page(response: httpx.Response) -> List[str]:
    """Extract absolute document links from a listing page response.

    Raises:
        PageNotFound: If the page answered 404.
        BadStatusCode: For any other non-200 status.
        NoDocumentsFound: If the body is empty or no link matched.
    """
    url = _response_url(response)
    if response.status_code == 404:
        raise PageNotFound(f"page not found in collection: {url}")
    if response.status_code != 200:
        raise BadStatusCode(response.status_code, url)

    html = response.text
    if not html:
        raise NoDocumentsFound(f"empty response body: {url}")

    links = [settings.document_base_url + m.group(1) for m in _DOCUMENT_LINK.finditer(html)]
    if not links:
        raise NoDocumentsFound(f"no documents found in page: {url}")
    return links


def fetch_page(
    http: GatedClient,
    name: str,
    index: int,
    channel: LinkChannel,
    cancel: threading.Event | None = None,
) -> int:
    """Fetch page *index*, send every link to *channel*, then close it.

    On any failure the channel is abandoned rather than closed and the error
    is re-raised; other pages are unaffected.

    Returns:
        The number of links sent.
    """
    logger.debug("page_fetch", page=index)
    try:
        response = http.get(page_url(name, index))
        links = parse_page(response)
    except Exception:
        channel.abandon()
        raise

    for sent, link in enumerate(links):
        logger.debug("page_document", page=index, link=link)
        if not channel.send(link, cancel=cancel):
            logger.warning("page_send_stopped", page=index, sent=sent)
            channel.abandon()
            return sent
    channel.close()

    logger.info("page_fetched", page=index, documents=len(links))
    return len(links)
