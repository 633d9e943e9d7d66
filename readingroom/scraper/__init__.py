"""Scraper package: collection discovery, page fetch and drain."""

from readingroom.scraper.discovery import PageDiscovery, probe_delay, validate_collection
from readingroom.scraper.drain import DrainPipeline
from readingroom.scraper.fetcher import collection_url, fetch_page, page_url, parse_page
from readingroom.scraper.models import Collection, LinkChannel

__all__ = [
    "PageDiscovery",
    "probe_delay",
    "validate_collection",
    "DrainPipeline",
    "collection_url",
    "fetch_page",
    "page_url",
    "parse_page",
    "Collection",
    "LinkChannel",
]
