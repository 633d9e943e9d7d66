"""Centralised settings for the reading-room scraper.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from readingroom.errors import ConfigError

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Source site
    # ------------------------------------------------------------------
    site_base_url: str = field(
        default_factory=lambda: os.environ.get("READINGROOM_BASE_URL", "https://www.cia.gov/")
    )

    @property
    def collection_base_url(self) -> str:
        """Root URL under which every collection listing lives."""
        return self.site_base_url + "readingroom/collection/"

    @property
    def document_base_url(self) -> str:
        """Prefix prepended to document paths matched on a listing page."""
        return self.site_base_url + "readingroom/document/"

    # ------------------------------------------------------------------
    # Ingestion API
    # ------------------------------------------------------------------
    ingest_endpoint: str = field(
        default_factory=lambda: os.environ.get("INGEST_ENDPOINT", "http://localhost:3001/api")
    )
    ingest_api_key: str = field(
        default_factory=lambda: os.environ.get("INGEST_API_KEY", "")
    )
    ingest_workspace: str = field(
        default_factory=lambda: os.environ.get("INGEST_WORKSPACE", "cia-reading-room")
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )

    # ------------------------------------------------------------------
    # Crawl
    # ------------------------------------------------------------------
    default_max_pages: int = 50
    page_capacity: int = field(
        default_factory=lambda: int(os.environ.get("PAGE_CAPACITY", "20"))
    )
    page_channel_capacity: int = 25
    probe_delay: float = field(
        default_factory=lambda: float(os.environ.get("PROBE_DELAY", "0.035"))
    )
    fetch_workers: int = field(
        default_factory=lambda: int(os.environ.get("FETCH_WORKERS", "16"))
    )
    drain_poll_interval: float = field(
        default_factory=lambda: float(os.environ.get("DRAIN_POLL_INTERVAL", "0.5"))
    )

    # ------------------------------------------------------------------
    # Upload / ingestion queue
    # ------------------------------------------------------------------
    requeue_delay: float = field(
        default_factory=lambda: float(os.environ.get("REQUEUE_DELAY", "0.5"))
    )
    flush_interval: float = field(
        default_factory=lambda: float(os.environ.get("FLUSH_INTERVAL", "10.0"))
    )
    queue_capacity: int = field(
        default_factory=lambda: int(os.environ.get("QUEUE_CAPACITY", "1000"))
    )
    queue_full_wait: float = field(
        default_factory=lambda: float(os.environ.get("QUEUE_FULL_WAIT", "1.0"))
    )

    # ------------------------------------------------------------------
    # PDF fallback chain
    # ------------------------------------------------------------------
    pdf_max_concurrency: int = field(
        default_factory=lambda: int(os.environ.get("PDF_MAX_CONCURRENCY", "500"))
    )
    pdf_permit_timeout: float = field(
        default_factory=lambda: float(os.environ.get("PDF_PERMIT_TIMEOUT", "480.0"))
    )

    # ------------------------------------------------------------------
    # Network gate
    # ------------------------------------------------------------------
    gate_release_delay: float = field(
        default_factory=lambda: float(os.environ.get("GATE_RELEASE_DELAY", "1.0"))
    )
    network_fifo: str = field(
        default_factory=lambda: os.environ.get("NETWORK_FIFO", "")
    )


# Module-level singleton: import this everywhere:
#   from readingroom.config import settings
settings = Settings()


@dataclass
class RunConfig:
    """Options for a single crawl-and-upload run."""

    collection: str
    max_pages: int = field(default_factory=lambda: settings.default_max_pages)
    start_page: int = 1
    force: bool = False
    network_fifo: str = field(default_factory=lambda: settings.network_fifo)

    def validate(self) -> None:
        """Check the options that can be verified without touching the network.

        Raises:
            ConfigError: On the first invalid option found.
        """
        if not self.collection.strip():
            raise ConfigError("missing collection name")
        if self.max_pages < 1:
            raise ConfigError(f"max pages must be at least 1, got {self.max_pages}")
        if self.start_page < 1:
            raise ConfigError(f"start page must be at least 1, got {self.start_page}")
        if not settings.ingest_endpoint.strip():
            raise ConfigError("missing ingestion endpoint")
