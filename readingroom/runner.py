"""High-level runner for one crawl-and-upload pass.

``run_scrape`` wires every component together for a single collection:

    PageDiscovery → page channels → DrainPipeline → UploadOrchestrator
        → IngestionQueue → update-embeddings

Discovery runs in its own thread; a fatal discovery error cancels the drain
and the uploads and is re-raised once everything has stopped.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from readingroom.config import RunConfig, settings
from readingroom.ingest.batch_queue import IngestionQueue
from readingroom.ingest.client import IngestClient
from readingroom.ingest.orchestrator import UploadOrchestrator
from readingroom.ingest.pdf import PDFFallbackChain
from readingroom.ingest.uploader import Uploader
from readingroom.log import get_logger
from readingroom.net.client import GatedClient
from readingroom.net.fifo import FifoSignaller
from readingroom.net.gate import DEFAULT_GATE, GateRegistry
from readingroom.scraper.discovery import PageDiscovery, validate_collection
from readingroom.scraper.drain import DrainPipeline
from readingroom.scraper.models import Collection

logger = get_logger(__name__)


@dataclass
class RunSummary:
    collection: str
    pages: int = 0
    uploaded: int = 0
    duplicates: int = 0
    failed: int = 0
    retries: int = 0
    pdfs: int = 0


def validate_run(config: RunConfig, http: GatedClient) -> None:
    """Validate *config*, the collection and the ingestion API credentials.

    Raises:
        ConfigError: For invalid options or rejected credentials.
        CollectionNotFound: If the collection does not exist.
        BadStatusCode: If the collection check gets an unexpected answer.
    """
    config.validate()
    validate_collection(http, config.collection)
    IngestClient(http).check_auth()


def run_scrape(
    config: RunConfig,
    registry: Optional[GateRegistry] = None,
    handle_sighup: bool = True,
) -> RunSummary:
    """Crawl ``config.collection`` and upload every new document link.

    Args:
        config: Per-run options.
        registry: Gate registry to use; a fresh one is created if omitted.
        handle_sighup: Release an exclusive network hold on ``SIGHUP``.

    Returns:
        A :class:`RunSummary` with the final counts.

    Raises:
        ConfigError: For invalid options or rejected credentials.
        CollectionNotFound: If the collection does not exist.
    """
    config.validate()
    registry = registry or GateRegistry(release_delay=settings.gate_release_delay)
    gate = registry.get(DEFAULT_GATE)
    if handle_sighup:
        gate.with_sighup_release()

    cancel = threading.Event()
    discovery_errors: list[Exception] = []

    with GatedClient(gate) as http:
        validate_run(config, http)
        client = IngestClient(http)
        fifo = FifoSignaller(config.network_fifo, gate) if config.network_fifo.strip() else None
        uploader = Uploader(client, fifo=fifo)
        pdf_chain = PDFFallbackChain(uploader, client, http)
        uploader.pdf_chain = pdf_chain

        if not config.force:
            uploader.seed(client.list_documents())

        collection = Collection(config.collection, max_pages=config.max_pages, start_page=config.start_page)
        discovery = PageDiscovery(collection, http, cancel=cancel)

        def _discover() -> None:
            try:
                discovery.run()
            except Exception as exc:
                discovery_errors.append(exc)
                logger.error("discovery_failed", collection=collection.name, error=str(exc))
                cancel.set()

        discovery_thread = threading.Thread(target=_discover, name="discovery", daemon=True)
        discovery_thread.start()

        links, _ = DrainPipeline(collection).start(cancel)
        ingest_queue = IngestionQueue(client)
        orchestrator = UploadOrchestrator(uploader, ingest_queue)
        try:
            orchestrator.run(links, cancel)
        except Exception:
            cancel.set()
            raise
        finally:
            ingest_queue.close()
            discovery_thread.join()

    if discovery_errors:
        raise discovery_errors[0]

    stats = orchestrator.stats
    summary = RunSummary(
        collection=collection.name,
        pages=collection.page_count,
        uploaded=stats.uploaded,
        duplicates=stats.duplicates,
        failed=stats.failed,
        retries=stats.retries,
        pdfs=len(pdf_chain.results),
    )
    logger.info("run_finished", **vars(summary))
    return summary
