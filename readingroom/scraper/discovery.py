"""Page discovery: probe listing pages in order and schedule their fetches."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait

import httpx

from readingroom.config import settings
from readingroom.errors import BadStatusCode, CollectionNotFound, NoPagesFound
from readingroom.log import get_logger
from readingroom.net.client import GatedClient
from readingroom.scraper.fetcher import collection_url, fetch_page, page_url
from readingroom.scraper.models import Collection, LinkChannel

logger = get_logger(__name__)

# Past this many pages from the start the probe delay grows four times slower.
_DELAY_KNEE = 100


def probe_delay(distance: int, per_page: float) -> float:
    """Seconds to sleep after scheduling the page *distance* pages past the start."""
    if distance <= _DELAY_KNEE:
        return distance * per_page
    return _DELAY_KNEE * per_page + (distance - _DELAY_KNEE) * per_page / 4


def validate_collection(http: GatedClient, name: str) -> None:
    """Check that collection *name* exists on the source site.

    Raises:
        CollectionNotFound: If the collection root answers 404.
        BadStatusCode: For any other non-200 answer.
    """
    url = collection_url(name)
    response = http.head(url)
    if response.status_code == 200:
        return
    if response.status_code == 404:
        raise CollectionNotFound(f"reading room collection does not exist: {name}")
    raise BadStatusCode(response.status_code, url)


class PageDiscovery:
    """Find the pages of *collection* and fetch each one in a worker thread.

    ``run`` probes indices sequentially with ``HEAD``.  Every page that
    exists gets a channel registered on the collection and a fetch task.
    The collection is marked complete exactly once when ``run`` returns or
    raises.
    """

    def __init__(
        self,
        collection: Collection,
        http: GatedClient,
        per_page_delay: float | None = None,
        workers: int | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self.collection = collection
        self.http = http
        self.per_page_delay = per_page_delay if per_page_delay is not None else settings.probe_delay
        self.workers = workers or settings.fetch_workers
        self.cancel = cancel
        self.failed_pages: list[int] = []

    def _fetch(self, index: int, channel: LinkChannel) -> None:
        try:
            fetch_page(self.http, self.collection.name, index, channel, cancel=self.cancel)
        except Exception as exc:
            self.failed_pages.append(index)
            logger.error("page_fetch_failed", page=index, error=str(exc))

    def run(self) -> int:
        """Discover and fetch pages.

        Returns:
            The number of pages registered.

        Raises:
            NoPagesFound: If the first page probed does not exist.
            BadStatusCode: If a probe answers anything but 200 or 404.
            httpx.HTTPError: If a probe fails at the transport level.
        """
        collection = self.collection
        start = collection.start_offset
        pool = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="page-fetch")
        futures: list[Future] = []

        try:
            index = start
            while True:
                if self.cancel is not None and self.cancel.is_set():
                    logger.info("discovery_cancelled", page=index)
                    break

                url = page_url(collection.name, index)
                try:
                    response = self.http.head(url)
                except httpx.HTTPError as exc:
                    logger.error("page_probe_failed", page=index, error=str(exc))
                    raise

                if response.status_code == 200:
                    logger.info("page_found", page=index)
                    channel = collection.register_page(index)
                    futures.append(pool.submit(self._fetch, index, channel))
                    if collection.page_count * collection.page_capacity >= collection.max_documents:
                        logger.info("page_budget_reached", pages=collection.page_count)
                        break
                    time.sleep(probe_delay(index - start + 1, self.per_page_delay))
                    index += 1
                    continue

                if response.status_code == 404:
                    if index == start:
                        raise NoPagesFound(f"no pages found in collection: {collection.name}")
                    logger.info("collection_end", pages=collection.page_count)
                    break

                raise BadStatusCode(response.status_code, url)

            wait(futures)
            return collection.page_count
        finally:
            pool.shutdown(wait=False)
            collection.mark_complete()
