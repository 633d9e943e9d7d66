"""Batching queue between committed uploads and the bulk-embedding call.

Documents are buffered and handed to ``update-embeddings`` in one request
per flush.  A flush happens on every timer tick, when a producer finds the
buffer full, and once more on :meth:`IngestionQueue.close`.  A failed batch
is logged and dropped, not re-queued.
"""

from __future__ import annotations

import queue
import threading
import time
from typing import List, Optional

from readingroom.config import settings
from readingroom.ingest.client import IngestClient
from readingroom.ingest.models import Document
from readingroom.log import get_logger

logger = get_logger(__name__)


def document_location(document: Document) -> str:
    """Return the location to embed for *document*, suffixed with its id."""
    location = document.location
    if document.id and document.id not in location:
        location = location.replace(".json", "") + f"-{document.id}.json"
    return location


class IngestionQueue:
    def __init__(
        self,
        client: IngestClient,
        capacity: Optional[int] = None,
        interval: Optional[float] = None,
        full_wait: Optional[float] = None,
    ) -> None:
        self.client = client
        self.interval = interval if interval is not None else settings.flush_interval
        self.full_wait = full_wait if full_wait is not None else settings.queue_full_wait
        self._buffer: queue.Queue[Document] = queue.Queue(maxsize=capacity or settings.queue_capacity)
        self._flush_requested = threading.Event()
        self._stopping = threading.Event()
        self._start_lock = threading.Lock()
        self._threads: List[threading.Thread] = []
        self.batches = 0
        self.flushed = 0
        self.dropped = 0

    @property
    def started(self) -> bool:
        return bool(self._threads)

    def __len__(self) -> int:
        return self._buffer.qsize()

    def start(self) -> None:
        """Start the timer and flush threads; later calls do nothing."""
        with self._start_lock:
            if self._threads:
                return
            self._threads = [
                threading.Thread(target=self._tick, name="ingest-timer", daemon=True),
                threading.Thread(target=self._flush_loop, name="ingest-flush", daemon=True),
            ]
            for thread in self._threads:
                thread.start()

    def add(self, document: Document) -> None:
        """Buffer *document* for the next flush.

        Raises:
            ValueError: If the document has no location.
        """
        self.start()
        if not document.location:
            raise ValueError("document location is required")
        document.location = document_location(document)

        try:
            self._buffer.put_nowait(document)
        except queue.Full:
            logger.warning("ingest_queue_full", location=document.location)
            self._flush_requested.set()
            time.sleep(self.full_wait)
            self._buffer.put(document)

    def flush_now(self) -> None:
        """Ask the flush thread to run without waiting for the timer."""
        self._flush_requested.set()

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop the threads, then flush whatever is still buffered."""
        self._stopping.set()
        self._flush_requested.set()
        for thread in self._threads:
            thread.join(timeout)
        # Documents added while the flush thread was posting its last batch
        # are still buffered here.
        self._flush()

    # ------------------------------------------------------------------
    # Background threads
    # ------------------------------------------------------------------

    def _tick(self) -> None:
        while not self._stopping.wait(self.interval):
            self._flush_requested.set()

    def _flush_loop(self) -> None:
        while True:
            self._flush_requested.wait()
            self._flush_requested.clear()
            self._flush()
            if self._stopping.is_set():
                return

    def _drain(self) -> List[Document]:
        documents: List[Document] = []
        while True:
            try:
                documents.append(self._buffer.get_nowait())
            except queue.Empty:
                return documents

    def _flush(self) -> None:
        documents = self._drain()
        if not documents:
            return
        locations = [d.location for d in documents if d.location.strip()]
        for location in locations:
            logger.debug("ingest_flush_document", location=location)
        try:
            self.client.update_embeddings(locations)
        except Exception as exc:
            self.dropped += len(documents)
            logger.error("ingest_flush_failed", documents=len(documents), error=str(exc))
            return
        self.batches += 1
        self.flushed += len(documents)
        logger.info("ingest_flushed", documents=len(documents))
