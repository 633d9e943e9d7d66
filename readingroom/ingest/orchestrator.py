"""Drive the drained link stream through uploads, retries and batching.

Each link ends in one of four states:

``duplicate``  already seen; skipped before any network call.
``committed``  uploaded; handed to the ingestion queue and counted.
``denied``     the source blocked retrieval; the created document is
               deleted and the link is re-enqueued after a short delay.
``failed``     any other upload error; logged and dropped.

The retry counter is global to the run: repeated denials anywhere slow the
whole pipeline, since they mean the source is rate-limiting or banning us
rather than rejecting one document.
"""

from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from readingroom.config import settings
from readingroom.errors import AccessDenied, DeleteFailed, DuplicateLink, IngestError
from readingroom.ingest.batch_queue import IngestionQueue
from readingroom.ingest.models import Document
from readingroom.ingest.uploader import Uploader
from readingroom.log import get_logger
from readingroom.scraper.models import LinkChannel

logger = get_logger(__name__)

# How long one receive waits before re-checking requeues and termination.
_RECEIVE_TIMEOUT = 0.1


def retry_backoff(retries: int) -> float:
    """Seconds to pause after the *retries*-th access denial of the run."""
    if retries <= 0:
        return 0.0
    if retries <= 10:
        return 0.1 * retries
    if retries <= 100:
        return 0.3 * retries
    return 0.25 * retries


@dataclass
class UploadStats:
    uploaded: int = 0
    duplicates: int = 0
    failed: int = 0
    retries: int = 0
    requeues_dropped: int = 0


class UploadOrchestrator:
    def __init__(
        self,
        uploader: Uploader,
        ingest_queue: IngestionQueue,
        requeue_delay: Optional[float] = None,
        backoff: Callable[[int], float] = retry_backoff,
    ) -> None:
        self.uploader = uploader
        self.ingest_queue = ingest_queue
        self.requeue_delay = requeue_delay if requeue_delay is not None else settings.requeue_delay
        self.backoff = backoff
        self.stats = UploadStats()
        self._requeued: queue.Queue[str] = queue.Queue()
        self._pending = 0
        self._pending_lock = threading.Lock()
        self._cancel = threading.Event()

    def run(self, links: LinkChannel, cancel: Optional[threading.Event] = None) -> int:
        """Consume *links* until it is drained and no retry is pending.

        Returns:
            The number of links committed.

        Raises:
            DeleteFailed: If a denied document cannot be removed; the remote
                side is then in an unknown state and the run must stop.
        """
        if cancel is not None:
            self._cancel = cancel
        while not self._cancel.is_set():
            link = self._next(links)
            if link is None:
                if links.drained and self._idle():
                    break
                continue
            self._process(link)

        logger.info(
            "upload_finished",
            uploaded=self.stats.uploaded,
            duplicates=self.stats.duplicates,
            failed=self.stats.failed,
            retries=self.stats.retries,
        )
        return self.stats.uploaded

    def _next(self, links: LinkChannel) -> Optional[str]:
        try:
            return self._requeued.get_nowait()
        except queue.Empty:
            return links.receive(timeout=_RECEIVE_TIMEOUT)

    def _idle(self) -> bool:
        with self._pending_lock:
            pending = self._pending
        return pending == 0 and self._requeued.empty()

    def _process(self, link: str) -> None:
        logger.info("upload_link", link=link)
        try:
            document = self.uploader.upload_link(link)
        except DuplicateLink:
            self.stats.duplicates += 1
            logger.info("upload_duplicate", link=link)
            return
        except AccessDenied as exc:
            self._recover(link, exc.document)
            return
        except (IngestError, httpx.HTTPError) as exc:
            self.stats.failed += 1
            logger.error("upload_failed", link=link, error=str(exc))
            return

        try:
            self.ingest_queue.add(document)
        except ValueError as exc:
            self.stats.failed += 1
            logger.error("upload_enqueue_failed", link=link, document=document.id, error=str(exc))
            return
        self.stats.uploaded += 1
        logger.info("upload_committed", link=link, document=document.id, title=document.title)

    def _recover(self, link: str, document: Document) -> None:
        self.stats.retries += 1
        retries = self.stats.retries
        logger.warning("upload_access_denied", link=link, retries=retries)

        if document.location:
            try:
                self.uploader.client.remove_documents([document.location])
            except DeleteFailed as exc:
                logger.error("upload_delete_failed", location=document.location, error=str(exc))
                raise
            logger.info("upload_deleted", location=document.location)
        else:
            logger.warning("upload_delete_skipped", link=link, reason="no location")

        self.uploader.forget(link)
        self._schedule_requeue(link)
        time.sleep(self.backoff(retries))

    def _schedule_requeue(self, link: str) -> None:
        with self._pending_lock:
            self._pending += 1
        thread = threading.Thread(target=self._requeue, args=(link,), name="upload-requeue", daemon=True)
        thread.start()

    def _requeue(self, link: str) -> None:
        dropped = self._cancel.wait(self.requeue_delay)
        if dropped:
            logger.info("upload_requeue_dropped", link=link)
        else:
            self._requeued.put(link)
        with self._pending_lock:
            self._pending -= 1
            if dropped:
                self.stats.requeues_dropped += 1
