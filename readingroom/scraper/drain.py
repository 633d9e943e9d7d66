"""Fan-in of every page channel into one de-duplicated link stream."""

from __future__ import annotations

import threading

from readingroom.log import get_logger
from readingroom.scraper.models import Collection, LinkChannel
from readingroom.seen import MemorySeenSet, SeenStore

logger = get_logger(__name__)

# How often the drain loop re-checks cancellation while joining readers.
_JOIN_INTERVAL = 0.1


class DrainPipeline:
    """Merge the page channels of *collection* into a single output channel.

    Pages are visited in increasing index order, each through its own reader
    thread, so slow pages do not hold back later ones.  A link seen on any
    earlier page (in bare or ``link://`` form) is dropped.

    Usage::

        links, done = DrainPipeline(collection).start(cancel)
        for link in links:
            ...
    """

    def __init__(self, collection: Collection, seen: SeenStore | None = None) -> None:
        self.collection = collection
        self.seen = seen if seen is not None else MemorySeenSet()
        self.output = LinkChannel(capacity=collection.max_documents)
        self.done = threading.Event()
        self.forwarded = 0
        self.dropped = 0
        self._counter_lock = threading.Lock()
        self._cancel: threading.Event | None = None
        self._thread: threading.Thread | None = None

    def start(self, cancel: threading.Event | None = None) -> tuple[LinkChannel, threading.Event]:
        """Spawn the drain loop; return ``(output channel, done event)``."""
        if self._thread is not None:
            raise RuntimeError("drain already started")
        self._cancel = cancel
        self._thread = threading.Thread(target=self._run, name="drain", daemon=True)
        self._thread.start()
        return self.output, self.done

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _cancelled(self) -> bool:
        return self._cancel is not None and self._cancel.is_set()

    def _run(self) -> None:
        readers: list[threading.Thread] = []
        index = self.collection.start_offset
        try:
            while not self._cancelled():
                channel = self.collection.wait_for_page(index, cancel=self._cancel)
                if channel is None:
                    break
                reader = threading.Thread(
                    target=self._read_page,
                    args=(index, channel),
                    name=f"drain-page-{index}",
                    daemon=True,
                )
                reader.start()
                readers.append(reader)
                index += 1

            # Readers are not interrupted on cancellation; only a normal
            # finish waits for them before closing the output.
            for reader in readers:
                while reader.is_alive() and not self._cancelled():
                    reader.join(_JOIN_INTERVAL)
        finally:
            self.output.close()
            self.done.set()
            logger.info(
                "drain_finished",
                pages=len(readers),
                forwarded=self.forwarded,
                duplicates=self.dropped,
                cancelled=self._cancelled(),
            )

    def _read_page(self, index: int, channel: LinkChannel) -> None:
        for link in channel:
            if not self.seen.check_and_mark(link):
                with self._counter_lock:
                    self.dropped += 1
                continue
            if not self.output.send(link, cancel=self._cancel):
                logger.debug("drain_send_stopped", page=index, link=link)
                return
            with self._counter_lock:
                self.forwarded += 1
