"""Data models for the collection crawl."""

from __future__ import annotations

import threading
from collections import deque
from typing import Iterator

from readingroom.config import settings

# Upper bound on how long a blocked sender sleeps before re-checking its
# cancellation event.
_WAKEUP = 0.1


class LinkChannel:
    """A bounded, closable FIFO of links shared between threads.

    ``capacity`` of 0 means unbounded.  Sending into a closed or abandoned
    channel returns ``False``; receivers see the remaining buffered links
    and then ``None``.
    """

    def __init__(self, capacity: int = 0) -> None:
        self.capacity = capacity
        self._items: deque[str] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._abandoned = False

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def abandoned(self) -> bool:
        with self._cond:
            return self._abandoned

    @property
    def drained(self) -> bool:
        """``True`` once the channel is finished and every link was received."""
        with self._cond:
            return (self._closed or self._abandoned) and not self._items

    def _finished(self) -> bool:
        return self._closed or self._abandoned

    def send(self, link: str, cancel: threading.Event | None = None) -> bool:
        with self._cond:
            while self.capacity and len(self._items) >= self.capacity:
                if self._finished() or (cancel is not None and cancel.is_set()):
                    return False
                self._cond.wait(_WAKEUP)
            if self._finished():
                return False
            self._items.append(link)
            self._cond.notify_all()
            return True

    def receive(self, timeout: float | None = None) -> str | None:
        """Return the next link, or ``None`` on timeout or once drained."""
        with self._cond:
            ready = self._cond.wait_for(lambda: self._items or self._finished(), timeout)
            if not ready or not self._items:
                return None
            link = self._items.popleft()
            self._cond.notify_all()
            return link

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def abandon(self) -> None:
        """Stop the channel without closing it; buffered links stay readable."""
        with self._cond:
            self._abandoned = True
            self._cond.notify_all()

    def __iter__(self) -> Iterator[str]:
        while True:
            link = self.receive()
            if link is None:
                return
            yield link


class Collection:
    """A reading room collection being crawled once, in memory.

    Holds one :class:`LinkChannel` per discovered page index.  Discovery is
    the only writer (``register_page`` and ``mark_complete``); the drain
    pipeline only reads.  Page indices are zero-based: ``start_page`` 1 is
    index 0.
    """

    def __init__(
        self,
        name: str,
        max_pages: int | None = None,
        start_page: int = 1,
        page_capacity: int | None = None,
        channel_capacity: int | None = None,
    ) -> None:
        self.name = name
        self.page_capacity = page_capacity or settings.page_capacity
        self.channel_capacity = channel_capacity or settings.page_channel_capacity
        self.start_offset = max(start_page, 1) - 1
        self.max_documents = self.page_capacity
        self.pages: dict[int, LinkChannel] = {}
        self._cond = threading.Condition()
        self._complete = threading.Event()
        self.with_max_pages(max_pages or settings.default_max_pages)

    def __repr__(self) -> str:
        return f"Collection({self.name!r}, pages={self.page_count}, complete={self.complete})"

    def with_max_pages(self, max_pages: int) -> Collection:
        # Never less than one page worth of documents.
        self.max_documents = max(max_pages, 1) * self.page_capacity
        return self

    @property
    def max_pages(self) -> int:
        return -(-self.max_documents // self.page_capacity)

    @property
    def page_count(self) -> int:
        with self._cond:
            return len(self.pages)

    @property
    def complete(self) -> bool:
        return self._complete.is_set()

    def register_page(self, index: int) -> LinkChannel:
        with self._cond:
            channel = LinkChannel(self.channel_capacity)
            self.pages[index] = channel
            self._cond.notify_all()
            return channel

    def page(self, index: int) -> LinkChannel | None:
        with self._cond:
            return self.pages.get(index)

    def mark_complete(self) -> bool:
        """Signal that no more pages will appear.

        Returns ``False`` if the collection was already complete.
        """
        with self._cond:
            if self._complete.is_set():
                return False
            self._complete.set()
            self._cond.notify_all()
            return True

    def wait_for_page(
        self,
        index: int,
        cancel: threading.Event | None = None,
        poll_interval: float | None = None,
    ) -> LinkChannel | None:
        """Block until page *index* is registered.

        Returns ``None`` once the collection is complete without that page,
        or when *cancel* is set.  *poll_interval* bounds each wait so a
        cancellation set without a notification is still noticed.
        """
        interval = poll_interval if poll_interval is not None else settings.drain_poll_interval
        with self._cond:
            while True:
                channel = self.pages.get(index)
                if channel is not None:
                    return channel
                if self._complete.is_set() or (cancel is not None and cancel.is_set()):
                    return None
                self._cond.wait(interval)
