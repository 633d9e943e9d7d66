"""Readers-writer lock used by the network gate and the dedup sets."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class RWLock:
    """A writer-preferring readers-writer lock.

    Any number of readers may hold the lock together.  Once a writer is
    waiting, new readers block until that writer has acquired and released
    the lock, so a pending exclusive hold is never starved by shared traffic.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @property
    def writer_held(self) -> bool:
        with self._cond:
            return self._writer

    @property
    def readers(self) -> int:
        with self._cond:
            return self._readers

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_read() called without a read hold")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> bool:
        """Release the write hold.

        Returns ``False`` (and changes nothing) when no write hold exists.
        """
        with self._cond:
            if not self._writer:
                return False
            self._writer = False
            self._cond.notify_all()
            return True

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()
