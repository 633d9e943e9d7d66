"""Named, process-wide network gate.

Every outbound HTTP call holds its gate in shared mode for the duration of
the request.  Taking the gate exclusively pauses all traffic under that
name until the hold is released, either by the holder, after a delay, or by
an external event such as ``SIGHUP``.

Gates are obtained from a :class:`GateRegistry` that is created once at
start-up and passed to every component that talks to the network::

    registry = GateRegistry()
    gate = registry.get("net")

    with gate.shared():
        client.get(url)
"""

from __future__ import annotations

import signal
import threading
import time
from contextlib import contextmanager
from typing import Iterator

from readingroom.log import get_logger
from readingroom.sync import RWLock

logger = get_logger(__name__)

DEFAULT_GATE = "net"


class NetworkGate:
    """A readers-writer lock with logging and external release triggers."""

    def __init__(self, name: str, release_delay: float = 0.0) -> None:
        self.name = name
        self.release_delay = release_delay
        self._lock = RWLock()
        # Serialises release attempts so a signal and a direct release
        # cannot both act on the same hold.
        self._releasing = threading.Lock()

    def __repr__(self) -> str:
        return f"NetworkGate({self.name!r})"

    @property
    def paused(self) -> bool:
        """``True`` while an exclusive hold is outstanding."""
        return self._lock.writer_held

    # ------------------------------------------------------------------
    # Shared (per request)
    # ------------------------------------------------------------------

    def acquire_shared(self) -> None:
        self._lock.acquire_read()

    def release_shared(self) -> None:
        self._lock.release_read()

    @contextmanager
    def shared(self) -> Iterator[None]:
        self.acquire_shared()
        try:
            yield
        finally:
            self.release_shared()

    # ------------------------------------------------------------------
    # Exclusive (pause all traffic)
    # ------------------------------------------------------------------

    def acquire_exclusive(self) -> None:
        self._lock.acquire_write()
        logger.info("gate_locked", gate=self.name)

    def release_exclusive(self, reason: str = "") -> bool:
        """Release an exclusive hold after ``release_delay`` seconds.

        Returns ``False`` when another release is already in progress or no
        exclusive hold is outstanding; both cases are logged as races.
        """
        if self.release_delay > 0:
            time.sleep(self.release_delay)
        if not self._releasing.acquire(blocking=False):
            logger.warning("gate_release_race", gate=self.name, detail="release already in progress")
            return False
        try:
            if not self._lock.release_write():
                logger.warning("gate_release_race", gate=self.name, detail="not exclusively held")
                return False
        finally:
            self._releasing.release()
        logger.info("gate_unlocked", gate=self.name, reason=reason or None)
        return True

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        self.acquire_exclusive()
        try:
            yield
        finally:
            self.release_exclusive()

    def pause_for(self, seconds: float) -> threading.Timer:
        """Take the gate exclusively and release it automatically later."""
        self.acquire_exclusive()
        timer = threading.Timer(seconds, self.release_exclusive, kwargs={"reason": "after delay"})
        timer.daemon = True
        timer.start()
        return timer

    def release_on(self, event: threading.Event, reason: str = "by external event") -> threading.Thread:
        """Release the exclusive hold once *event* is set (watched in a thread)."""

        def _watch() -> None:
            event.wait()
            self.release_exclusive(reason=reason)

        thread = threading.Thread(target=_watch, name=f"gate-{self.name}-watch", daemon=True)
        thread.start()
        return thread

    def with_sighup_release(self) -> NetworkGate:
        """Release the exclusive hold whenever the process receives ``SIGHUP``.

        Signal handlers can only be installed from the main thread, and the
        signal does not exist on every platform; in both cases this logs a
        warning and leaves the gate unchanged.
        """
        sighup = getattr(signal, "SIGHUP", None)
        if sighup is None:
            logger.warning("gate_sighup_unsupported", gate=self.name)
            return self
        if threading.current_thread() is not threading.main_thread():
            logger.warning("gate_sighup_not_main_thread", gate=self.name)
            return self

        def _handler(signum, frame) -> None:
            # The handler runs on the main thread, which may itself be
            # blocked on this gate; release from a helper thread instead.
            threading.Thread(
                target=self.release_exclusive,
                kwargs={"reason": "by SIGHUP signal"},
                daemon=True,
            ).start()

        signal.signal(sighup, _handler)
        logger.info("gate_sighup_enabled", gate=self.name)
        return self


class GateRegistry:
    """Maps gate names to :class:`NetworkGate` instances, created lazily."""

    def __init__(self, release_delay: float = 0.0) -> None:
        self.release_delay = release_delay
        self._gates: dict[str, NetworkGate] = {}
        self._lock = threading.Lock()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._gates

    def get(self, name: str = DEFAULT_GATE) -> NetworkGate:
        with self._lock:
            gate = self._gates.get(name)
            if gate is None:
                gate = NetworkGate(name, release_delay=self.release_delay)
                self._gates[name] = gate
            return gate
