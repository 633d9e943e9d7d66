"""Named-pipe signal used to ask an external process to change the network.

When the source starts denying access, one byte is written to a FIFO that a
VPN helper (or any other operator tool) reads to rotate its exit.  The
write happens while the network gate is held exclusively, so no request is
sent until the reader has picked the signal up and the gate is released.
"""

from __future__ import annotations

import os
import stat
import threading

from readingroom.log import get_logger
from readingroom.net.gate import NetworkGate

logger = get_logger(__name__)


class FifoSignaller:
    def __init__(self, path: str, gate: NetworkGate) -> None:
        self.path = path
        self.gate = gate
        self._writing = threading.Event()

    @property
    def writing(self) -> bool:
        return self._writing.is_set()

    def _ensure_fifo(self) -> None:
        try:
            mode = os.stat(self.path).st_mode
        except FileNotFoundError:
            os.mkfifo(self.path, 0o755)
            return
        if not stat.S_ISFIFO(mode):
            raise OSError(f"{self.path} exists and is not a named pipe")

    def signal(self) -> bool:
        """Start a background write to the FIFO.

        Returns ``False`` without doing anything when a write is already in
        flight.

        Raises:
            OSError: If the path is empty, or the FIFO cannot be created.
        """
        if not self.path.strip():
            raise OSError("empty FIFO path")
        if self._writing.is_set():
            return False
        self._ensure_fifo()
        self._writing.set()
        thread = threading.Thread(target=self._write, name="fifo-signal", daemon=True)
        thread.start()
        return True

    def _write(self) -> None:
        try:
            self.gate.acquire_exclusive()
            try:
                # Opening a FIFO for writing blocks until a reader opens it.
                with open(self.path, "wb") as fifo:
                    fifo.write(b"x")
                logger.info("fifo_signal_sent", path=self.path)
            except OSError as exc:
                logger.error("fifo_signal_failed", path=self.path, error=str(exc))
            finally:
                self.gate.release_exclusive(reason="after FIFO signal")
        finally:
            self._writing.clear()
