"""Network package: the process-wide gate and gated HTTP access."""

from readingroom.net.client import GatedClient
from readingroom.net.fifo import FifoSignaller
from readingroom.net.gate import DEFAULT_GATE, GateRegistry, NetworkGate

__all__ = ["GatedClient", "FifoSignaller", "GateRegistry", "NetworkGate", "DEFAULT_GATE"]
