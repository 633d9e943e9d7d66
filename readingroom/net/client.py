"""httpx client whose every request runs under a shared network gate hold."""

from __future__ import annotations

import itertools
import random
import threading
from typing import Any

import httpx

from readingroom.config import settings
from readingroom.net.gate import NetworkGate

# Rotated per request; even positions are upper-cased.
_AGENT_TOKENS = ["spooky", "george-foreman", "varth-dader", "war-stars", "elusive"]


class _UserAgents:
    def __init__(self) -> None:
        self._cycle = itertools.cycle(range(len(_AGENT_TOKENS)))
        self._lock = threading.Lock()

    def next(self) -> str:
        with self._lock:
            index = next(self._cycle)
        token = _AGENT_TOKENS[index]
        if index % 2 == 0:
            token = token.upper()
        return f"{token}/{random.randint(0, 84)}.{random.randint(0, 9)}"


class GatedClient:
    """Thin wrapper around :class:`httpx.Client`.

    The underlying client is thread-safe and shared by every task; each
    request holds *gate* in shared mode so an exclusive hold elsewhere pauses
    it before it is sent.
    """

    def __init__(
        self,
        gate: NetworkGate,
        timeout: float | None = None,
        rotate_user_agent: bool = True,
    ) -> None:
        self.gate = gate
        self._agents = _UserAgents() if rotate_user_agent else None
        self._client = httpx.Client(
            timeout=timeout if timeout is not None else settings.request_timeout,
            follow_redirects=True,
        )

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._agents is not None:
            headers = dict(kwargs.pop("headers", None) or {})
            headers.setdefault("User-Agent", self._agents.next())
            kwargs["headers"] = headers
        with self.gate.shared():
            return self._client.request(method, url, **kwargs)

    def head(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("HEAD", url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("POST", url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("DELETE", url, **kwargs)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GatedClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
