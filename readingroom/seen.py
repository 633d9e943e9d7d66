"""Link identity and the seen set used for de-duplication.

A link may appear in two forms: bare (``https://host/doc``) or tagged with
the ingestion API's ``link://`` scheme prefix (``link://https://host/doc``).
Both forms identify the same document, so every membership check and every
mark covers both.
"""

from __future__ import annotations

from typing import Protocol

from readingroom.sync import RWLock

LINK_SCHEME = "link://"


def normalize_link(link: str) -> str:
    """Return the bare form of *link*."""
    link = link.strip()
    while link.startswith(LINK_SCHEME):
        link = link[len(LINK_SCHEME):]
    return link


def link_keys(link: str) -> tuple[str, str]:
    """Return ``(bare, tagged)`` keys for *link*."""
    bare = normalize_link(link)
    return bare, LINK_SCHEME + bare


class SeenStore(Protocol):
    """Pluggable membership store for already-processed links.

    Implementations must treat the bare and ``link://`` forms of a link as
    one key, and ``check_and_mark`` must be atomic.
    """

    def __len__(self) -> int: ...

    def has(self, key: str) -> bool: ...

    def mark(self, key: str) -> None: ...

    def discard(self, key: str) -> None: ...

    def check_and_mark(self, key: str) -> bool: ...


class MemorySeenSet:
    """In-memory, thread-safe seen set.

    ``check_and_mark`` performs the membership test and the mark inside one
    write-locked critical section, so two threads racing on the same link
    can never both see it as new.
    """

    def __init__(self) -> None:
        self._keys: set[str] = set()
        self._lock = RWLock()

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._keys)

    def __contains__(self, link: object) -> bool:
        return isinstance(link, str) and self.has(link)

    def has(self, key: str) -> bool:
        with self._lock.read_locked():
            return any(k in self._keys for k in link_keys(key))

    def mark(self, key: str) -> None:
        with self._lock.write_locked():
            self._keys.update(link_keys(key))

    def discard(self, key: str) -> None:
        with self._lock.write_locked():
            self._keys.difference_update(link_keys(key))

    def check_and_mark(self, key: str) -> bool:
        """Mark *key* as seen; return ``True`` only if it was unseen before."""
        keys = link_keys(key)
        with self._lock.read_locked():
            if any(k in self._keys for k in keys):
                return False
        # Re-checked under the write lock: another thread may have marked it.
        with self._lock.write_locked():
            if any(k in self._keys for k in keys):
                return False
            self._keys.update(keys)
            return True
