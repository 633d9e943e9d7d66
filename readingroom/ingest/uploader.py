"""Link uploads with duplicate suppression and access-denial detection."""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional

from readingroom.errors import AccessDenied, DuplicateLink, UploadFailed
from readingroom.ingest.client import IngestClient
from readingroom.ingest.models import Document, Item
from readingroom.log import get_logger
from readingroom.net.fifo import FifoSignaller
from readingroom.seen import MemorySeenSet, SeenStore

if TYPE_CHECKING:
    from readingroom.ingest.pdf import PDFFallbackChain

logger = get_logger(__name__)

_DENIAL_PREFIX = "Access Denied"
_DENIAL_MARKERS = ("the link you are trying to access is undergoing scheduled maintenance",)


def is_access_denied(page_content: str) -> bool:
    """Return ``True`` if *page_content* is the source's block page."""
    if page_content.startswith(_DENIAL_PREFIX):
        return True
    return any(marker in page_content for marker in _DENIAL_MARKERS)


def mentions_pdf(page_content: str) -> bool:
    return ".pdf" in page_content or ".PDF" in page_content


class Uploader:
    """Upload links once each.

    A link is marked seen before its upload starts, inside the same critical
    section as the membership check, so it is never submitted twice
    concurrently.
    """

    def __init__(
        self,
        client: IngestClient,
        seen: Optional[SeenStore] = None,
        fifo: Optional[FifoSignaller] = None,
        pdf_chain: Optional[PDFFallbackChain] = None,
    ) -> None:
        self.client = client
        self.seen = seen if seen is not None else MemorySeenSet()
        self.fifo = fifo
        self.pdf_chain = pdf_chain

    def seed(self, folders: Dict[str, List[Item]]) -> int:
        """Mark every already-ingested document as seen; return the count."""
        count = 0
        for items in folders.values():
            for item in items:
                for key in (item.url, item.chunk_source):
                    if key:
                        self.seen.mark(key)
                count += 1
        logger.info("seen_seeded", documents=count, keys=len(self.seen))
        return count

    def forget(self, link: str) -> None:
        """Make *link* eligible for upload again."""
        self.seen.discard(link)

    def upload_link(self, link: str) -> Document:
        """Upload *link* and return the created document.

        Raises:
            DuplicateLink: If the link was already seen; nothing is sent.
            AccessDenied: If the source served its block page; the exception
                carries the document that was created for it.
            UploadFailed: If the API call fails or returns no document.
        """
        if not self.seen.check_and_mark(link):
            raise DuplicateLink(f"already seen link: {link}")

        response = self.client.upload_link(link)
        if not response.documents:
            raise UploadFailed(f"no documents uploaded for {link}: {response.error}")

        document = response.documents[0]
        if is_access_denied(document.page_content):
            self._signal_network_change()
            raise AccessDenied(link, document)

        if self.pdf_chain is not None and mentions_pdf(document.page_content):
            self.pdf_chain.scan(link)

        return document

    def _signal_network_change(self) -> None:
        if self.fifo is None or not self.fifo.path.strip():
            return
        try:
            self.fifo.signal()
        except OSError as exc:
            logger.error("fifo_signal_failed", path=self.fifo.path, error=str(exc))
