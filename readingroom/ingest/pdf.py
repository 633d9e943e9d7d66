"""PDF fallback chain.

Listing pages sometimes embed the document as a PDF that the link upload
cannot ingest.  For each PDF referenced by such a page the chain tries, in
order, stopping at the first stage that produces something:

1. upload the PDF URL as an ordinary link;
2. download the PDF bytes (as given, then with the cleaned URL) and upload
   them as a file;
3. extract keywords from the bytes with ``pypdf`` and upload them as raw
   text.

Scans run in background threads, at most ``pdf_max_concurrency`` at a time.
"""

from __future__ import annotations

import io
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin

import httpx
import pypdf
from pypdf.errors import PdfReadError

from readingroom.config import settings
from readingroom.errors import AccessDenied, DeleteFailed, DuplicateLink, IngestError
from readingroom.ingest.client import IngestClient
from readingroom.ingest.models import Document
from readingroom.ingest.uploader import Uploader
from readingroom.log import get_logger
from readingroom.net.client import GatedClient

logger = get_logger(__name__)

_PDF_LINK = re.compile(
    r'"application/pdf" src="[^"]*" /> <a href="([^"]*\.pdf)" type="application/pdf[^"]*"[^>]*>.*?</a>',
    re.IGNORECASE,
)
_KEYWORD_SPLIT = re.compile(r"[,;\s]+")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def clean_pdf_url(url: str) -> str:
    """Normalise a reading-room PDF URL.

    The site renders PDF links with inconsistent casing and paths; the file
    actually lives under ``readingroom/docs/`` with an upper-cased name.
    """
    base, _, filename = url.rpartition("/")
    stem = filename
    for suffix in (".pdf", ".PDF"):
        if stem.endswith(suffix):
            stem = stem[: -len(suffix)]
    url = f"{base}/{stem.upper()}.pdf"
    url = url.replace("//", "/")
    url = url.replace("https:/", "https://").replace("http:/", "http://")
    return url.replace("readingroom/document", "readingroom/docs", 1)


def find_pdf_links(html: str, page_url: str = "") -> List[str]:
    """Return the PDF links embedded in a page, cleaned where needed."""
    links: List[str] = []
    for match in _PDF_LINK.finditer(html):
        href = match.group(1).strip()
        if not href or ".pdf" not in href.lower():
            continue
        if page_url:
            href = urljoin(page_url, href)
        if "document" in href:
            href = clean_pdf_url(href)
        links.append(href)
    return links


def extract_keywords(data: bytes) -> List[str]:
    """Return keywords for the PDF in *data*.

    Uses the ``/Keywords`` document metadata; when that is missing, falls
    back to the words of the extracted page text.  Returns ``[]`` if the
    bytes cannot be parsed.
    """
    if not data:
        return []
    try:
        reader = pypdf.PdfReader(io.BytesIO(data))
        metadata = reader.metadata or {}
        raw = metadata.get("/Keywords") or ""
        keywords = [k for k in _KEYWORD_SPLIT.split(str(raw)) if k]
        if keywords:
            return keywords
        words: List[str] = []
        for page in reader.pages:
            words.extend((page.extract_text() or "").split())
        return words
    except (PdfReadError, ValueError, KeyError) as exc:
        logger.warning("pdf_keywords_failed", error=str(exc))
        return []


@dataclass
class PDFResult:
    """Outcome of the first chain stage that succeeded."""

    url: str
    stage: str
    document: Optional[Document] = None
    raw: Dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------

class PDFFallbackChain:
    def __init__(
        self,
        uploader: Uploader,
        client: IngestClient,
        http: GatedClient,
        max_concurrency: Optional[int] = None,
        permit_timeout: Optional[float] = None,
    ) -> None:
        self.uploader = uploader
        self.client = client
        self.http = http
        self.permit_timeout = permit_timeout if permit_timeout is not None else settings.pdf_permit_timeout
        self._permits = threading.BoundedSemaphore(max_concurrency or settings.pdf_max_concurrency)
        self._results_lock = threading.Lock()
        self.results: List[PDFResult] = []

    def scan(self, page_url: str) -> threading.Thread:
        """Scan *page_url* for PDFs in a background thread."""
        thread = threading.Thread(
            target=self._scan_with_permit,
            args=(page_url,),
            name="pdf-scan",
            daemon=True,
        )
        thread.start()
        return thread

    def _scan_with_permit(self, page_url: str) -> None:
        if not self._permits.acquire(timeout=self.permit_timeout):
            logger.error("pdf_permit_timeout", page=page_url, timeout=self.permit_timeout)
            return
        try:
            self.scan_page(page_url)
        except Exception as exc:
            logger.error("pdf_scan_failed", page=page_url, error=str(exc))
        finally:
            self._permits.release()

    def scan_page(self, page_url: str) -> List[PDFResult]:
        """Fetch *page_url* and run the chain for every PDF it references."""
        logger.info("pdf_scan", page=page_url)
        response = self.http.get(page_url)
        if response.status_code != 200 or not response.text:
            logger.warning("pdf_scan_bad_page", page=page_url, status=response.status_code)
            return []

        links = find_pdf_links(response.text, page_url)
        if not links:
            logger.info("pdf_scan_no_documents", page=page_url)
            return []

        results: List[PDFResult] = []
        for pdf_url in links:
            logger.info("pdf_found", page=page_url, pdf=pdf_url)
            result = self.run(pdf_url)
            if result is not None:
                results.append(result)
        return results

    def fetch_pdf(self, url: str) -> Tuple[str, Optional[bytes]]:
        """Download PDF bytes, trying *url* and then its cleaned form."""
        if not url.endswith(".pdf"):
            url += ".pdf"
        for candidate in dict.fromkeys([url, clean_pdf_url(url)]):
            try:
                response = self.http.get(candidate)
            except httpx.HTTPError as exc:
                logger.warning("pdf_fetch_failed", url=candidate, error=str(exc))
                continue
            if response.status_code == 200 and response.content:
                return candidate, response.content
            logger.warning("pdf_fetch_failed", url=candidate, status=response.status_code)
        return url, None

    def run(self, pdf_url: str) -> Optional[PDFResult]:
        """Run the three stages for one PDF; return the first success."""
        # Stage 1: ordinary link upload
        try:
            document = self.uploader.upload_link(pdf_url)
            return self._record(PDFResult(pdf_url, "link", document=document))
        except DuplicateLink:
            logger.info("pdf_duplicate", pdf=pdf_url)
            return None
        except AccessDenied as exc:
            logger.warning("pdf_link_access_denied", pdf=pdf_url)
            self._remove_denied(exc.document)
        except (IngestError, httpx.HTTPError) as exc:
            logger.warning("pdf_link_upload_failed", pdf=pdf_url, error=str(exc))

        # Stage 2: raw bytes upload
        source_url, data = self.fetch_pdf(pdf_url)
        if data:
            filename = source_url.rpartition("/")[2] or "document.pdf"
            try:
                response = self.client.upload_file(filename, data)
                if response.success or response.documents:
                    document = response.documents[0] if response.documents else None
                    return self._record(PDFResult(source_url, "bytes", document=document, raw=response.raw))
                logger.warning("pdf_bytes_upload_empty", pdf=source_url, error=response.error)
            except (IngestError, httpx.HTTPError) as exc:
                logger.warning("pdf_bytes_upload_failed", pdf=source_url, bytes=len(data), error=str(exc))

        # Stage 3: keyword text upload
        keywords = extract_keywords(data) if data else []
        if not keywords:
            logger.error("pdf_keywords_empty", pdf=pdf_url)
            return None
        text = " ".join(keywords)
        logger.info("pdf_keywords", pdf=pdf_url, keywords=len(keywords))
        try:
            response = self.client.upload_raw_text(pdf_url, text)
        except (IngestError, httpx.HTTPError) as exc:
            logger.error("pdf_keywords_upload_failed", pdf=pdf_url, error=str(exc))
            return None
        document = response.documents[0] if response.documents else None
        return self._record(PDFResult(pdf_url, "keywords", document=document, raw=response.raw))

    def _remove_denied(self, document: Document) -> None:
        if not document.location:
            return
        try:
            self.client.remove_documents([document.location])
        except DeleteFailed as exc:
            logger.error("pdf_delete_failed", location=document.location, error=str(exc))
            return
        logger.info("pdf_deleted", location=document.location)

    def _record(self, result: PDFResult) -> PDFResult:
        with self._results_lock:
            self.results.append(result)
        logger.info("pdf_uploaded", pdf=result.url, stage=result.stage)
        return result
