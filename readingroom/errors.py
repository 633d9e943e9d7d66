"""Exception taxonomy shared by the scraper and the ingestion client."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from readingroom.ingest.models import Document


class ReadingRoomError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(ReadingRoomError):
    """The run configuration is invalid."""


# ---------------------------------------------------------------------------
# Source site
# ---------------------------------------------------------------------------

class BadStatusCode(ReadingRoomError):
    """The source answered with a status code the caller cannot handle."""

    def __init__(self, status_code: int, url: str = "") -> None:
        self.status_code = status_code
        self.url = url
        detail = f"bad status code: {status_code}"
        if url:
            detail += f" ({url})"
        super().__init__(detail)


class CollectionNotFound(ReadingRoomError):
    """The reading room collection does not exist."""


class NoPagesFound(ReadingRoomError):
    """The very first page probed returned 404."""


class NoDocumentsFound(ReadingRoomError):
    """A listing page was fetched but no document link matched."""


class PageNotFound(ReadingRoomError):
    """A listing page returned 404 when fetched."""


# ---------------------------------------------------------------------------
# Ingestion API
# ---------------------------------------------------------------------------

class IngestError(ReadingRoomError):
    """Base class for ingestion API failures."""


class DuplicateLink(IngestError):
    """The link has already been seen and is not uploaded again."""


class AccessDenied(IngestError):
    """The source blocked retrieval; the created document must be removed."""

    def __init__(self, link: str, document: Document) -> None:
        self.link = link
        self.document = document
        super().__init__(f"access denied: {link}")


class UploadFailed(IngestError):
    """The ingestion API rejected or could not process an upload."""


class DeleteFailed(IngestError):
    """A document could not be removed from the ingestion API."""
