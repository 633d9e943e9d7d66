"""Ingestion package: API client, uploads, retries, batching and PDFs."""

from readingroom.ingest.batch_queue import IngestionQueue, document_location
from readingroom.ingest.client import IngestClient
from readingroom.ingest.models import Document, Item, UploadResponse, flatten_documents
from readingroom.ingest.orchestrator import UploadOrchestrator, UploadStats, retry_backoff
from readingroom.ingest.pdf import PDFFallbackChain, PDFResult, clean_pdf_url, extract_keywords, find_pdf_links
from readingroom.ingest.uploader import Uploader, is_access_denied, mentions_pdf

__all__ = [
    "IngestionQueue",
    "document_location",
    "IngestClient",
    "Document",
    "Item",
    "UploadResponse",
    "flatten_documents",
    "UploadOrchestrator",
    "UploadStats",
    "retry_backoff",
    "PDFFallbackChain",
    "PDFResult",
    "clean_pdf_url",
    "extract_keywords",
    "find_pdf_links",
    "Uploader",
    "is_access_denied",
    "mentions_pdf",
]
