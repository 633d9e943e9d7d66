"""Client for the downstream document-ingestion API.

Every call goes through a :class:`~readingroom.net.client.GatedClient`, so a
paused network gate pauses ingestion traffic too.

Endpoints (relative to ``settings.ingest_endpoint``)
-----------------------------------------------------
``GET    v1/auth``: API key check.
``POST   v1/document/upload-link``: ingest a URL.
``POST   v1/document/upload``: ingest raw file bytes.
``POST   v1/document/raw-text``: ingest plain text.
``DELETE v1/system/remove-documents``: remove documents by location.
``POST   v1/workspace/<slug>/update-embeddings``: embed documents in bulk.
``GET    v1/documents``: list ingested documents.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from readingroom.config import settings
from readingroom.errors import ConfigError, DeleteFailed, UploadFailed
from readingroom.ingest.models import Item, UploadResponse, flatten_documents
from readingroom.log import get_logger
from readingroom.net.client import GatedClient

logger = get_logger(__name__)


class IngestClient:
    def __init__(
        self,
        http: GatedClient,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        workspace: Optional[str] = None,
    ) -> None:
        self.http = http
        self.endpoint = (endpoint if endpoint is not None else settings.ingest_endpoint).rstrip("/") + "/"
        self.api_key = api_key if api_key is not None else settings.ingest_api_key
        self.workspace = workspace if workspace is not None else settings.ingest_workspace

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return self.endpoint + path.lstrip("/")

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _upload_response(self, response: httpx.Response, what: str) -> UploadResponse:
        if response.status_code != 200:
            raise UploadFailed(f"failed to upload {what}: HTTP {response.status_code}")
        try:
            return UploadResponse.from_api(response.json())
        except ValueError as exc:
            raise UploadFailed(f"failed to decode {what} response: {exc}") from exc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def check_auth(self) -> None:
        """Verify the API key.

        Raises:
            ConfigError: If the API answers anything but 200; the server's
                message is included.
        """
        response = self.http.get(self._url("v1/auth"), headers=self._headers())
        if response.status_code == 200:
            return
        try:
            message = response.json().get("message") or response.text
        except ValueError:
            message = response.text
        raise ConfigError(f"ingestion API rejected credentials ({response.status_code}): {message}")

    def upload_link(self, link: str) -> UploadResponse:
        response = self.http.post(
            self._url("v1/document/upload-link"),
            json={"link": link},
            headers=self._headers(),
        )
        return self._upload_response(response, "link")

    def upload_file(self, filename: str, data: bytes, content_type: str = "application/pdf") -> UploadResponse:
        response = self.http.post(
            self._url("v1/document/upload"),
            files={"file": (filename, data, content_type)},
            headers=self._headers(),
        )
        return self._upload_response(response, "file")

    def upload_raw_text(self, url: str, text: str, title: Optional[str] = None) -> UploadResponse:
        payload = {
            "textContent": text,
            "metadata": {"title": title or url, "url": url},
        }
        response = self.http.post(
            self._url("v1/document/raw-text"),
            json=payload,
            headers=self._headers(),
        )
        return self._upload_response(response, "raw text")

    def remove_documents(self, locations: List[str]) -> None:
        """Delete documents by location.

        Raises:
            DeleteFailed: On a transport error or non-200 answer.
        """
        try:
            response = self.http.request(
                "DELETE",
                self._url("v1/system/remove-documents"),
                json={"names": locations},
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            raise DeleteFailed(f"failed to remove documents: {exc}") from exc
        if response.status_code != 200:
            raise DeleteFailed(f"failed to remove documents: HTTP {response.status_code}")

    def update_embeddings(self, adds: List[str], deletes: Optional[List[str]] = None) -> None:
        """Add (and optionally remove) documents in the workspace in one call.

        Raises:
            UploadFailed: On a non-200 answer.
        """
        payload: Dict[str, Any] = {}
        if adds:
            payload["adds"] = adds
        if deletes:
            payload["deletes"] = deletes
        response = self.http.post(
            self._url(f"v1/workspace/{self.workspace}/update-embeddings"),
            json=payload,
            headers=self._headers(),
        )
        if response.status_code != 200:
            raise UploadFailed(f"error adding documents, bad status code: {response.status_code}")

    def list_documents(self) -> Dict[str, List[Item]]:
        """Return every ingested document grouped by top-level folder."""
        response = self.http.get(self._url("v1/documents"), headers=self._headers())
        if response.status_code != 200:
            raise UploadFailed(f"failed to get documents: HTTP {response.status_code}")
        folders = flatten_documents(response.json())
        logger.info("documents_listed", count=sum(len(items) for items in folders.values()))
        return folders
