"""Tests for the ingestion batching queue."""

from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock

import pytest

from readingroom.errors import UploadFailed
from readingroom.ingest import Document, IngestionQueue, document_location


def _doc(i: int) -> Document:
    return Document(id=f"id{i}", location=f"custom-documents/doc-{i}.json")


def _wait_until(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestDocumentLocation:
    def test_appends_id_before_extension(self) -> None:
        doc = Document(id="abc", location="custom-documents/memo.json")
        assert document_location(doc) == "custom-documents/memo-abc.json"

    def test_location_already_named_is_unchanged(self) -> None:
        doc = Document(id="abc", location="custom-documents/memo-abc.json")
        assert document_location(doc) == "custom-documents/memo-abc.json"

    def test_no_id_is_unchanged(self) -> None:
        assert document_location(Document(location="custom-documents/memo.json")) == "custom-documents/memo.json"


class TestIngestionQueue:
    def test_one_batch_per_tick(self) -> None:
        client = MagicMock()
        ingest_queue = IngestionQueue(client, capacity=1000, interval=0.2)
        for i in range(5):
            ingest_queue.add(_doc(i))

        assert _wait_until(lambda: client.update_embeddings.called)
        time.sleep(0.5)  # at least two further, empty ticks
        ingest_queue.close()

        assert client.update_embeddings.call_count == 1
        adds = client.update_embeddings.call_args.args[0]
        assert adds == [f"custom-documents/doc-{i}-id{i}.json" for i in range(5)]
        assert ingest_queue.flushed == 5
        assert ingest_queue.batches == 1

    def test_close_flushes_remaining(self) -> None:
        client = MagicMock()
        ingest_queue = IngestionQueue(client, interval=60)
        ingest_queue.add(_doc(1))
        ingest_queue.close(timeout=2)

        client.update_embeddings.assert_called_once_with(["custom-documents/doc-1-id1.json"])
        assert len(ingest_queue) == 0

    def test_full_buffer_forces_flush(self) -> None:
        client = MagicMock()
        ingest_queue = IngestionQueue(client, capacity=2, interval=60, full_wait=0.2)
        for i in range(3):
            ingest_queue.add(_doc(i))

        assert _wait_until(lambda: client.update_embeddings.call_count >= 1)
        ingest_queue.close(timeout=2)

        batches = [c.args[0] for c in client.update_embeddings.call_args_list]
        assert [len(b) for b in batches] == [2, 1]

    def test_close_flushes_document_added_during_last_post(self) -> None:
        client = MagicMock()
        posting = threading.Event()
        release = threading.Event()

        def slow_update(adds):
            if not posting.is_set():
                posting.set()
                release.wait(2)

        client.update_embeddings.side_effect = slow_update
        ingest_queue = IngestionQueue(client, interval=60)
        ingest_queue.add(Document(id="id1", location="a.json"))
        ingest_queue.flush_now()
        assert posting.wait(2)

        ingest_queue.add(Document(id="id2", location="d.json"))
        closer = threading.Thread(target=ingest_queue.close, kwargs={"timeout": 2})
        closer.start()
        time.sleep(0.05)
        release.set()
        closer.join(3)

        batches = [c.args[0] for c in client.update_embeddings.call_args_list]
        assert batches == [["a-id1.json"], ["d-id2.json"]]
        assert len(ingest_queue) == 0

    def test_failed_batch_is_dropped(self) -> None:
        client = MagicMock()
        client.update_embeddings.side_effect = UploadFailed("HTTP 500")
        ingest_queue = IngestionQueue(client, interval=60)
        ingest_queue.add(_doc(1))
        ingest_queue.add(_doc(2))
        ingest_queue.close(timeout=2)

        assert ingest_queue.dropped == 2
        assert ingest_queue.flushed == 0
        assert len(ingest_queue) == 0

    def test_missing_location_rejected(self) -> None:
        ingest_queue = IngestionQueue(MagicMock(), interval=60)
        with pytest.raises(ValueError):
            ingest_queue.add(Document(id="x"))
        ingest_queue.close(timeout=2)

    def test_start_is_idempotent(self) -> None:
        ingest_queue = IngestionQueue(MagicMock(), interval=60)
        ingest_queue.start()
        threads = list(ingest_queue._threads)
        ingest_queue.start()
        ingest_queue.add(_doc(1))

        assert ingest_queue._threads == threads
        assert len(threads) == 2
        ingest_queue.close(timeout=2)

    def test_close_without_start_makes_no_call(self) -> None:
        client = MagicMock()
        ingest_queue = IngestionQueue(client)
        ingest_queue.close()
        client.update_embeddings.assert_not_called()
        assert not ingest_queue.started
