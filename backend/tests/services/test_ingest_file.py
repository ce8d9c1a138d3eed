"""File Ingestion - verifies the background pipeline and its status bookkeeping.

Invariants:
    - Only text-bearing pages are embedded, under the file's namespace
    - Page quota counts blank pages too
    - Every failure leaves the row FAILED and stores nothing for quota/size errors
    - page_count is recorded even when the quota check fails
    - No DB session is open while the PDF is fetched (network work runs detached)
"""

from contextlib import asynccontextmanager
from uuid import uuid4

import pytest

from briefly.core.domain_types import UploadStatus, namespace_for
from briefly.core.errors import DocumentFetchError, EmbeddingAPIError
from briefly.models.file import File
from briefly.services.ingest_file import IngestionClients, run_ingestion

from tests.services.db_helpers import reload
from tests.services.fakes import FakeEmbedder, FakeFetcher

MB = 1024 * 1024


@pytest.fixture
async def processing_file(test_db, seed_user):
    file = File(
        key="key-new", name="notes.pdf", url="https://files.example/key-new",
        user_id=seed_user.id, upload_status=UploadStatus.PROCESSING.value,
    )
    test_db.add(file)
    await test_db.commit()
    await test_db.refresh(file)
    return file


@pytest.fixture
def clients(fetcher, embedder, vector_index):
    return IngestionClients(
        fetcher=fetcher, embedder=embedder, vector_index=vector_index,
    )


async def test_success_embeds_text_pages(
    test_db, fake_db_manager, processing_file, clients, fake_pages,
):
    fake_pages(["Intro text", "", "Conclusion"])

    await run_ingestion(processing_file.id, False, clients)

    file = await reload(test_db, File, processing_file.id)
    assert file.upload_status == UploadStatus.SUCCESS.value
    assert file.page_count == 3
    assert clients.fetcher.urls == ["https://files.example/key-new"]
    assert clients.embedder.document_calls == [["Intro text", "Conclusion"]]
    stored = clients.vector_index.namespaces[namespace_for(processing_file.id)]
    assert [p["page"] for p in stored] == [1, 3]
    assert stored[0]["metadata"] == {"file_name": "notes.pdf"}


async def test_free_plan_page_quota_counts_blank_pages(
    test_db, fake_db_manager, processing_file, clients, fake_pages,
):
    fake_pages(["a", "b", "c", "", "", ""])

    await run_ingestion(processing_file.id, False, clients)

    file = await reload(test_db, File, processing_file.id)
    assert file.upload_status == UploadStatus.FAILED.value
    assert file.page_count == 6
    assert clients.embedder.document_calls == []
    assert clients.vector_index.namespaces == {}


async def test_pro_plan_allows_larger_documents(
    test_db, fake_db_manager, processing_file, clients, fake_pages,
):
    fake_pages([f"page {i}" for i in range(1, 26)])

    await run_ingestion(processing_file.id, True, clients)

    file = await reload(test_db, File, processing_file.id)
    assert file.upload_status == UploadStatus.SUCCESS.value
    assert len(clients.vector_index.namespaces[namespace_for(file.id)]) == 25


async def test_pro_plan_limit_still_enforced(
    test_db, fake_db_manager, processing_file, clients, fake_pages,
):
    fake_pages([f"page {i}" for i in range(1, 27)])

    await run_ingestion(processing_file.id, True, clients)

    file = await reload(test_db, File, processing_file.id)
    assert file.upload_status == UploadStatus.FAILED.value


async def test_blank_document_fails(
    test_db, fake_db_manager, processing_file, clients, fake_pages,
):
    fake_pages(["", "  "])

    await run_ingestion(processing_file.id, False, clients)

    file = await reload(test_db, File, processing_file.id)
    assert file.upload_status == UploadStatus.FAILED.value
    assert clients.embedder.document_calls == []


async def test_oversized_file_fails_before_parsing(
    test_db, fake_db_manager, processing_file, embedder, vector_index, fake_pages,
):
    fake_pages(["never parsed"])
    clients = IngestionClients(
        fetcher=FakeFetcher(data=b"x" * (4 * MB + 1)),
        embedder=embedder, vector_index=vector_index,
    )

    await run_ingestion(processing_file.id, False, clients)

    file = await reload(test_db, File, processing_file.id)
    assert file.upload_status == UploadStatus.FAILED.value
    assert file.page_count is None


async def test_fetch_failure_marks_failed(
    test_db, fake_db_manager, processing_file, embedder, vector_index,
):
    clients = IngestionClients(
        fetcher=FakeFetcher(fail=DocumentFetchError("Not Found (404)", 404)),
        embedder=embedder, vector_index=vector_index,
    )

    await run_ingestion(processing_file.id, False, clients)

    file = await reload(test_db, File, processing_file.id)
    assert file.upload_status == UploadStatus.FAILED.value


async def test_embedding_failure_marks_failed(
    test_db, fake_db_manager, processing_file, fetcher, vector_index, fake_pages,
):
    fake_pages(["text"])
    clients = IngestionClients(
        fetcher=fetcher,
        embedder=FakeEmbedder(fail=EmbeddingAPIError("quota exceeded")),
        vector_index=vector_index,
    )

    await run_ingestion(processing_file.id, False, clients)

    file = await reload(test_db, File, processing_file.id)
    assert file.upload_status == UploadStatus.FAILED.value
    assert vector_index.namespaces == {}


async def test_unexpected_error_marks_failed(
    test_db, fake_db_manager, processing_file, fetcher, vector_index, fake_pages,
):
    fake_pages(["text"])
    clients = IngestionClients(
        fetcher=fetcher,
        embedder=FakeEmbedder(fail=RuntimeError("boom")),
        vector_index=vector_index,
    )

    await run_ingestion(processing_file.id, False, clients)

    file = await reload(test_db, File, processing_file.id)
    assert file.upload_status == UploadStatus.FAILED.value


async def test_missing_row_is_ignored(fake_db_manager, clients):
    await run_ingestion(uuid4(), False, clients)

    assert clients.fetcher.urls == []


# -- Session lifetime ------------------------------------------------------------

class _SessionCountingFetcher(FakeFetcher):
    """Records how many DB sessions are open at the moment of each fetch."""

    def __init__(self, open_sessions: dict, **kwargs):
        super().__init__(**kwargs)
        self._open_sessions = open_sessions
        self.open_during_fetch: list[int] = []

    async def fetch(self, url, context=None):
        self.open_during_fetch.append(self._open_sessions["count"])
        return await super().fetch(url, context)


@pytest.fixture
def open_sessions(fake_db_manager, monkeypatch):
    """Count sessions handed out by db_manager that have not been closed yet."""
    active = {"count": 0, "opened": 0}
    original = fake_db_manager.session

    @asynccontextmanager
    async def counting_session():
        active["count"] += 1
        active["opened"] += 1
        try:
            async with original() as session:
                yield session
        finally:
            active["count"] -= 1

    monkeypatch.setattr(fake_db_manager, "session", counting_session)
    return active


async def test_no_session_held_during_fetch(
    test_db, open_sessions, processing_file, embedder, vector_index, fake_pages,
):
    fake_pages(["Intro text"])
    fetcher = _SessionCountingFetcher(open_sessions)
    clients = IngestionClients(
        fetcher=fetcher, embedder=embedder, vector_index=vector_index,
    )

    await run_ingestion(processing_file.id, False, clients)

    assert fetcher.open_during_fetch == [0]
    assert open_sessions["opened"] == 2
    assert open_sessions["count"] == 0
    file = await reload(test_db, File, processing_file.id)
    assert file.upload_status == UploadStatus.SUCCESS.value
    assert file.page_count == 1


async def test_row_deleted_during_ingestion_is_not_recreated(
    test_db, fake_db_manager, processing_file, embedder, vector_index, fake_pages,
):
    fake_pages(["Intro text"])

    class _DeletingFetcher(FakeFetcher):
        async def fetch(self, url, context=None):
            await test_db.delete(processing_file)
            await test_db.commit()
            return await super().fetch(url, context)

    clients = IngestionClients(
        fetcher=_DeletingFetcher(), embedder=embedder, vector_index=vector_index,
    )

    await run_ingestion(processing_file.id, False, clients)

    assert await reload(test_db, File, processing_file.id) is None
