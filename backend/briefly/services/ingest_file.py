"""File Ingestion - turns an uploaded PDF into a searchable vector namespace.

Invariants:
    - The File row exists (status PROCESSING) before any ingestion work starts
    - Final status is SUCCESS only after every text page is embedded and stored
    - Any failure after the row exists leaves status FAILED; nothing propagates
      out of run_ingestion (it runs as a background task)
    - Page quota counts every page; only text-bearing pages are embedded

Design Decisions:
    - Background task with short-lived DB sessions (load row, record outcome) and
      none held across fetch, embedding or vector writes; the upload callback
      returns immediately and the client polls /status
    - PDF parsing offloaded to a worker thread (pypdf is CPU-bound and synchronous)
    - ingest_document() is separated from status bookkeeping so tests can drive it directly
"""

import asyncio
import logging
from dataclasses import dataclass
from uuid import UUID

from briefly.core.domain_types import UploadStatus, namespace_for
from briefly.core.errors import BrieflyError, ErrorContext
from briefly.core.page_selection import select_text_pages
from briefly.core.plans import check_file_size, check_page_quota
from briefly.core.repository_protocols import (
    DocumentFetcher, Embedder, FileLike, VectorIndex,
)
from briefly.infrastructure.database import background_session
from briefly.infrastructure import pdf_loader
from briefly.models.file import File

logger = logging.getLogger(__name__)


@dataclass
class IngestionClients:
    """External collaborators of the ingestion pipeline."""
    fetcher: DocumentFetcher
    embedder: Embedder
    vector_index: VectorIndex


async def ingest_document(
    file: FileLike,
    is_subscribed: bool,
    clients: IngestionClients,
    context: ErrorContext | None = None,
) -> int:
    """Fetch, extract, check quota, embed and index one PDF. Returns total pages.

    Sets file.page_count as soon as it is known so a quota failure still
    records how large the document was.
    """
    data = await clients.fetcher.fetch(file.url, context)
    check_file_size(len(data), is_subscribed, context)

    pages = await asyncio.to_thread(pdf_loader.extract_pages, data, context)
    file.page_count = len(pages)

    text_pages = select_text_pages(pages, context)
    logger.info(
        f"Total pages: {len(pages)}, pages with text: {len(text_pages)}",
        extra={
            "file_id": str(file.id),
            "page_count": len(pages),
            "text_pages": len(text_pages),
        },
    )
    check_page_quota(len(pages), is_subscribed, context)

    vectors = await clients.embedder.embed_documents(
        [p.text for p in text_pages], context,
    )
    await clients.vector_index.upsert_pages(
        namespace_for(file.id), text_pages, vectors,
        metadata={"file_name": file.name},
    )
    return len(pages)


async def run_ingestion(
    file_id: UUID, is_subscribed: bool, clients: IngestionClients,
) -> None:
    """Background task: ingest one file and record the outcome on its row."""
    ctx = ErrorContext(file_id=str(file_id))
    try:
        async with background_session() as db:
            file = await db.get(File, file_id)
        if file is None:
            logger.warning(
                "File vanished before ingestion", extra={"file_id": str(file_id)},
            )
            return
        outcome = await _ingest(file, is_subscribed, clients, ctx)
        await _record_outcome(file_id, outcome, file.page_count)
    except Exception as e:
        logger.error(
            f"Ingestion bookkeeping failed: {e}",
            extra={"file_id": str(file_id)}, exc_info=True,
        )


async def _ingest(
    file: File,
    is_subscribed: bool,
    clients: IngestionClients,
    ctx: ErrorContext,
) -> UploadStatus:
    """Run the pipeline on a detached row. No DB session is held meanwhile."""
    try:
        await ingest_document(file, is_subscribed, clients, ctx)
    except BrieflyError as e:
        logger.warning(
            f"Ingestion failed: {e.message}",
            extra={"file_id": str(file.id), "error_code": e.code},
        )
        return UploadStatus.FAILED
    except Exception as e:
        logger.error(
            f"Unexpected ingestion error: {e}",
            extra={"file_id": str(file.id)}, exc_info=True,
        )
        return UploadStatus.FAILED
    logger.info("Ingestion complete", extra={"file_id": str(file.id)})
    return UploadStatus.SUCCESS


async def _record_outcome(
    file_id: UUID, status: UploadStatus, page_count: int | None,
) -> None:
    async with background_session() as db:
        file = await db.get(File, file_id)
        if file is None:
            logger.warning(
                "File deleted during ingestion", extra={"file_id": str(file_id)},
            )
            return
        file.upload_status = status.value
        file.page_count = page_count
        await db.commit()
