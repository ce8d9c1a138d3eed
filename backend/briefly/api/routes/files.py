"""Files - upload-complete callback, file lookups, ingestion status and deletion.

Invariants:
    - Every query is scoped to the calling user (foreign files are indistinguishable from missing)
    - Upload-complete is idempotent on storage key: a known key returns the existing row (200)
    - New files start PROCESSING and are ingested in a background task
    - Status of an unknown file is PENDING, not 404 (the callback may not have landed yet)
    - Delete removes the vector namespace, then messages, then the row

Design Decisions:
    - get_file_or_404 exported for reuse by the messages routes
    - Plan resolved at callback time: the quota that applies is the one the user had
      when the upload finished
"""

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from briefly.api.dependencies import (
    get_current_user_id, get_document_fetcher, get_embedder, get_vector_index,
)
from briefly.core.domain_types import UploadStatus, namespace_for
from briefly.core.errors import ErrorContext, ResourceNotFoundError
from briefly.core.repository_protocols import (
    DocumentFetcher, Embedder, VectorIndex,
)
from briefly.infrastructure.database import get_db
from briefly.models.file import File
from briefly.models.message import Message
from briefly.models.user import User
from briefly.schemas.file import (
    FileLookup, FileResponse, FileUploadComplete, UploadStatusResponse,
)
from briefly.services.ingest_file import IngestionClients, run_ingestion
from briefly.services.subscription import get_user_subscription_plan

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/files", tags=["files"])


async def get_file_or_404(
    file_id: UUID, user_id: str, db: AsyncSession,
) -> File:
    """Get the caller's file or raise 404."""
    result = await db.execute(
        select(File).where(File.id == file_id, File.user_id == user_id),
    )
    file = result.scalar_one_or_none()
    if file is None:
        raise ResourceNotFoundError(
            "File", str(file_id), ErrorContext(user_id=user_id),
        )
    return file


@router.post("", response_model=FileResponse, status_code=status.HTTP_201_CREATED)
async def upload_complete(
    body: FileUploadComplete,
    response: Response,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    fetcher: DocumentFetcher = Depends(get_document_fetcher),
    embedder: Embedder = Depends(get_embedder),
    vector_index: VectorIndex = Depends(get_vector_index),
):
    """Register an uploaded PDF and start ingestion."""
    existing = (await db.execute(
        select(File).where(File.key == body.key),
    )).scalar_one_or_none()
    if existing is not None:
        if existing.user_id != user_id:
            raise ResourceNotFoundError("File", body.key)
        response.status_code = status.HTTP_200_OK
        return existing

    if await db.get(User, user_id) is None:
        raise ResourceNotFoundError("User", user_id)

    plan = await get_user_subscription_plan(db, user_id)
    file = File(
        key=body.key, name=body.name, url=str(body.url),
        user_id=user_id, upload_status=UploadStatus.PROCESSING.value,
    )
    db.add(file)
    await db.commit()
    await db.refresh(file)
    logger.info(
        "File registered, ingestion queued",
        extra={"user_id": user_id, "file_id": str(file.id)},
    )

    background_tasks.add_task(
        run_ingestion, file.id, plan.is_subscribed,
        IngestionClients(
            fetcher=fetcher, embedder=embedder, vector_index=vector_index,
        ),
    )
    return file


@router.get("", response_model=list[FileResponse])
async def list_files(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """The caller's files, newest first."""
    result = await db.execute(
        select(File)
        .where(File.user_id == user_id)
        .order_by(File.created_at.desc()),
    )
    return result.scalars().all()


@router.post("/lookup", response_model=FileResponse)
async def get_file_by_key(
    body: FileLookup,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Find the caller's file by storage key."""
    result = await db.execute(
        select(File).where(File.key == body.key, File.user_id == user_id),
    )
    file = result.scalar_one_or_none()
    if file is None:
        raise ResourceNotFoundError("File", body.key)
    return file


@router.get("/{file_id}", response_model=FileResponse)
async def get_file(
    file_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await get_file_or_404(file_id, user_id, db)


@router.get("/{file_id}/status", response_model=UploadStatusResponse)
async def get_upload_status(
    file_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Polled by the client while ingestion runs."""
    result = await db.execute(
        select(File.upload_status)
        .where(File.id == file_id, File.user_id == user_id),
    )
    upload_status = result.scalar_one_or_none()
    if upload_status is None:
        return UploadStatusResponse(status=UploadStatus.PENDING)
    return UploadStatusResponse(status=UploadStatus(upload_status))


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    file_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    vector_index: VectorIndex = Depends(get_vector_index),
):
    """Delete a file, its messages and its vector namespace."""
    file = await get_file_or_404(file_id, user_id, db)
    await vector_index.delete_namespace(namespace_for(file.id))
    await db.execute(delete(Message).where(Message.file_id == file.id))
    await db.delete(file)
    await db.commit()
    logger.info(
        "File deleted", extra={"user_id": user_id, "file_id": str(file_id)},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
