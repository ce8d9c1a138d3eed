"""Messages - grounded chat over one file (SSE) and the paginated message feed.

Invariants:
    - POST /messages fails with a regular HTTP error before streaming starts
      (401 no caller, 404 foreign/missing file, 409 file not ready, 503 retrieval)
    - The stream is text/event-stream; frames are produced by services/stream_events.py
    - Feed pages are newest-first; next_cursor points at the first message of the next page

Design Decisions:
    - ChatPipeline built per request around the request DB session and shared clients
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from briefly.api.dependencies import (
    get_chat_model, get_current_user_id, get_embedder, get_vector_index,
)
from briefly.api.routes.files import get_file_or_404
from briefly.config import get_settings
from briefly.core.errors import ResourceNotFoundError
from briefly.core.paginate_messages import split_page
from briefly.core.repository_protocols import ChatModel, Embedder, VectorIndex
from briefly.infrastructure.database import get_db
from briefly.models.message import Message
from briefly.schemas.message import MessagePage, MessageResponse, SendMessage
from briefly.services.chat_pipeline import ChatPipeline
from briefly.services.stream_events import SSE_HEADERS, sse_line

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["messages"])


@router.post("/messages")
async def send_message(
    body: SendMessage,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    embedder: Embedder = Depends(get_embedder),
    vector_index: VectorIndex = Depends(get_vector_index),
    chat_model: ChatModel = Depends(get_chat_model),
):
    """Answer a question about a file, streamed as SSE."""
    settings = get_settings()
    pipeline = ChatPipeline(
        db, embedder, vector_index, chat_model,
        top_k=settings.retrieval_top_k,
        history_limit=settings.history_message_limit,
    )
    prepared = await pipeline.prepare(user_id, body.file_id, body.message)

    async def event_generator():
        async for event in pipeline.stream(prepared):
            yield sse_line(event)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/files/{file_id}/messages", response_model=MessagePage)
async def list_messages(
    file_id: UUID,
    limit: int = Query(10, ge=1, le=100),
    cursor: UUID | None = Query(None),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Infinite-scroll feed of a file's messages, newest first."""
    file = await get_file_or_404(file_id, user_id, db)

    query = select(Message).where(Message.file_id == file.id)
    if cursor is not None:
        anchor = await db.get(Message, cursor)
        if anchor is None or anchor.file_id != file.id:
            raise ResourceNotFoundError("Message", str(cursor))
        query = query.where(or_(
            Message.created_at < anchor.created_at,
            and_(
                Message.created_at == anchor.created_at,
                Message.id <= anchor.id,
            ),
        ))
    query = query.order_by(
        Message.created_at.desc(), Message.id.desc(),
    ).limit(limit + 1)

    rows = (await db.execute(query)).scalars().all()
    page, overflow = split_page(rows, limit)
    return MessagePage(
        messages=[MessageResponse.model_validate(m) for m in page],
        next_cursor=overflow.id if overflow is not None else None,
    )
