"""Chat Pipeline - retrieval-augmented answer for one user message, streamed as SSE events.

Invariants:
    - prepare() runs before any byte is streamed: ownership, readiness, persistence
      of the user message and retrieval errors all surface as HTTP errors
    - The user message is persisted before retrieval; the assistant message only
      after the completion stream finishes without error
    - History excludes the message being answered and is ordered oldest-first
    - stream() always ends with exactly one done event

Design Decisions:
    - Two-phase API (prepare, stream): the route can fail fast with a proper status
      code, then hand a generator to StreamingResponse
    - Assistant message written through background_session(): the request-scoped
      session is not guaranteed to outlive the response
"""

import asyncio
import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from briefly.core.build_prompt import SYSTEM_PROMPT, build_chat_messages
from briefly.core.domain_types import (
    HistoryMessage, RetrievedPassage, UploadStatus, namespace_for,
)
from briefly.core.errors import (
    BrieflyError, ErrorContext, FileNotReadyError, ResourceNotFoundError,
)
from briefly.core.repository_protocols import ChatModel, Embedder, VectorIndex
from briefly.infrastructure.database import background_session
from briefly.models.file import File
from briefly.models.message import Message
from briefly.services.stream_events import (
    done_event, text_delta_event, unexpected_error_event,
)

logger = logging.getLogger(__name__)


@dataclass
class PreparedChat:
    """Everything the stream phase needs, resolved up front."""
    user_id: str
    file_id: UUID
    user_message_id: UUID
    messages: list[dict]
    passages: list[RetrievedPassage] = field(default_factory=list)
    context: ErrorContext = field(default_factory=ErrorContext)


class ChatPipeline:
    """Embed query, search the file's namespace, assemble prompt, stream, persist."""

    def __init__(
        self,
        db: AsyncSession,
        embedder: Embedder,
        vector_index: VectorIndex,
        chat_model: ChatModel,
        top_k: int = 4,
        history_limit: int = 6,
    ):
        self.db = db
        self.embedder = embedder
        self.vector_index = vector_index
        self.chat_model = chat_model
        self.top_k = top_k
        self.history_limit = history_limit

    async def prepare(
        self, user_id: str, file_id: UUID, message: str,
    ) -> PreparedChat:
        ctx = ErrorContext(user_id=user_id, file_id=str(file_id))
        file = await self._get_ready_file(user_id, file_id, ctx)

        user_message = Message(
            text=message, is_user_message=True,
            user_id=user_id, file_id=file.id,
        )
        self.db.add(user_message)
        await self.db.commit()

        query_vector = await self.embedder.embed_query(message, ctx)
        passages = await self.vector_index.similarity_search(
            namespace_for(file.id), query_vector, self.top_k,
        )
        history = await self._recent_history(file.id, user_message.id)

        return PreparedChat(
            user_id=user_id,
            file_id=file.id,
            user_message_id=user_message.id,
            messages=build_chat_messages(message, passages, history),
            passages=passages,
            context=ctx,
        )

    async def stream(self, prepared: PreparedChat):
        """Async generator of SSE event dicts."""
        chunks: list[str] = []
        try:
            async with self.chat_model.stream_text(
                system=SYSTEM_PROMPT,
                messages=prepared.messages,
                context=prepared.context,
            ) as text_stream:
                async for text in text_stream:
                    if not text:
                        continue
                    chunks.append(text)
                    yield text_delta_event(text)
        except asyncio.CancelledError:
            logger.info(
                "Client disconnected from chat stream",
                extra={"file_id": str(prepared.file_id)},
            )
            raise
        except BrieflyError as e:
            logger.error(
                f"Chat completion failed: {e.message}",
                extra={"file_id": str(prepared.file_id), "error_code": e.code},
            )
            yield e.to_sse_event()
            yield done_event(error=True)
            return
        except Exception as e:
            logger.error(
                f"Unexpected error in chat stream: {e}",
                extra={"file_id": str(prepared.file_id)}, exc_info=True,
            )
            yield unexpected_error_event()
            yield done_event(error=True)
            return

        try:
            message_id = await self._save_answer(prepared, "".join(chunks))
        except Exception as e:
            logger.error(
                f"Failed to persist answer: {e}",
                extra={"file_id": str(prepared.file_id)}, exc_info=True,
            )
            yield unexpected_error_event()
            yield done_event(error=True)
            return
        yield done_event(error=False, message_id=str(message_id))

    async def _get_ready_file(
        self, user_id: str, file_id: UUID, ctx: ErrorContext,
    ) -> File:
        result = await self.db.execute(
            select(File).where(File.id == file_id, File.user_id == user_id),
        )
        file = result.scalar_one_or_none()
        if file is None:
            raise ResourceNotFoundError("File", str(file_id), ctx)
        if file.upload_status != UploadStatus.SUCCESS.value:
            raise FileNotReadyError(file.upload_status, ctx)
        return file

    async def _recent_history(
        self, file_id: UUID, exclude_id: UUID,
    ) -> list[HistoryMessage]:
        """Most recent N messages before the current one, oldest first."""
        if self.history_limit <= 0:
            return []
        result = await self.db.execute(
            select(Message)
            .where(Message.file_id == file_id, Message.id != exclude_id)
            .order_by(Message.created_at.desc())
            .limit(self.history_limit),
        )
        rows = list(result.scalars().all())
        rows.reverse()
        return [
            HistoryMessage(text=m.text, is_user_message=m.is_user_message)
            for m in rows
        ]

    async def _save_answer(self, prepared: PreparedChat, text: str) -> UUID:
        async with background_session() as db:
            answer = Message(
                text=text, is_user_message=False,
                user_id=prepared.user_id, file_id=prepared.file_id,
            )
            db.add(answer)
            await db.commit()
            return answer.id
