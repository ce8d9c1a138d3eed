"""Message ORM - one chat turn about one file.

Invariants:
    - is_user_message distinguishes the user's question from the assistant's answer
    - Assistant messages are only written after a completed stream
    - (file_id, created_at) indexed: history and pagination both scan it newest-first
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Text, Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from briefly.db.base import Base


class Message(Base):
    """Persisted chat message."""
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_file_id_created_at", "file_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    is_user_message: Mapped[bool] = mapped_column(Boolean, nullable=False)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    file_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("files.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    file: Mapped["File"] = relationship("File", back_populates="messages")
