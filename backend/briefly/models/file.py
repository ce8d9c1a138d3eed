"""File ORM - one uploaded PDF and its ingestion status.

Invariants:
    - id is UUID primary key; its string form is the file's vector namespace
    - key is the storage key and is unique (duplicate upload callbacks are ignored)
    - upload_status transitions: PENDING -> PROCESSING -> SUCCESS | FAILED
    - Deleting a file cascades to its messages
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Integer, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from briefly.core.domain_types import UploadStatus
from briefly.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class File(Base):
    """Uploaded PDF owned by a user."""
    __tablename__ = "files"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    key: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    upload_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UploadStatus.PENDING.value,
    )
    page_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
        default=_utcnow, onupdate=_utcnow,
    )

    user: Mapped["User"] = relationship("User", back_populates="files")
    messages: Mapped[list["Message"]] = relationship(
        "Message", back_populates="file",
        cascade="all, delete-orphan", passive_deletes=True,
    )
