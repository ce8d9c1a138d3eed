"""Message Schemas - chat request and paginated message feed.

Invariants:
    - SendMessage.message: 1-4000 chars after strip
    - MessagePage.next_cursor is None on the last page
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

MAX_MESSAGE_LENGTH = 4000


class SendMessage(BaseModel):
    """Chat turn - a question about one file."""
    file_id: UUID
    message: str

    @field_validator("message")
    @classmethod
    def strip_message(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("message cannot be empty or whitespace")
        if len(v) > MAX_MESSAGE_LENGTH:
            raise ValueError(
                f"message must be at most {MAX_MESSAGE_LENGTH} characters",
            )
        return v


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    text: str
    is_user_message: bool
    created_at: datetime


class MessagePage(BaseModel):
    messages: list[MessageResponse]
    next_cursor: UUID | None = None
