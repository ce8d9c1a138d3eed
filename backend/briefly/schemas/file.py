"""File Schemas - upload-complete callback, lookups and file/status responses.

Invariants:
    - FileUploadComplete.url must be http(s)
    - key and name are stripped and non-empty
    - UploadStatusResponse.status is always an UploadStatus value
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

from briefly.core.domain_types import UploadStatus


class FileUploadComplete(BaseModel):
    """Notification sent after the storage service stored a PDF."""
    key: str = Field(min_length=1, max_length=512)
    name: str = Field(min_length=1, max_length=512)
    url: HttpUrl

    @field_validator("key", "name")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty or whitespace")
        return v


class FileLookup(BaseModel):
    key: str = Field(min_length=1, max_length=512)


class FileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    key: str
    url: str
    upload_status: UploadStatus
    page_count: int | None = None
    created_at: datetime
    updated_at: datetime


class UploadStatusResponse(BaseModel):
    status: UploadStatus
