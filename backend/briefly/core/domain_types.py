"""Domain Types - rich types that replace bare primitives across the codebase.

Invariants:
    - Namespace wraps the string key that partitions the vector index
    - All valid states encoded as Enums, never raw string matching
    - A vector namespace is always the string form of its file id

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and DB columns without custom encoders
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType
from uuid import UUID


# --- Identity Types -----------------------------------------------------------

Namespace = NewType("Namespace", str)


def namespace_for(file_id: UUID) -> Namespace:
    """Vector namespace that isolates one document's passages."""
    return Namespace(str(file_id))


# --- Enums --------------------------------------------------------------------

class UploadStatus(str, Enum):
    """File ingestion lifecycle - maps to DB `upload_status` column."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


# --- Value Types --------------------------------------------------------------

@dataclass(frozen=True)
class PageText:
    """Text extracted from one PDF page. page_number is 1-based."""
    page_number: int
    text: str


@dataclass(frozen=True)
class RetrievedPassage:
    """A passage returned by similarity search."""
    text: str
    page_number: int | None = None
    score: float | None = None


@dataclass(frozen=True)
class HistoryMessage:
    """A prior conversation turn used for prompt assembly."""
    text: str
    is_user_message: bool
