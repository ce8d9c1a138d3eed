"""Error Hierarchy - typed, categorized exceptions for all Briefly failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (4xx) are recoverable; infrastructure errors (5xx) are critical
    - to_response() produces REST envelope; to_sse_event() produces SSE envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with BrieflyError base: FastAPI global handler catches all
    - ErrorContext as dataclass: observability fields without coupling to logging
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Context attached to an error for logs and client envelopes."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str | None = None
    file_id: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class BrieflyError(Exception):
    """Base exception for all Briefly errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "file_id": self.context.file_id,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }

    def to_sse_event(self) -> dict:
        """Convert to SSE error event."""
        return {
            "type": "error",
            "data": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "severity": self.severity.value,
                "recoverable": self.severity in (
                    ErrorSeverity.INFO, ErrorSeverity.WARNING,
                ),
            },
        }


# --- Domain Errors (400-level) -----------------------------------------------

class UnauthorizedError(BrieflyError):
    """Caller identity missing or incomplete."""
    def __init__(self, message: str = "Unauthorized", context: ErrorContext | None = None):
        super().__init__(
            message, "UNAUTHORIZED", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


class ResourceNotFoundError(BrieflyError):
    """Requested resource does not exist (or is not owned by the caller)."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class PageLimitExceededError(BrieflyError):
    """PDF has more pages than the caller's plan allows."""
    def __init__(self, page_count: int, limit: int, context: ErrorContext | None = None):
        super().__init__(
            f"Document has {page_count} pages; plan allows {limit} per PDF.",
            "PAGE_LIMIT_EXCEEDED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 400,
        )
        self.page_count = page_count
        self.limit = limit


class FileTooLargeError(BrieflyError):
    """PDF exceeds the caller's plan file-size limit."""
    def __init__(self, size_bytes: int, limit_mb: int, context: ErrorContext | None = None):
        super().__init__(
            f"Document is {size_bytes} bytes; plan allows {limit_mb}MB.",
            "FILE_TOO_LARGE", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 400,
        )
        self.size_bytes = size_bytes
        self.limit_mb = limit_mb


class NoExtractableTextError(BrieflyError):
    """No page of the PDF carries any text."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "No extractable text found in PDF",
            "NO_EXTRACTABLE_TEXT", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 400,
        )


class FileNotReadyError(BrieflyError):
    """Chat attempted on a file whose ingestion has not succeeded."""
    def __init__(self, status: str, context: ErrorContext | None = None):
        super().__init__(
            f"File is not ready for chat (status: {status})",
            "FILE_NOT_READY", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )
        self.status = status


# --- Infrastructure Errors (500-level) ---------------------------------------

class DatabaseError(BrieflyError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class LLMAPIError(BrieflyError):
    """Chat completion API call failed."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"LLM API error ({api_error_type}): {message}",
            "LLM_API_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, 503,
        )
        self.api_error_type = api_error_type


class EmbeddingAPIError(BrieflyError):
    """Embedding API call failed."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Embedding API error: {message}",
            "EMBEDDING_API_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, context, 503,
        )


class VectorStoreError(BrieflyError):
    """Vector index operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Vector store {operation} failed: {message}",
            "VECTOR_STORE_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class DocumentFetchError(BrieflyError):
    """Uploaded document could not be downloaded from storage."""
    def __init__(self, message: str, status_code: int | None = None,
                 context: ErrorContext | None = None):
        super().__init__(
            f"Failed to fetch PDF: {message}",
            "DOCUMENT_FETCH_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, context, 502,
        )
        self.status_code = status_code
