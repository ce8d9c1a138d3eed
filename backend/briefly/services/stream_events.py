"""Stream Events - pure SSE event builders for the chat stream.

Invariants:
    - Every event is a dict with `type` and `data` keys
    - A stream always ends with exactly one `done` event
    - SSE framing is `data: <json>\\n\\n` (one JSON object per frame)
"""

import json

from briefly.core.errors import ErrorSeverity

# Prevent proxy/browser buffering of streamed events
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


def sse_line(event: dict) -> str:
    """Format event as SSE data line."""
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


def text_delta_event(text: str) -> dict:
    return {"type": "text_delta", "data": {"text": text}}


def done_event(error: bool = False, message_id: str | None = None) -> dict:
    return {
        "type": "done",
        "data": {"error": error, "message_id": message_id},
    }


def unexpected_error_event() -> dict:
    return {
        "type": "error",
        "data": {
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "severity": ErrorSeverity.CRITICAL.value,
            "recoverable": False,
        },
    }
