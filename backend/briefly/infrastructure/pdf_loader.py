"""PDF Loading - download uploaded documents and extract per-page text.

Invariants:
    - fetch() raises DocumentFetchError on any non-2xx response or transport failure
    - extract_pages() returns one PageText per page, 1-based, in document order
    - Unreadable PDFs raise DocumentFetchError (never a raw pypdf exception)

Design Decisions:
    - httpx.AsyncClient with follow_redirects: storage CDNs redirect to signed URLs
    - pypdf over heavier layout engines: plain text is all retrieval needs
"""

import io
import logging

import httpx
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from briefly.core.domain_types import PageText
from briefly.core.errors import DocumentFetchError, ErrorContext

logger = logging.getLogger(__name__)


class HttpDocumentFetcher:
    """Fetches uploaded files over HTTP(S)."""

    def __init__(self, timeout_seconds: int = 60, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def fetch(self, url: str, context: ErrorContext | None = None) -> bytes:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise DocumentFetchError(str(e), context=context)
        if response.is_error:
            raise DocumentFetchError(
                f"{response.reason_phrase} ({response.status_code})",
                status_code=response.status_code,
                context=context,
            )
        return response.content


def extract_pages(data: bytes, context: ErrorContext | None = None) -> list[PageText]:
    """Extract text from every page of a PDF."""
    try:
        reader = PdfReader(io.BytesIO(data))
        return [
            PageText(page_number=i, text=page.extract_text() or "")
            for i, page in enumerate(reader.pages, start=1)
        ]
    except (PdfReadError, ValueError) as e:
        logger.warning(f"Unreadable PDF: {e}")
        raise DocumentFetchError(f"unreadable PDF: {e}", context=context)
