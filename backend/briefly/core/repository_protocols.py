"""Boundary Protocols - contracts between the pipelines and external services.

Invariants:
    - Services depend on these Protocols, never on concrete SDK clients
    - All IO operations are async
    - Implementations live in infrastructure/ and are injected by routes

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
"""

from contextlib import AbstractAsyncContextManager
from typing import AsyncIterator, Protocol
from uuid import UUID

from briefly.core.domain_types import Namespace, PageText, RetrievedPassage
from briefly.core.errors import ErrorContext


class FileLike(Protocol):
    """Structural contract for File rows passed to the pipelines."""
    id: UUID
    name: str
    key: str
    url: str
    upload_status: str
    page_count: int | None
    user_id: str


class Embedder(Protocol):
    """Turns text into vectors. Same model for documents and queries."""
    async def embed_documents(
        self, texts: list[str], context: ErrorContext | None = None,
    ) -> list[list[float]]: ...
    async def embed_query(
        self, text: str, context: ErrorContext | None = None,
    ) -> list[float]: ...


class VectorIndex(Protocol):
    """Namespaced vector storage with similarity search."""
    async def upsert_pages(
        self, namespace: Namespace, pages: list[PageText],
        vectors: list[list[float]], metadata: dict | None = None,
    ) -> int: ...
    async def similarity_search(
        self, namespace: Namespace, vector: list[float], top_k: int,
    ) -> list[RetrievedPassage]: ...
    async def delete_namespace(self, namespace: Namespace) -> None: ...


class DocumentFetcher(Protocol):
    """Downloads an uploaded document's bytes."""
    async def fetch(self, url: str, context: ErrorContext | None = None) -> bytes: ...


class ChatCompletionStream(Protocol):
    """Async iterable of text chunks."""
    def __aiter__(self) -> AsyncIterator[str]: ...


class ChatModel(Protocol):
    """Streaming chat completion."""
    def stream_text(
        self, *, system: str, messages: list[dict],
        context: ErrorContext | None = None,
    ) -> AbstractAsyncContextManager[ChatCompletionStream]: ...
