"""API Dependencies - caller identity and shared external clients.

Invariants:
    - Identity comes only from gateway-injected headers; a blank X-User-Id is 401
    - External clients are process-wide singletons, created lazily from Settings
    - Tests replace clients through app.dependency_overrides, never by patching SDKs

Design Decisions:
    - Header-based identity: the auth provider sits in front of this service and
      forwards the verified user (the provider integration itself is not ours)
    - Singletons: SDK clients hold connection pools; one per process amortizes TLS setup
"""

from fastapi import Header

from briefly.config import get_settings
from briefly.core.errors import UnauthorizedError
from briefly.infrastructure.anthropic_client import ResilientAnthropicClient
from briefly.infrastructure.embeddings_client import OpenAIEmbedder
from briefly.infrastructure.pdf_loader import HttpDocumentFetcher
from briefly.infrastructure.vector_store import QdrantVectorIndex
from briefly.schemas.user import Identity


async def get_current_user_id(
    x_user_id: str | None = Header(default=None),
) -> str:
    """Session accessor - the authenticated user's id or 401."""
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedError()
    return x_user_id.strip()


async def get_identity(
    x_user_id: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
    x_user_given_name: str | None = Header(default=None),
    x_user_family_name: str | None = Header(default=None),
) -> Identity:
    user_id = await get_current_user_id(x_user_id)
    return Identity(
        id=user_id,
        email=x_user_email,
        given_name=x_user_given_name,
        family_name=x_user_family_name,
    )


# -- Client singletons ---------------------------------------------------------

_chat_model: ResilientAnthropicClient | None = None
_embedder: OpenAIEmbedder | None = None
_vector_index: QdrantVectorIndex | None = None
_fetcher: HttpDocumentFetcher | None = None


def get_chat_model() -> ResilientAnthropicClient:
    global _chat_model
    if _chat_model is None:
        settings = get_settings()
        _chat_model = ResilientAnthropicClient(
            api_key=settings.anthropic_api_key,
            model=settings.chat_model,
            max_tokens=settings.chat_max_tokens,
            max_retries=settings.anthropic_max_retries,
            base_delay_ms=settings.anthropic_base_delay_ms,
            max_delay_ms=settings.anthropic_max_delay_ms,
            timeout_seconds=settings.anthropic_timeout_seconds,
        )
    return _chat_model


def get_embedder() -> OpenAIEmbedder:
    global _embedder
    if _embedder is None:
        settings = get_settings()
        _embedder = OpenAIEmbedder(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
            batch_size=settings.embedding_batch_size,
        )
    return _embedder


def get_vector_index() -> QdrantVectorIndex:
    global _vector_index
    if _vector_index is None:
        settings = get_settings()
        _vector_index = QdrantVectorIndex(
            url=settings.qdrant_url,
            collection=settings.qdrant_collection,
            dimensions=settings.embedding_dimensions,
            api_key=settings.qdrant_api_key,
        )
    return _vector_index


def get_document_fetcher() -> HttpDocumentFetcher:
    global _fetcher
    if _fetcher is None:
        _fetcher = HttpDocumentFetcher(
            timeout_seconds=get_settings().pdf_fetch_timeout_seconds,
        )
    return _fetcher
