"""OpenAI Embeddings Client - batched document and query embeddings.

Invariants:
    - Same model and dimensions for indexing and querying (vectors must be comparable)
    - Output order matches input order (sorted by the API's `index` field)
    - All SDK failures mapped to EmbeddingAPIError

Design Decisions:
    - SDK-level retries (max_retries) instead of a hand-rolled loop: embedding calls
      are idempotent and unary
    - Batching bounded by embedding_batch_size to stay under request limits
"""

import logging

import openai
from openai import AsyncOpenAI

from briefly.core.errors import EmbeddingAPIError, ErrorContext
from briefly.core.page_selection import batched

logger = logging.getLogger(__name__)


class OpenAIEmbedder:
    """Embedder backed by the OpenAI embeddings endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimensions: int | None = None,
        batch_size: int = 64,
        max_retries: int = 3,
        client: AsyncOpenAI | None = None,
    ):
        self.client = client or AsyncOpenAI(api_key=api_key, max_retries=max_retries)
        self.model = model
        self.dimensions = dimensions
        self.batch_size = batch_size

    async def embed_documents(
        self, texts: list[str], context: ErrorContext | None = None,
    ) -> list[list[float]]:
        vectors: list[list[float]] = []
        for batch in batched(texts, self.batch_size):
            vectors.extend(await self._embed(batch, context))
        return vectors

    async def embed_query(
        self, text: str, context: ErrorContext | None = None,
    ) -> list[float]:
        vectors = await self._embed([text], context)
        return vectors[0]

    async def _embed(
        self, texts: list[str], context: ErrorContext | None,
    ) -> list[list[float]]:
        kwargs: dict = {"model": self.model, "input": texts}
        if self.dimensions:
            kwargs["dimensions"] = self.dimensions
        try:
            response = await self.client.embeddings.create(**kwargs)
        except openai.OpenAIError as e:
            logger.error(f"Embedding request failed: {e}")
            raise EmbeddingAPIError(str(e), context=context)
        data = sorted(response.data, key=lambda d: d.index)
        if len(data) != len(texts):
            raise EmbeddingAPIError(
                f"expected {len(texts)} embeddings, got {len(data)}",
                context=context,
            )
        return [list(d.embedding) for d in data]
