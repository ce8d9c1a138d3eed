"""Qdrant Vector Index - one collection, one namespace per uploaded file.

Invariants:
    - Every point carries payload.file_id == namespace; every search/delete filters on it
    - Point ids are uuid5(namespace, page_number): re-ingesting a file overwrites, never duplicates
    - Collection and the file_id keyword index are created lazily on first write
    - All client failures mapped to VectorStoreError

Design Decisions:
    - Payload filter over one collection per file: collections are heavyweight in Qdrant,
      filtered search on an indexed keyword field is the documented multitenancy pattern
    - Cosine distance: OpenAI embeddings are normalized
"""

import logging
import uuid

import httpx
from qdrant_client import AsyncQdrantClient, models
from qdrant_client.http.exceptions import (
    ResponseHandlingException, UnexpectedResponse,
)

from briefly.core.domain_types import Namespace, PageText, RetrievedPassage
from briefly.core.errors import VectorStoreError

logger = logging.getLogger(__name__)

NAMESPACE_FIELD = "file_id"

_CLIENT_ERRORS = (UnexpectedResponse, ResponseHandlingException, httpx.HTTPError)


def point_id(namespace: Namespace, page_number: int) -> str:
    """Stable point id for one page of one file."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{namespace}/{page_number}"))


def _namespace_filter(namespace: Namespace) -> models.Filter:
    return models.Filter(must=[
        models.FieldCondition(
            key=NAMESPACE_FIELD, match=models.MatchValue(value=namespace),
        ),
    ])


class QdrantVectorIndex:
    """VectorIndex backed by a Qdrant collection."""

    def __init__(
        self,
        url: str,
        collection: str,
        dimensions: int,
        api_key: str | None = None,
        client: AsyncQdrantClient | None = None,
    ):
        self.client = client or AsyncQdrantClient(url=url, api_key=api_key)
        self.collection = collection
        self.dimensions = dimensions
        self._collection_ready = False

    async def ensure_collection(self) -> None:
        if self._collection_ready:
            return
        try:
            if not await self.client.collection_exists(self.collection):
                await self.client.create_collection(
                    collection_name=self.collection,
                    vectors_config=models.VectorParams(
                        size=self.dimensions, distance=models.Distance.COSINE,
                    ),
                )
                await self.client.create_payload_index(
                    collection_name=self.collection,
                    field_name=NAMESPACE_FIELD,
                    field_schema=models.PayloadSchemaType.KEYWORD,
                )
                logger.info(f"Created Qdrant collection '{self.collection}'")
        except _CLIENT_ERRORS as e:
            raise VectorStoreError(str(e), "create_collection")
        self._collection_ready = True

    async def upsert_pages(
        self,
        namespace: Namespace,
        pages: list[PageText],
        vectors: list[list[float]],
        metadata: dict | None = None,
    ) -> int:
        """Write one point per page into the namespace. Returns points written."""
        if len(pages) != len(vectors):
            raise ValueError("pages and vectors must be the same length")
        await self.ensure_collection()
        points = [
            models.PointStruct(
                id=point_id(namespace, page.page_number),
                vector=vector,
                payload={
                    **(metadata or {}),
                    NAMESPACE_FIELD: namespace,
                    "page": page.page_number,
                    "text": page.text,
                },
            )
            for page, vector in zip(pages, vectors)
        ]
        try:
            await self.client.upsert(
                collection_name=self.collection, points=points, wait=True,
            )
        except _CLIENT_ERRORS as e:
            raise VectorStoreError(str(e), "upsert")
        logger.info(
            "Stored vectors",
            extra={"namespace": namespace, "vector_count": len(points)},
        )
        return len(points)

    async def similarity_search(
        self, namespace: Namespace, vector: list[float], top_k: int,
    ) -> list[RetrievedPassage]:
        """Top-k nearest passages, restricted to the namespace."""
        try:
            response = await self.client.query_points(
                collection_name=self.collection,
                query=vector,
                query_filter=_namespace_filter(namespace),
                limit=top_k,
                with_payload=True,
            )
        except _CLIENT_ERRORS as e:
            raise VectorStoreError(str(e), "query")
        passages = []
        for point in response.points:
            payload = point.payload or {}
            passages.append(RetrievedPassage(
                text=payload.get("text", ""),
                page_number=payload.get("page"),
                score=point.score,
            ))
        return passages

    async def delete_namespace(self, namespace: Namespace) -> None:
        try:
            if not await self.client.collection_exists(self.collection):
                return
            await self.client.delete(
                collection_name=self.collection,
                points_selector=models.FilterSelector(
                    filter=_namespace_filter(namespace),
                ),
                wait=True,
            )
        except _CLIENT_ERRORS as e:
            raise VectorStoreError(str(e), "delete")
        logger.info("Deleted namespace", extra={"namespace": namespace})
