"""Fake External Clients - in-memory stand-ins for embeddings, vector index, LLM and storage.

Invariants:
    - Each fake satisfies the matching Protocol in core/repository_protocols.py
    - Every call is recorded on the fake (`calls`) for assertions
    - FakeChatModel sequences responses, one per stream_text call

Design Decisions:
    - Flat classes, no inheritance: simple, explicit, easy to debug
    - FakeEmbedder produces deterministic bag-of-letters vectors so similarity
      search over FakeVectorIndex ranks passages meaningfully
"""

import math
from contextlib import asynccontextmanager

from briefly.core.domain_types import RetrievedPassage
from briefly.core.errors import LLMAPIError

DIMENSIONS = 26


def letter_vector(text: str) -> list[float]:
    """Normalized letter-frequency vector (a-z)."""
    counts = [0.0] * DIMENSIONS
    for ch in text.lower():
        if "a" <= ch <= "z":
            counts[ord(ch) - ord("a")] += 1.0
    norm = math.sqrt(sum(c * c for c in counts)) or 1.0
    return [c / norm for c in counts]


class FakeEmbedder:
    def __init__(self, fail: Exception | None = None):
        self.fail = fail
        self.document_calls: list[list[str]] = []
        self.query_calls: list[str] = []

    async def embed_documents(self, texts, context=None):
        if self.fail:
            raise self.fail
        self.document_calls.append(list(texts))
        return [letter_vector(t) for t in texts]

    async def embed_query(self, text, context=None):
        if self.fail:
            raise self.fail
        self.query_calls.append(text)
        return letter_vector(text)


class FakeVectorIndex:
    def __init__(self, fail: Exception | None = None):
        self.fail = fail
        self.namespaces: dict[str, list[dict]] = {}
        self.search_calls: list[dict] = []
        self.deleted: list[str] = []

    async def upsert_pages(self, namespace, pages, vectors, metadata=None):
        points = self.namespaces.setdefault(namespace, [])
        for page, vector in zip(pages, vectors):
            points.append({
                "page": page.page_number, "text": page.text,
                "vector": vector, "metadata": dict(metadata or {}),
            })
        return len(pages)

    async def similarity_search(self, namespace, vector, top_k):
        if self.fail:
            raise self.fail
        self.search_calls.append(
            {"namespace": namespace, "vector": vector, "top_k": top_k},
        )
        scored = [
            (sum(a * b for a, b in zip(vector, p["vector"])), p)
            for p in self.namespaces.get(namespace, [])
        ]
        scored.sort(key=lambda s: s[0], reverse=True)
        return [
            RetrievedPassage(text=p["text"], page_number=p["page"], score=s)
            for s, p in scored[:top_k]
        ]

    async def delete_namespace(self, namespace):
        self.deleted.append(namespace)
        self.namespaces.pop(namespace, None)


class FakeFetcher:
    def __init__(self, data: bytes = b"%PDF-fake", fail: Exception | None = None):
        self.data = data
        self.fail = fail
        self.urls: list[str] = []

    async def fetch(self, url, context=None):
        self.urls.append(url)
        if self.fail:
            raise self.fail
        return self.data


class _TextStream:
    """Async iterator over pre-set chunks; optionally fails after N chunks."""

    def __init__(self, chunks, fail_after=None, error=None):
        self._chunks = list(chunks)
        self._fail_after = fail_after
        self._error = error
        self._idx = 0

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._fail_after is not None and self._idx >= self._fail_after:
            raise self._error
        if self._idx >= len(self._chunks):
            raise StopAsyncIteration
        chunk = self._chunks[self._idx]
        self._idx += 1
        return chunk


def text_stream(*chunks):
    return _TextStream(chunks)


def failing_stream(*chunks, error=None):
    """Yields chunks, then raises (default: LLMAPIError connection_error)."""
    return _TextStream(
        chunks, fail_after=len(chunks),
        error=error or LLMAPIError("upstream reset", "connection_error"),
    )


class FakeChatModel:
    """Replaces ResilientAnthropicClient. Sequences pre-configured streams."""

    def __init__(self, streams):
        self._streams = list(streams)
        self._idx = 0
        self.calls: list[dict] = []

    @asynccontextmanager
    async def stream_text(self, *, system, messages, context=None):
        self.calls.append({"system": system, "messages": messages})
        if self._idx >= len(self._streams):
            raise RuntimeError(
                f"FakeChatModel: no stream at index {self._idx} "
                f"(configured {len(self._streams)})",
            )
        stream = self._streams[self._idx]
        self._idx += 1
        yield stream
