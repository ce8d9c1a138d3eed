"""Resilient Anthropic Client - wraps AsyncAnthropic streaming with retry, backoff, and error mapping.

Invariants:
    - Rate limits (429): exponential backoff with jitter, respects Retry-After header
    - Transient errors (5xx, connection, 529 overloaded): max N retries with exponential backoff
    - Retries only happen while opening the stream, before any text reaches the caller
    - Client errors (4xx except 429): immediate failure, no retry
    - All failures mapped to LLMAPIError (core/errors.py)

Design Decisions:
    - Wrapper over raw client: isolates retry logic from the chat pipeline
    - +/-25% jitter on backoff: spreads retries from concurrent requests
    - Mid-stream failures are mapped, never retried: partial text was already sent
"""

import asyncio
import random
import logging
from contextlib import AsyncExitStack, asynccontextmanager

import anthropic
from anthropic import (
    APIError,
    APIConnectionError,
    APIStatusError,
    RateLimitError,
    APITimeoutError,
    InternalServerError,
)

from briefly.core.errors import LLMAPIError, ErrorContext

logger = logging.getLogger(__name__)

# OverloadedError (HTTP 529) is not re-exported by every SDK version; detect by status
_OVERLOADED_STATUS = 529


def _is_overloaded(e: APIError) -> bool:
    """Check if error is Anthropic 529 Overloaded."""
    return isinstance(e, APIStatusError) and e.status_code == _OVERLOADED_STATUS


class ResilientAnthropicClient:
    """Streams chat completions with retry on stream setup and error mapping."""

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 4096,
        max_retries: int = 3,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 60_000,
        timeout_seconds: int = 120,
    ):
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=timeout_seconds,
            max_retries=0,
        )
        self.model = model
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    @asynccontextmanager
    async def stream_text(
        self,
        *,
        system: str,
        messages: list,
        context: ErrorContext | None = None,
    ):
        """Yield an async iterator of text chunks for one completion.

        CancelledError (BaseException) passes through uncaught so client
        disconnects stop the upstream request.
        """
        async with AsyncExitStack() as stack:
            stream = await self._open_stream(stack, system, messages, context)
            try:
                yield stream.text_stream
                self._log_success(await stream.get_final_message())
            except RateLimitError as e:
                raise LLMAPIError(
                    "Rate limit exceeded (streaming)",
                    "rate_limit",
                    retry_after_ms=self._extract_retry_after(e),
                    context=context,
                )
            except APITimeoutError:
                raise LLMAPIError(
                    "API timeout during stream", "timeout", context=context,
                )
            except (APIConnectionError, InternalServerError) as e:
                raise LLMAPIError(
                    f"Connection error during stream: {e}",
                    "connection_error",
                    context=context,
                )
            except APIError as e:
                if _is_overloaded(e):
                    raise LLMAPIError(
                        "Anthropic API overloaded (529)",
                        "overloaded",
                        context=context,
                    )
                raise LLMAPIError(
                    str(e), "client_error", context=context,
                )

    async def _open_stream(
        self,
        stack: AsyncExitStack,
        system: str,
        messages: list,
        context: ErrorContext | None,
    ):
        """Enter the SDK stream manager, retrying transient setup failures."""
        for attempt in range(self.max_retries + 1):
            try:
                manager = self.client.messages.stream(
                    model=self.model, max_tokens=self.max_tokens,
                    system=system, messages=messages,
                )
                return await stack.enter_async_context(manager)

            except RateLimitError as e:
                await self._handle_rate_limit(e, attempt, context)

            except APITimeoutError:
                raise LLMAPIError(
                    "API timeout", "timeout", context=context,
                )

            except (APIConnectionError, InternalServerError) as e:
                await self._handle_transient_error(e, attempt, context)

            except APIError as e:
                if _is_overloaded(e):
                    await self._handle_transient_error(e, attempt, context)
                    continue
                raise LLMAPIError(
                    str(e), "client_error", context=context,
                )

        raise LLMAPIError(
            "Stream could not be opened", "unknown", context=context,
        )

    def _log_success(self, response) -> None:
        usage = getattr(response, "usage", None)
        if usage is None:
            return
        logger.info(
            "Anthropic stream complete",
            extra={
                "input_tokens": usage.input_tokens,
                "output_tokens": usage.output_tokens,
            },
        )

    async def _handle_rate_limit(
        self, e: RateLimitError, attempt: int, context: ErrorContext | None,
    ) -> None:
        """Handle rate limit error with retry or raise."""
        retry_after_ms = self._extract_retry_after(e)
        if attempt >= self.max_retries:
            raise LLMAPIError(
                "Rate limit exceeded after retries",
                "rate_limit",
                retry_after_ms=retry_after_ms,
                context=context,
            )
        delay = retry_after_ms or self._backoff(attempt)
        logger.warning(
            f"Rate limit hit, retry after {delay}ms (attempt {attempt + 1})",
            extra={"attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    async def _handle_transient_error(
        self, e: Exception, attempt: int, context: ErrorContext | None,
    ) -> None:
        """Handle transient errors with retry or raise."""
        if attempt >= self.max_retries:
            raise LLMAPIError(
                f"Transient failure after {self.max_retries} retries: {e}",
                "connection_error",
                context=context,
            )
        delay = self._backoff(attempt)
        logger.warning(
            f"Transient error, retry after {delay}ms: {e}",
            extra={"attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with +/-25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311

    def _extract_retry_after(self, error: RateLimitError) -> int | None:
        """Extract Retry-After header (returns milliseconds)."""
        response = getattr(error, "response", None)
        if response is None:
            return None
        val = response.headers.get("retry-after")
        if val and val.isdigit():
            return int(val) * 1000
        return None
