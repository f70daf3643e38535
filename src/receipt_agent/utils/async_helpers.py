"""Async utility functions for resilient provider calls.

This module provides:
- Custom exceptions for the pipeline error taxonomy
- Classification of transient network failures
- A bounded retry policy with exponential backoff
"""

from __future__ import annotations

import asyncio
import socket
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

if TYPE_CHECKING:
    from receipt_agent.models.context import CorrelationContext

log = structlog.get_logger()

T = TypeVar("T")


# =============================================================================
# Custom Exceptions
# =============================================================================


class AgentError(Exception):
    """Base exception for all agent errors."""


class AttachmentDownloadError(AgentError):
    """Downloading an attachment returned a non-success status.

    Attributes:
        status_code: HTTP status of the download response.
        body_preview: Start of the response body, for diagnostics.
    """

    def __init__(self, status_code: int, body_preview: str = "") -> None:
        super().__init__(f"Failed to download file: {status_code}")
        self.status_code = status_code
        self.body_preview = body_preview


class OCRError(AgentError):
    """OCR failed after retries or on a non-retryable error."""


class LLMError(AgentError):
    """Language model call failed."""


class DeliveryError(AgentError):
    """Posting a reply failed.

    Attributes:
        error_code: Platform error code, if the platform reported one.
    """

    def __init__(self, message: str, error_code: str | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code


class ThreadReplyRejectedError(DeliveryError):
    """The platform refused a reply inside the requested thread."""


# =============================================================================
# Error Classification
# =============================================================================

TRANSIENT_ERROR_TYPES: tuple[type[BaseException], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    ConnectionError,
    TimeoutError,
    socket.gaierror,
)

# Lower-cased fragments of connection-level failure messages
TRANSIENT_ERROR_SIGNATURES: tuple[str, ...] = (
    "econnreset",
    "econnrefused",
    "etimedout",
    "enotfound",
    "eai_again",
    "socket hang up",
    "timed out",
    "connection reset",
    "connection refused",
    "connection aborted",
    "name or service not known",
    "temporary failure in name resolution",
    "clientnetworkerror",
)


def is_transient_network_error(exc: BaseException) -> bool:
    """Return True if ``exc`` looks like a connection-level failure.

    Follows the explicit ``__cause__`` chain so wrapped SDK errors are
    classified by their underlying cause. An error raised while handling a
    transient one is judged on its own.
    """
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, TRANSIENT_ERROR_TYPES):
            return True
        message = f"{getattr(current, 'code', '')} {current}".lower()
        if any(signature in message for signature in TRANSIENT_ERROR_SIGNATURES):
            return True
        current = current.__cause__
    return False


# =============================================================================
# Retry Policy
# =============================================================================

MAX_ATTEMPTS = 4
INITIAL_DELAY = 0.3
EXPONENTIAL_BASE = 2.0


class RetryPolicy:
    """Bounded retry executor with exponential backoff.

    Makes at most ``MAX_ATTEMPTS`` attempts, sleeping 0.3s, 0.6s and 1.2s
    between them. Only errors accepted by ``is_retryable`` are
    retried; anything else propagates on first occurrence. When attempts
    run out the last error is re-raised.

    Example:
        policy = RetryPolicy()
        text = await policy.run(lambda: provider.detect_text(image), ctx, "ocr")
    """

    def __init__(
        self,
        is_retryable: Callable[[BaseException], bool] = is_transient_network_error,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._is_retryable = is_retryable
        self._sleep = sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        ctx: CorrelationContext | None = None,
        operation_name: str = "operation",
    ) -> T:
        """Run ``operation`` under the policy.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt.
            ctx: Correlation context for log lines.
            operation_name: Name used in log lines.

        Returns:
            The first successful result.

        Raises:
            Exception: The error of the last attempt, unchanged.
        """
        bound = ctx.bind(log) if ctx else log

        def log_retry(retry_state: RetryCallState) -> None:
            if retry_state.outcome is None:
                return
            exception = retry_state.outcome.exception()
            bound.warning(
                "retrying_operation",
                operation=operation_name,
                attempt=retry_state.attempt_number,
                exception_type=type(exception).__name__,
                exception_message=str(exception),
                wait_time=retry_state.next_action.sleep if retry_state.next_action else 0,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(MAX_ATTEMPTS),
            wait=wait_exponential(
                multiplier=INITIAL_DELAY,
                exp_base=EXPONENTIAL_BASE,
                min=0,
            ),
            retry=retry_if_exception(self._is_retryable),
            before_sleep=log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                attempt_number = attempt.retry_state.attempt_number
                started = time.monotonic()
                try:
                    result = await operation()
                except Exception as e:
                    bound.warning(
                        "attempt_failed",
                        operation=operation_name,
                        attempt=attempt_number,
                        max_attempts=MAX_ATTEMPTS,
                        elapsed_ms=round((time.monotonic() - started) * 1000, 1),
                        retryable=self._is_retryable(e),
                        error=str(e),
                    )
                    raise
                bound.info(
                    "attempt_succeeded",
                    operation=operation_name,
                    attempt=attempt_number,
                    max_attempts=MAX_ATTEMPTS,
                    elapsed_ms=round((time.monotonic() - started) * 1000, 1),
                )
        return result
