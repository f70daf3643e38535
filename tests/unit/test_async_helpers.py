"""Tests for async utility functions."""

from __future__ import annotations

import socket

import httpx
import pytest
from tencentcloud.common.exception.tencent_cloud_sdk_exception import (
    TencentCloudSDKException,
)

from receipt_agent.models.context import CorrelationContext
from receipt_agent.utils.async_helpers import (
    EXPONENTIAL_BASE,
    INITIAL_DELAY,
    MAX_ATTEMPTS,
    AgentError,
    AttachmentDownloadError,
    DeliveryError,
    LLMError,
    OCRError,
    RetryPolicy,
    ThreadReplyRejectedError,
    is_transient_network_error,
)


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FlakyOperation:
    """Fails with the given errors in order, then returns ``result``."""

    def __init__(self, errors: list[Exception], result: str = "ok") -> None:
        self._errors = list(errors)
        self._result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self._errors:
            raise self._errors.pop(0)
        return self._result


class TestCustomExceptions:
    """Test custom exception classes."""

    def test_hierarchy(self) -> None:
        """Test every pipeline error derives from AgentError."""
        for error in (
            AttachmentDownloadError(404),
            OCRError("ocr"),
            LLMError("llm"),
            DeliveryError("delivery"),
        ):
            assert isinstance(error, AgentError)

    def test_download_error_message(self) -> None:
        """Test the download error carries status and preview."""
        error = AttachmentDownloadError(403, body_preview="forbidden")
        assert str(error) == "Failed to download file: 403"
        assert error.status_code == 403
        assert error.body_preview == "forbidden"

    def test_thread_rejection_is_delivery_error(self) -> None:
        """Test thread rejection is a kind of delivery error."""
        error = ThreadReplyRejectedError("rejected", error_code="cannot_reply_to_message")
        assert isinstance(error, DeliveryError)
        assert error.error_code == "cannot_reply_to_message"


class TestIsTransientNetworkError:
    """Test transient network error classification."""

    @pytest.mark.parametrize(
        "error",
        [
            httpx.ConnectTimeout("connect timed out"),
            httpx.ReadError("read failed"),
            ConnectionResetError("peer reset"),
            TimeoutError(),
            socket.gaierror(-3, "Temporary failure in name resolution"),
            RuntimeError("read ECONNRESET"),
            RuntimeError("socket hang up"),
            RuntimeError("getaddrinfo EAI_AGAIN ocr.tencentcloudapi.com"),
        ],
    )
    def test_transient(self, error: Exception) -> None:
        """Test connection-level failures are transient."""
        assert is_transient_network_error(error) is True

    @pytest.mark.parametrize(
        "error",
        [
            ValueError("bad image"),
            KeyError("TextDetections"),
            RuntimeError("ImageDecodeFailed"),
        ],
    )
    def test_not_transient(self, error: Exception) -> None:
        """Test application-level failures are not transient."""
        assert is_transient_network_error(error) is False

    def test_sdk_network_error_code(self) -> None:
        """Test the SDK's network error code is transient."""
        error = TencentCloudSDKException("ClientNetworkError", "request failed")
        assert is_transient_network_error(error) is True

    def test_sdk_auth_error(self) -> None:
        """Test SDK authentication failures are not transient."""
        error = TencentCloudSDKException("AuthFailure.SignatureFailure", "bad signature")
        assert is_transient_network_error(error) is False

    def test_cause_chain(self) -> None:
        """Test a wrapped transient cause is found."""
        try:
            try:
                raise ConnectionRefusedError("refused")
            except ConnectionRefusedError as inner:
                raise RuntimeError("provider call failed") from inner
        except RuntimeError as outer:
            assert is_transient_network_error(outer) is True

    def test_error_raised_while_handling_transient(self) -> None:
        """Test an error raised during handling is judged on its own."""
        try:
            try:
                raise ConnectionError("connection dropped")
            except ConnectionError:
                raise PermissionError("AuthFailure.SecretIdNotFound")  # noqa: B904
        except PermissionError as error:
            assert error.__context__ is not None
            assert is_transient_network_error(error) is False

    def test_word_timeout_alone_not_transient(self) -> None:
        """Test a message that merely mentions a timeout is not transient."""
        assert is_transient_network_error(ValueError("invalid timeout value")) is False


class TestRetryPolicy:
    """Test RetryPolicy."""

    def test_fixed_limits(self) -> None:
        """Test the attempt limit and backoff base are fixed."""
        assert MAX_ATTEMPTS == 4
        assert INITIAL_DELAY == 0.3
        assert EXPONENTIAL_BASE == 2.0

    async def test_success_first_attempt(self, ctx: CorrelationContext) -> None:
        """Test a successful call is not retried."""
        sleep = SleepRecorder()
        operation = FlakyOperation([])

        result = await RetryPolicy(sleep=sleep).run(operation, ctx, "ocr")

        assert result == "ok"
        assert operation.calls == 1
        assert sleep.delays == []

    async def test_recovers_after_transient_errors(self, ctx: CorrelationContext) -> None:
        """Test transient errors are retried with growing delays."""
        sleep = SleepRecorder()
        operation = FlakyOperation(
            [ConnectionResetError("reset"), RuntimeError("ETIMEDOUT"), TimeoutError()]
        )

        result = await RetryPolicy(sleep=sleep).run(operation, ctx, "ocr")

        assert result == "ok"
        assert operation.calls == 4
        assert sleep.delays == pytest.approx([0.3, 0.6, 1.2])

    async def test_exhaustion_reraises_last_error(self) -> None:
        """Test the last error propagates once attempts run out."""
        sleep = SleepRecorder()
        last = ConnectionResetError("fourth")
        operation = FlakyOperation(
            [
                ConnectionResetError("first"),
                ConnectionResetError("second"),
                ConnectionResetError("third"),
                last,
            ]
        )

        with pytest.raises(ConnectionResetError) as exc_info:
            await RetryPolicy(sleep=sleep).run(operation)

        assert exc_info.value is last
        assert operation.calls == 4
        assert len(sleep.delays) == 3

    async def test_non_retryable_fails_immediately(self) -> None:
        """Test a non-transient error is not retried."""
        sleep = SleepRecorder()
        operation = FlakyOperation([ValueError("bad image")])

        with pytest.raises(ValueError, match="bad image"):
            await RetryPolicy(sleep=sleep).run(operation)

        assert operation.calls == 1
        assert sleep.delays == []

    async def test_custom_predicate(self) -> None:
        """Test a custom retry predicate is honored."""
        sleep = SleepRecorder()
        operation = FlakyOperation([ValueError("flaky")])
        policy = RetryPolicy(
            is_retryable=lambda e: isinstance(e, ValueError),
            sleep=sleep,
        )

        assert await policy.run(operation) == "ok"
        assert sleep.delays == pytest.approx([0.3])

    async def test_never_exceeds_max_attempts(self) -> None:
        """Test an always-failing operation stops at the fixed limit."""
        sleep = SleepRecorder()
        operation = FlakyOperation([TimeoutError() for _ in range(10)])

        with pytest.raises(TimeoutError):
            await RetryPolicy(sleep=sleep).run(operation)

        assert operation.calls == MAX_ATTEMPTS
        assert sleep.delays == pytest.approx([0.3, 0.6, 1.2])
