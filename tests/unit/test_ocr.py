"""Tests for OCR invocation and the Tencent adapter."""

from __future__ import annotations

import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from tencentcloud.common.exception.tencent_cloud_sdk_exception import (
    TencentCloudSDKException,
)

from receipt_agent.adapters.ocr.tencent import TencentOCRAdapter
from receipt_agent.config.schema import TencentOCRConfig
from receipt_agent.core.ocr import OCRInvoker, join_detections
from receipt_agent.models.context import CorrelationContext
from receipt_agent.utils.async_helpers import OCRError, RetryPolicy


async def _no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def tencent_config() -> TencentOCRConfig:
    """Tencent OCR configuration."""
    return TencentOCRConfig(secret_id="AKIDtest", secret_key="test-key")


class TestJoinDetections:
    """Test join_detections."""

    def test_joins_in_order(self) -> None:
        """Test detections are joined with newlines in order."""
        assert join_detections(["STORE", "Milk 2.00", "TOTAL 2.00"]) == "STORE\nMilk 2.00\nTOTAL 2.00"

    def test_skips_blank_and_missing(self) -> None:
        """Test empty, whitespace and missing detections are dropped."""
        assert join_detections(["A", "", None, "   ", "B"]) == "A\nB"

    def test_empty(self) -> None:
        """Test no detections gives an empty string."""
        assert join_detections([]) == ""


class TestOCRInvoker:
    """Test OCRInvoker."""

    async def test_recognize_encodes_image(self, ctx: CorrelationContext) -> None:
        """Test the provider receives base64 of the image bytes."""
        provider = MagicMock()
        provider.detect_text = AsyncMock(return_value=["STORE", "TOTAL 5.00"])

        text = await OCRInvoker(provider).recognize(b"image-bytes", ctx)

        assert text == "STORE\nTOTAL 5.00"
        provider.detect_text.assert_awaited_once_with(
            base64.b64encode(b"image-bytes").decode("ascii")
        )

    async def test_extract_counts_detections(self) -> None:
        """Test the result records how many detections came back."""
        provider = MagicMock()
        provider.detect_text = AsyncMock(return_value=["A", None, "B"])

        result = await OCRInvoker(provider).extract(b"img")

        assert result.text == "A\nB"
        assert result.detection_count == 3

    async def test_no_text_is_not_an_error(self) -> None:
        """Test an image without text yields an empty string."""
        provider = MagicMock()
        provider.detect_text = AsyncMock(return_value=[])

        assert await OCRInvoker(provider).recognize(b"img") == ""

    async def test_transient_failures_retried(self, ctx: CorrelationContext) -> None:
        """Test network errors are retried until the provider succeeds."""
        provider = MagicMock()
        provider.detect_text = AsyncMock(
            side_effect=[
                TencentCloudSDKException("ClientNetworkError", "reset"),
                ConnectionResetError("reset"),
                ["TOTAL 1.00"],
            ]
        )
        invoker = OCRInvoker(provider, RetryPolicy(sleep=_no_sleep))

        assert await invoker.recognize(b"img", ctx) == "TOTAL 1.00"
        assert provider.detect_text.await_count == 3

    async def test_exhausted_retries_raise_ocr_error(self) -> None:
        """Test the last transient error is wrapped once attempts run out."""
        provider = MagicMock()
        provider.detect_text = AsyncMock(side_effect=ConnectionResetError("socket hang up"))
        invoker = OCRInvoker(provider, RetryPolicy(sleep=_no_sleep))

        with pytest.raises(OCRError, match="OCR failed: socket hang up") as exc_info:
            await invoker.recognize(b"img")

        assert provider.detect_text.await_count == 4
        assert isinstance(exc_info.value.__cause__, ConnectionResetError)

    async def test_non_transient_failure_not_retried(self) -> None:
        """Test provider errors that are not network errors fail at once."""
        provider = MagicMock()
        provider.detect_text = AsyncMock(
            side_effect=TencentCloudSDKException("FailedOperation.ImageDecodeFailed", "decode")
        )
        invoker = OCRInvoker(provider, RetryPolicy(sleep=_no_sleep))

        with pytest.raises(OCRError, match="OCR failed"):
            await invoker.recognize(b"img")

        assert provider.detect_text.await_count == 1


class TestTencentOCRAdapter:
    """Test TencentOCRAdapter against a stubbed SDK client."""

    async def test_detect_text(self, tencent_config: TencentOCRConfig) -> None:
        """Test detections are read from the SDK response."""
        sdk = MagicMock()
        sdk.GeneralAccurateOCR.return_value = SimpleNamespace(
            TextDetections=[
                SimpleNamespace(DetectedText="STORE"),
                SimpleNamespace(DetectedText="TOTAL 9.90"),
            ]
        )
        adapter = TencentOCRAdapter(tencent_config, client=sdk)

        detections = await adapter.detect_text("aW1n")

        assert list(detections) == ["STORE", "TOTAL 9.90"]
        request = sdk.GeneralAccurateOCR.call_args[0][0]
        assert request.ImageBase64 == "aW1n"

    async def test_missing_detections(self, tencent_config: TencentOCRConfig) -> None:
        """Test a response without TextDetections gives no lines."""
        sdk = MagicMock()
        sdk.GeneralAccurateOCR.return_value = SimpleNamespace(TextDetections=None)

        assert list(await TencentOCRAdapter(tencent_config, client=sdk).detect_text("x")) == []

    async def test_sdk_error_propagates(self, tencent_config: TencentOCRConfig) -> None:
        """Test SDK exceptions are not swallowed."""
        sdk = MagicMock()
        sdk.GeneralAccurateOCR.side_effect = TencentCloudSDKException("ClientNetworkError", "down")

        with pytest.raises(TencentCloudSDKException):
            await TencentOCRAdapter(tencent_config, client=sdk).detect_text("x")

    def test_builds_client_from_config(self, tencent_config: TencentOCRConfig) -> None:
        """Test a real SDK client is created when none is given."""
        adapter = TencentOCRAdapter(tencent_config)
        assert adapter._client is not None
