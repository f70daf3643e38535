"""Tencent Cloud OCR adapter.

Implements the OCRProvider protocol with the ``GeneralAccurateOCR`` action
of the Tencent Cloud SDK. The SDK is synchronous, so each call runs in a
worker thread to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence

import structlog
from tencentcloud.common import credential
from tencentcloud.common.profile.client_profile import ClientProfile
from tencentcloud.common.profile.http_profile import HttpProfile
from tencentcloud.ocr.v20181119 import models, ocr_client

from ...config.schema import TencentOCRConfig

log = structlog.get_logger()


class TencentOCRAdapter:
    """Tencent Cloud OCR adapter implementing the OCRProvider protocol.

    SDK exceptions (``TencentCloudSDKException``) propagate unchanged; the
    SDK reports connection failures with the ``ClientNetworkError`` code,
    which the retry policy treats as transient.

    Example:
        adapter = TencentOCRAdapter(TencentOCRConfig(secret_id="...", secret_key="..."))
        lines = await adapter.detect_text(image_base64)
    """

    def __init__(self, config: TencentOCRConfig, client: ocr_client.OcrClient | None = None) -> None:
        """Initialize the adapter.

        Args:
            config: Tencent-specific configuration.
            client: Pre-built SDK client. If None, one is created from config.
        """
        self._config = config
        self._client = client or self._build_client(config)

    @staticmethod
    def _build_client(config: TencentOCRConfig) -> ocr_client.OcrClient:
        cred = credential.Credential(config.secret_id, config.secret_key)
        http_profile = HttpProfile()
        http_profile.endpoint = config.endpoint
        client_profile = ClientProfile()
        client_profile.httpProfile = http_profile
        return ocr_client.OcrClient(cred, config.region, client_profile)

    def _detect_sync(self, image_base64: str) -> list[str | None]:
        request = models.GeneralAccurateOCRRequest()
        request.ImageBase64 = image_base64
        response = self._client.GeneralAccurateOCR(request)
        detections = getattr(response, "TextDetections", None) or []
        return [getattr(d, "DetectedText", None) for d in detections]

    async def detect_text(self, image_base64: str) -> Sequence[str | None]:
        """Detect text in a base64-encoded image.

        Args:
            image_base64: Base64-encoded image bytes.

        Returns:
            ``DetectedText`` of each detection in provider order. A response
            without detections yields an empty list.
        """
        started = time.monotonic()
        detections = await asyncio.to_thread(self._detect_sync, image_base64)
        log.debug(
            "tencent_ocr_response",
            region=self._config.region,
            detection_count=len(detections),
            elapsed_ms=round((time.monotonic() - started) * 1000, 1),
        )
        return detections
