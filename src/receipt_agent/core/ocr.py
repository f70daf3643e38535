"""OCR invocation with bounded retry."""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING

import structlog

from receipt_agent.models.results import OCRResult
from receipt_agent.utils.async_helpers import OCRError, RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Sequence

    from receipt_agent.interfaces.ocr import OCRProvider
    from receipt_agent.models.context import CorrelationContext

log = structlog.get_logger()


def join_detections(detections: Sequence[str | None]) -> str:
    """Join non-blank detections with newlines, keeping provider order."""
    return "\n".join(d for d in detections if d and d.strip())


class OCRInvoker:
    """Runs an OCR provider under a retry policy and normalizes its output.

    Transient network failures are retried; any terminal failure is raised
    as ``OCRError``. An image with no readable text is not an error: it
    yields an empty string.
    """

    def __init__(self, provider: OCRProvider, retry_policy: RetryPolicy | None = None) -> None:
        self._provider = provider
        self._retry = retry_policy or RetryPolicy()

    async def extract(
        self,
        image: bytes,
        ctx: CorrelationContext | None = None,
    ) -> OCRResult:
        """Recognize text in ``image``.

        Raises:
            OCRError: If the provider call fails terminally.
        """
        bound = ctx.bind(log) if ctx else log
        image_base64 = base64.b64encode(image).decode("ascii")

        try:
            detections = await self._retry.run(
                lambda: self._provider.detect_text(image_base64),
                ctx,
                operation_name="ocr",
            )
        except Exception as e:
            bound.error("ocr_failed", error=str(e), error_type=type(e).__name__)
            raise OCRError(f"OCR failed: {e}") from e

        detections = list(detections or [])
        result = OCRResult(text=join_detections(detections), detection_count=len(detections))
        bound.info(
            "ocr_complete",
            detection_count=result.detection_count,
            text_length=len(result.text),
        )
        return result

    async def recognize(self, image: bytes, ctx: CorrelationContext | None = None) -> str:
        """Return the recognized text, or an empty string if none was found."""
        return (await self.extract(image, ctx)).text
