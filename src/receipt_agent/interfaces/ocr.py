"""Abstract interface for OCR integrations."""

from collections.abc import Sequence
from typing import Protocol


class OCRProvider(Protocol):
    """Abstract interface for OCR providers.

    Providers are opaque network services. Transport failures are raised
    as-is so the caller's retry policy can classify them.
    """

    async def detect_text(self, image_base64: str) -> Sequence[str | None]:
        """
        Detect text in an image.

        Args:
            image_base64: Base64-encoded image bytes

        Returns:
            Detected text per detection, in provider order. Entries may be
            None or blank; an empty sequence means nothing was detected.
        """
        ...
