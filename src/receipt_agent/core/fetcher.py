"""Authenticated download of chat attachments."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import httpx
import structlog

from receipt_agent.utils.async_helpers import AttachmentDownloadError

if TYPE_CHECKING:
    from receipt_agent.models.context import CorrelationContext

log = structlog.get_logger()

# Characters of an error body kept for diagnostics
BODY_PREVIEW_LENGTH = 200


class AttachmentFetcher:
    """Downloads private Slack files into memory.

    Download failures are not retried: Slack file URLs are signed and
    short-lived, and a non-success status is surfaced to the user as a
    processing error.

    Example:
        fetcher = AttachmentFetcher(http_client, bot_token="xoxb-...")
        image = await fetcher.fetch(attachment.url, ctx)
    """

    def __init__(self, client: httpx.AsyncClient, bot_token: str) -> None:
        """Initialize the fetcher.

        Args:
            client: Shared HTTP client.
            bot_token: Bot credential used as bearer token.
        """
        self._client = client
        self._bot_token = bot_token

    async def fetch(self, url: str, ctx: CorrelationContext | None = None) -> bytes:
        """Download ``url`` and return the raw bytes.

        Args:
            url: Authenticated download URL of the attachment.
            ctx: Correlation context for logging.

        Returns:
            The response body.

        Raises:
            AttachmentDownloadError: If the response status is not 2xx.
            httpx.HTTPError: If the request fails at the transport level.
        """
        bound = ctx.bind(log) if ctx else log
        started = time.monotonic()

        response = await self._client.get(
            url,
            headers={"Authorization": f"Bearer {self._bot_token}"},
            follow_redirects=True,
        )

        if not response.is_success:
            preview = response.text[:BODY_PREVIEW_LENGTH]
            bound.error(
                "attachment_download_failed",
                status_code=response.status_code,
                body_preview=preview,
            )
            raise AttachmentDownloadError(response.status_code, preview)

        content = response.content
        bound.info(
            "attachment_downloaded",
            size_bytes=len(content),
            elapsed_ms=round((time.monotonic() - started) * 1000, 1),
        )
        return content
