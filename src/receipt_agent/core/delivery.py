"""Reply delivery with thread-to-channel fallback."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from receipt_agent.utils.async_helpers import ThreadReplyRejectedError

if TYPE_CHECKING:
    from receipt_agent.interfaces.chat import ChatProvider
    from receipt_agent.models.context import CorrelationContext
    from receipt_agent.models.results import DeliveryTarget

log = structlog.get_logger()

MAX_MESSAGE_LENGTH = 3500
TRUNCATION_SUFFIX = "...(truncated)"


def truncate_message(text: str) -> str:
    """Cap ``text`` at ``MAX_MESSAGE_LENGTH`` characters, marking any cut.

    The suffix is appended after the kept characters, so a truncated
    message is ``MAX_MESSAGE_LENGTH + len(TRUNCATION_SUFFIX)`` characters long.
    """
    if len(text) <= MAX_MESSAGE_LENGTH:
        return text
    return f"{text[:MAX_MESSAGE_LENGTH]}{TRUNCATION_SUFFIX}"


class DeliveryService:
    """Posts results back into the originating conversation.

    Replies go into the event's thread. When the platform refuses a reply in
    that thread, the message is posted once at channel level instead. Any
    other delivery failure propagates: the user would otherwise get no
    answer at all, and the caller must know.
    """

    def __init__(self, chat: ChatProvider) -> None:
        self._chat = chat

    async def deliver(
        self,
        target: DeliveryTarget,
        text: str,
        ctx: CorrelationContext | None = None,
    ) -> str:
        """Post ``text`` to ``target``.

        Args:
            target: Channel and thread to reply in.
            text: Message text; truncated once before any attempt.
            ctx: Correlation context for logging.

        Returns:
            Timestamp of the posted message.

        Raises:
            DeliveryError: If delivery fails for a reason other than thread
                rejection, or if the channel-level fallback fails.
        """
        bound = ctx.bind(log) if ctx else log
        message = truncate_message(text)
        if len(message) != len(text):
            bound.info("message_truncated", original_length=len(text), max_length=MAX_MESSAGE_LENGTH)

        try:
            return await self._chat.post_message(target.channel, message, target.thread_ts)
        except ThreadReplyRejectedError as e:
            fallback = target.fallback()
            bound.warning(
                "thread_reply_rejected_falling_back",
                channel=target.channel,
                thread_ts=target.thread_ts,
                error_code=e.error_code,
            )
            return await self._chat.post_message(fallback.channel, message, fallback.thread_ts)
