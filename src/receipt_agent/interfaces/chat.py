"""Abstract interface for chat platform integrations."""

from typing import Protocol


class ChatProvider(Protocol):
    """Abstract interface for posting messages to a chat platform."""

    async def post_message(
        self,
        channel: str,
        text: str,
        thread_ts: str | None = None,
    ) -> str:
        """
        Post a message to a channel, optionally inside a thread.

        Args:
            channel: Target channel identifier
            text: Message text, already truncated by the caller
            thread_ts: Root message timestamp of the thread (optional)

        Returns:
            Timestamp of the posted message

        Raises:
            ThreadReplyRejectedError: If the platform refuses a reply in
                that thread
            DeliveryError: If delivery fails for any other reason
        """
        ...
