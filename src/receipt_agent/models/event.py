"""Normalized inbound chat events."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

# Slack encodes user mentions as <@U123> or <@U123|name>
MENTION_PATTERN = re.compile(r"<@[^>]+>")

# Subtypes Slack uses for plain user messages
PLAIN_MESSAGE_SUBTYPES = frozenset({"file_share"})


class EventValidationError(ValueError):
    """Raised when a platform payload cannot be normalized."""


@dataclass(frozen=True)
class Attachment:
    """A file referenced by an event."""

    id: str
    mimetype: str
    url: str | None  # Authenticated download URL

    @property
    def is_image(self) -> bool:
        """True when the MIME type is an image type."""
        return self.mimetype.startswith("image/")

    @property
    def is_downloadable(self) -> bool:
        """True when the attachment exposes a download URL."""
        return bool(self.url)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Attachment:
        """Build an attachment from a Slack file object."""
        mimetype = payload.get("mimetype")
        return cls(
            id=str(payload.get("id", "")),
            mimetype=mimetype if isinstance(mimetype, str) else "",
            url=payload.get("url_private_download") or None,
        )


@dataclass(frozen=True)
class IncomingEvent:
    """One platform event, reduced to the fields the pipeline reads."""

    channel: str
    user: str | None
    ts: str
    thread_ts: str | None = None
    text: str | None = None
    files: tuple[Attachment, ...] = ()
    subtype: str | None = None
    bot_id: str | None = None

    # Envelope metadata for correlation
    event_id: str | None = None
    team_id: str | None = None

    @property
    def is_from_bot(self) -> bool:
        """True when a bot identity sent the event."""
        return bool(self.bot_id) or self.subtype == "bot_message"

    @property
    def is_plain_message(self) -> bool:
        """True when the subtype marks an ordinary user message."""
        return not self.subtype or self.subtype in PLAIN_MESSAGE_SUBTYPES

    @property
    def reply_thread_ts(self) -> str:
        """Thread that replies to this event belong to."""
        return self.thread_ts or self.ts

    @property
    def has_mention(self) -> bool:
        """True when the text references a user."""
        return bool(self.text) and MENTION_PATTERN.search(self.text or "") is not None

    def text_without_mentions(self) -> str:
        """Return the text with every mention token removed."""
        return MENTION_PATTERN.sub("", self.text or "").strip()

    @classmethod
    def from_payload(
        cls,
        event: dict[str, Any],
        envelope: dict[str, Any] | None = None,
    ) -> IncomingEvent:
        """Normalize a Slack ``message`` event.

        Args:
            event: The ``event`` object of the Events API callback.
            envelope: The full callback body, used for ``event_id`` and
                ``team_id``.

        Returns:
            The normalized event. Unknown fields are dropped.

        Raises:
            EventValidationError: If the channel or timestamp is missing.
        """
        envelope = envelope or {}

        channel = event.get("channel")
        ts = event.get("ts") or event.get("event_ts")
        if not isinstance(channel, str) or not channel:
            raise EventValidationError("event has no channel")
        if not isinstance(ts, str) or not ts:
            raise EventValidationError("event has no timestamp")

        raw_files = event.get("files")
        files = tuple(
            Attachment.from_payload(f)
            for f in (raw_files if isinstance(raw_files, list) else [])
            if isinstance(f, dict)
        )

        text = event.get("text")
        return cls(
            channel=channel,
            user=event.get("user") or None,
            ts=ts,
            thread_ts=event.get("thread_ts") or None,
            text=text if isinstance(text, str) else None,
            files=files,
            subtype=event.get("subtype") or None,
            bot_id=event.get("bot_id") or None,
            event_id=envelope.get("event_id"),
            team_id=envelope.get("team_id") or event.get("team"),
        )
