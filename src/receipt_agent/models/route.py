"""Routing decisions for inbound events."""

from __future__ import annotations

from dataclasses import dataclass

from .event import Attachment


@dataclass(frozen=True)
class Ignore:
    """Event is not ours to handle (bot, edit, no user)."""

    reason: str


@dataclass(frozen=True)
class ImagePipeline:
    """Run OCR and receipt analysis on an attachment."""

    attachment: Attachment
    url: str  # Download URL of the attachment


@dataclass(frozen=True)
class MentionChat:
    """Reply conversationally to a mention."""

    text: str  # Message text with mention tokens stripped


@dataclass(frozen=True)
class NoOp:
    """Nothing to do."""


Route = Ignore | ImagePipeline | MentionChat | NoOp
