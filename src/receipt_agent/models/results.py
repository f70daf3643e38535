"""Results produced by pipeline steps."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class OCRResult:
    """Text recognized in an image."""

    text: str  # Non-empty lines joined by newlines, in provider order
    detection_count: int

    @property
    def is_empty(self) -> bool:
        """True when no text was found."""
        return not self.text


@dataclass(frozen=True)
class TokenUsage:
    """Token counters reported by the language model."""

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> TokenUsage | None:
        """Build usage counters from a provider ``usage`` object."""
        if not payload:
            return None
        return cls(
            prompt_tokens=payload.get("prompt_tokens"),
            completion_tokens=payload.get("completion_tokens"),
            total_tokens=payload.get("total_tokens"),
        )


@dataclass(frozen=True)
class LLMResult:
    """Language model output ready for delivery."""

    text: str
    usage: TokenUsage | None = None
    degraded: bool = False  # True when text is a fallback after a failure


AnalysisResult = LLMResult
ChatResult = LLMResult


@dataclass(frozen=True)
class DeliveryTarget:
    """Where a reply is posted."""

    channel: str
    thread_ts: str | None = None

    def fallback(self) -> DeliveryTarget:
        """Return the channel-level target used when threads are refused."""
        return DeliveryTarget(channel=self.channel)


class ProcessingResult(Enum):
    """Outcome of handling one event."""

    IGNORED = "ignored"
    NO_OP = "no_op"
    RECEIPT_ANALYZED = "receipt_analyzed"
    NO_TEXT_FOUND = "no_text_found"
    CHAT_REPLIED = "chat_replied"
    GREETED = "greeted"
    ERROR = "error"
