"""Abstract interface for LLM integrations."""

from typing import Protocol

from ..models.context import CorrelationContext
from ..models.results import AnalysisResult, ChatResult


class LLMProvider(Protocol):
    """Abstract interface for language model integrations.

    Implementations never raise: provider failures come back as a result
    with ``degraded=True`` and a fallback text.
    """

    async def analyze_receipt(
        self,
        ocr_text: str,
        ctx: CorrelationContext | None = None,
    ) -> AnalysisResult:
        """
        Normalize raw OCR text into a receipt summary.

        Args:
            ocr_text: Recognized text, one detection per line
            ctx: Correlation context for logging

        Returns:
            Summary text with optional token usage
        """
        ...

    async def chat_reply(
        self,
        user_text: str,
        ctx: CorrelationContext | None = None,
    ) -> ChatResult:
        """
        Produce a short conversational reply.

        Args:
            user_text: The user's message without mention tokens
            ctx: Correlation context for logging

        Returns:
            Reply text
        """
        ...

    @property
    def model_name(self) -> str:
        """Return the model identifier being used."""
        ...
