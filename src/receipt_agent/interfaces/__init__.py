"""Protocol definitions for pluggable adapters."""

from .chat import ChatProvider
from .llm import LLMProvider
from .ocr import OCRProvider

__all__ = ["ChatProvider", "LLMProvider", "OCRProvider"]
