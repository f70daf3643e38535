"""Concrete implementations of provider interfaces."""

from .chat.slack import SlackAdapter
from .llm.chat_completions import ChatCompletionsClient
from .ocr.tencent import TencentOCRAdapter

__all__ = [
    "ChatCompletionsClient",
    "SlackAdapter",
    "TencentOCRAdapter",
]
