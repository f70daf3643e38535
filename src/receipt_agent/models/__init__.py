"""Data models and transfer objects."""

from .context import CorrelationContext
from .event import Attachment, EventValidationError, IncomingEvent
from .results import (
    AnalysisResult,
    ChatResult,
    DeliveryTarget,
    LLMResult,
    OCRResult,
    ProcessingResult,
    TokenUsage,
)
from .route import Ignore, ImagePipeline, MentionChat, NoOp, Route

__all__ = [
    # Event models
    "Attachment",
    "EventValidationError",
    "IncomingEvent",
    # Correlation
    "CorrelationContext",
    # Result models
    "OCRResult",
    "TokenUsage",
    "LLMResult",
    "AnalysisResult",
    "ChatResult",
    "DeliveryTarget",
    "ProcessingResult",
    # Routes
    "Route",
    "Ignore",
    "ImagePipeline",
    "MentionChat",
    "NoOp",
]
