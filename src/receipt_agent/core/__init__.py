"""Core business logic components.

This module exports the main business logic classes:
- Agent: Owns the process lifecycle
- EventRouter: Classifies events and runs the matching pipeline
- AttachmentFetcher: Downloads private attachments
- OCRInvoker: Runs OCR under the retry policy
- DeliveryService: Posts replies with thread-to-channel fallback
"""

from receipt_agent.core.agent import Agent, create_agent
from receipt_agent.core.delivery import DeliveryService, truncate_message
from receipt_agent.core.fetcher import AttachmentFetcher
from receipt_agent.core.ocr import OCRInvoker
from receipt_agent.core.router import EventRouter, classify

__all__ = [
    "Agent",
    "AttachmentFetcher",
    "DeliveryService",
    "EventRouter",
    "OCRInvoker",
    "classify",
    "create_agent",
    "truncate_message",
]
