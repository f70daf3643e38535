"""Utility functions and helpers.

This module provides various utilities for the Receipt Agent:
- security: Secret redaction
- async_helpers: Error taxonomy, transient-error classification, retry policy
- logging: Structured logging with secret sanitization
"""

from receipt_agent.utils.async_helpers import (
    AgentError,
    AttachmentDownloadError,
    DeliveryError,
    LLMError,
    OCRError,
    RetryPolicy,
    ThreadReplyRejectedError,
    is_transient_network_error,
)
from receipt_agent.utils.logging import (
    LogFormat,
    LogLevel,
    configure_from_settings,
    configure_logging,
)
from receipt_agent.utils.security import (
    RedactionError,
    SecretRedactor,
    SecurityError,
)

__all__ = [
    # Errors
    "AgentError",
    "AttachmentDownloadError",
    "DeliveryError",
    "LLMError",
    "OCRError",
    "ThreadReplyRejectedError",
    # Retry
    "RetryPolicy",
    "is_transient_network_error",
    # Logging
    "LogFormat",
    "LogLevel",
    "configure_from_settings",
    "configure_logging",
    # Security
    "RedactionError",
    "SecretRedactor",
    "SecurityError",
]
