"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    AgentConfig,
    HTTPConfig,
    LLMConfig,
    LoggingConfig,
    OCRConfig,
    SlackConfig,
    TencentOCRConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "AgentConfig",
    # Top-level configs
    "SlackConfig",
    "OCRConfig",
    "LLMConfig",
    "HTTPConfig",
    "LoggingConfig",
    # Provider-specific configs
    "TencentOCRConfig",
]
