"""structlog setup for the receipt pipeline.

Every entry carries the service name and version, and passes through the
secret redactor after tracebacks are rendered, so a bot token echoed in
an SDK error never reaches the output.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

import structlog

from receipt_agent.utils.security import SecretRedactor

if TYPE_CHECKING:
    from receipt_agent.config.schema import LoggingConfig

SERVICE_NAME = "receipt-agent"

_redactor = SecretRedactor(placeholder="[REDACTED]")


class LogFormat(StrEnum):
    """Renderer choice."""

    JSON = "json"
    CONSOLE = "console"


class LogLevel(StrEnum):
    """Accepted level names."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def sanitize_log_value(value: Any) -> Any:
    """Redact secrets from a string, or from every string nested in a dict/list/tuple."""
    if isinstance(value, str):
        return _redactor.redact(value)
    if isinstance(value, dict):
        return {key: sanitize_log_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(sanitize_log_value(item) for item in value)
    return value


def secret_sanitizer(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    return cast(MutableMapping[str, Any], sanitize_log_value(dict(event_dict)))


def add_context_processor(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Stamp service and version on each entry."""
    from receipt_agent._version import __version__

    event_dict["service"] = SERVICE_NAME
    event_dict["version"] = __version__
    return event_dict


def _renderer(log_format: LogFormat) -> Any:
    if log_format is LogFormat.JSON:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.plain_traceback,
    )


def _handlers(level: int, file_path: Path | None) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if file_path is not None:
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(file_path))
        except OSError as e:
            logging.getLogger("receipt_agent.logging").warning(
                "Log file %s unavailable, logging to stderr only: %s", file_path, e
            )

    for handler in handlers:
        handler.setLevel(level)
    return handlers


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.JSON,
    file_path: Path | str | None = None,
    file_enabled: bool = False,
) -> None:
    """Route structlog through stdlib logging to stderr and an optional file.

    Args:
        level: Level name, case-insensitive.
        log_format: ``json`` for deployed services, ``console`` for a terminal.
        file_path: Log file, used only when ``file_enabled`` is set.
        file_enabled: Also write to ``file_path``.
    """
    level = LogLevel(str(level).upper())
    log_format = LogFormat(str(log_format).lower())
    numeric_level = getattr(logging, level.value)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_context_processor,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            secret_sanitizer,
            structlog.processors.UnicodeDecoder(),
            _renderer(log_format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    target = Path(file_path) if file_enabled and file_path else None
    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=_handlers(numeric_level, target),
        force=True,
    )


def configure_from_settings(settings: LoggingConfig, debug: bool = False) -> None:
    """Apply the ``logging`` section of the agent config; ``debug`` forces DEBUG."""
    configure_logging(
        level=LogLevel.DEBUG if debug else settings.level,
        log_format=settings.format,
        file_path=settings.file.path,
        file_enabled=settings.file.enabled,
    )
