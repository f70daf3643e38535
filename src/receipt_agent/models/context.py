"""Correlation context carried through every pipeline step."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from structlog.typing import BindableLogger


@dataclass(frozen=True)
class CorrelationContext:
    """Identifiers attached to every log line for one inbound event.

    Contexts are never mutated. ``extend`` returns a copy with extra
    fields, so a sub-call can enrich its own logs without leaking
    fields back into the caller's context.
    """

    event_id: str
    tenant_id: str | None = None
    event_kind: str = "unknown"
    fields: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        if not isinstance(self.fields, MappingProxyType):
            object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def extend(self, event_kind: str | None = None, **fields: Any) -> CorrelationContext:
        """Return a new context with additional fields merged in."""
        merged = {**self.fields, **fields}
        return replace(
            self,
            event_kind=event_kind or self.event_kind,
            fields=MappingProxyType(merged),
        )

    def as_log_fields(self) -> dict[str, Any]:
        """Flatten the context into keyword arguments for a log call."""
        return {
            "event_id": self.event_id,
            "tenant_id": self.tenant_id,
            "event_kind": self.event_kind,
            **self.fields,
        }

    def bind(self, logger: BindableLogger) -> BindableLogger:
        """Bind this context onto a structlog logger."""
        return logger.bind(**self.as_log_fields())
