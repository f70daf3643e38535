"""Tests for the correlation context and result models."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from receipt_agent.models.context import CorrelationContext
from receipt_agent.models.results import DeliveryTarget, OCRResult, TokenUsage


class TestCorrelationContext:
    """Test CorrelationContext."""

    def test_extend_returns_new_context(self, ctx: CorrelationContext) -> None:
        """Test extend leaves the original untouched."""
        child = ctx.extend(mode="analyze")

        assert child is not ctx
        assert child.fields["mode"] == "analyze"
        assert "mode" not in ctx.fields
        assert child.event_id == ctx.event_id

    def test_extend_changes_kind(self, ctx: CorrelationContext) -> None:
        """Test extend can reclassify the event."""
        assert ctx.extend(event_kind="image").event_kind == "image"
        assert ctx.extend().event_kind == "message"

    def test_extend_merges_fields(self) -> None:
        """Test later fields override earlier ones."""
        ctx = CorrelationContext(event_id="E1", fields={"a": 1, "b": 2})
        child = ctx.extend(b=3, c=4)
        assert dict(child.fields) == {"a": 1, "b": 3, "c": 4}

    def test_fields_are_read_only(self) -> None:
        """Test fields cannot be mutated through the mapping."""
        ctx = CorrelationContext(event_id="E1").extend(a=1)
        with pytest.raises(TypeError):
            ctx.fields["a"] = 2  # type: ignore[index]

    def test_root_fields_are_read_only(self) -> None:
        """Test a context built from a plain dict is immutable too."""
        source = {"channel": "C1"}
        ctx = CorrelationContext(event_id="E1", fields=source)

        with pytest.raises(TypeError):
            ctx.fields["channel"] = "C2"  # type: ignore[index]
        source["channel"] = "C2"
        assert ctx.fields["channel"] == "C1"

    def test_context_is_frozen(self, ctx: CorrelationContext) -> None:
        """Test attributes cannot be reassigned."""
        with pytest.raises(AttributeError):
            ctx.event_id = "other"  # type: ignore[misc]

    def test_as_log_fields(self) -> None:
        """Test flattening into log keywords."""
        ctx = CorrelationContext(event_id="E1", tenant_id="T1", event_kind="mention").extend(
            channel="C1"
        )
        assert ctx.as_log_fields() == {
            "event_id": "E1",
            "tenant_id": "T1",
            "event_kind": "mention",
            "channel": "C1",
        }

    def test_bind(self, ctx: CorrelationContext) -> None:
        """Test binding passes every field to the logger."""
        logger = MagicMock()
        ctx.bind(logger)
        logger.bind.assert_called_once_with(**ctx.as_log_fields())


class TestResults:
    """Test result value objects."""

    def test_ocr_result_empty(self) -> None:
        """Test emptiness of OCR results."""
        assert OCRResult(text="", detection_count=0).is_empty is True
        assert OCRResult(text="TOTAL 5.00", detection_count=1).is_empty is False

    def test_token_usage_from_payload(self) -> None:
        """Test usage counters are read from the provider object."""
        usage = TokenUsage.from_payload({"prompt_tokens": 10, "completion_tokens": 5})
        assert usage is not None
        assert usage.prompt_tokens == 10
        assert usage.total_tokens is None
        assert TokenUsage.from_payload(None) is None

    def test_delivery_target_fallback(self) -> None:
        """Test the fallback target drops the thread."""
        target = DeliveryTarget(channel="C1", thread_ts="1.0")
        assert target.fallback() == DeliveryTarget(channel="C1", thread_ts=None)
