"""Event classification and pipeline orchestration.

``classify`` decides what an inbound event is; ``EventRouter`` runs the
matching pipeline:

- Ignore: bot messages, edits and other non-user subtypes
- ImagePipeline: download -> OCR -> receipt analysis -> deliver
- MentionChat: chat reply -> deliver
- NoOp: everything else

Every failure below the router is caught here, logged with the
correlation context, and turned into a single error message in the same
thread the result would have gone to.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from receipt_agent.core.delivery import truncate_message
from receipt_agent.models.context import CorrelationContext
from receipt_agent.models.event import EventValidationError, IncomingEvent
from receipt_agent.models.results import DeliveryTarget, ProcessingResult
from receipt_agent.models.route import Ignore, ImagePipeline, MentionChat, NoOp, Route

if TYPE_CHECKING:
    from receipt_agent.core.delivery import DeliveryService
    from receipt_agent.core.fetcher import AttachmentFetcher
    from receipt_agent.core.ocr import OCRInvoker
    from receipt_agent.interfaces.llm import LLMProvider

log = structlog.get_logger()

Responder = Callable[[str], Awaitable[Any]]

IMAGE_ACK_TEXT = "🔍 Processing your image with OCR..."
CHAT_ACK_TEXT = "🤖 Thinking..."
COMMAND_ACK_TEXT = "🤖 Analyzing your text..."
NO_TEXT_FOUND_TEXT = "❌ No text detected in the image."
GREETING_TEXT = "Hi! Tell me what you need help with."
COMMAND_USAGE_TEXT = "Send `{command} <text>` or upload an image and mention me."
ERROR_PREFIX = "❌ Error: "


class PipelineStage(Enum):
    """Where an event's handling currently is."""

    RECEIVED = "received"
    ACKNOWLEDGING = "acknowledging"
    FETCHING = "fetching"
    RECOGNIZING = "recognizing"
    ANALYZING = "analyzing"
    CHATTING = "chatting"
    DELIVERING = "delivering"
    DONE = "done"


def classify(event: IncomingEvent) -> Route:
    """Decide how an event is handled.

    Precedence: ignore, image pipeline, mention chat, no-op. An image
    attachment wins over a mention in the same message.
    """
    if not event.is_plain_message:
        return Ignore(reason=f"subtype:{event.subtype}")
    if not event.user:
        return Ignore(reason="no_user")
    if event.is_from_bot:
        return Ignore(reason="bot_message")

    for attachment in event.files:
        if attachment.is_image and attachment.is_downloadable:
            return ImagePipeline(attachment=attachment, url=attachment.url or "")

    if event.has_mention:
        return MentionChat(text=event.text_without_mentions())

    return NoOp()


def build_context(event: IncomingEvent) -> CorrelationContext:
    """Create the root correlation context for an event."""
    return CorrelationContext(
        event_id=event.event_id or f"{event.channel}:{event.ts}",
        tenant_id=event.team_id,
        event_kind="message",
        fields={"channel": event.channel, "ts": event.ts},
    )


class EventRouter:
    """Classifies inbound events and drives the matching pipeline.

    Collaborators are passed in explicitly so the router can run against
    substitutes in tests.

    Example:
        router = EventRouter(fetcher, ocr, llm, delivery)
        result = await router.handle_event(IncomingEvent.from_payload(event, body))
    """

    def __init__(
        self,
        fetcher: AttachmentFetcher,
        ocr: OCRInvoker,
        llm: LLMProvider,
        delivery: DeliveryService,
    ) -> None:
        self._fetcher = fetcher
        self._ocr = ocr
        self._llm = llm
        self._delivery = delivery

        self._handlers: dict[
            type[Route],
            Callable[[Any, IncomingEvent, CorrelationContext], Awaitable[ProcessingResult]],
        ] = {
            Ignore: self._handle_ignore,
            ImagePipeline: self._run_image_pipeline,
            MentionChat: self._run_mention_chat,
            NoOp: self._handle_noop,
        }

    async def handle_payload(
        self,
        event: dict[str, Any],
        envelope: dict[str, Any] | None = None,
    ) -> ProcessingResult:
        """Normalize a raw platform event and handle it."""
        try:
            incoming = IncomingEvent.from_payload(event, envelope)
        except EventValidationError as e:
            log.info("event_ignored", reason="invalid_payload", error=str(e))
            return ProcessingResult.IGNORED
        return await self.handle_event(incoming)

    async def handle_event(self, event: IncomingEvent) -> ProcessingResult:
        """Handle one event. Never raises."""
        ctx = build_context(event)
        try:
            route = classify(event)
            handler = self._handlers[type(route)]
            return await handler(route, event, ctx)
        except Exception as e:
            # Pipelines catch their own errors; this guards classification
            log.exception("event_handling_failed", error=str(e), **ctx.as_log_fields())
            return ProcessingResult.ERROR

    async def _handle_ignore(
        self,
        route: Ignore,
        event: IncomingEvent,
        ctx: CorrelationContext,
    ) -> ProcessingResult:
        ctx.extend(event_kind="ignored").bind(log).info("event_ignored", reason=route.reason)
        return ProcessingResult.IGNORED

    async def _handle_noop(
        self,
        route: NoOp,
        event: IncomingEvent,
        ctx: CorrelationContext,
    ) -> ProcessingResult:
        ctx.extend(event_kind="no_op").bind(log).debug("event_not_actionable")
        return ProcessingResult.NO_OP

    async def _run_image_pipeline(
        self,
        route: ImagePipeline,
        event: IncomingEvent,
        ctx: CorrelationContext,
    ) -> ProcessingResult:
        attachment = route.attachment
        ctx = ctx.extend(
            event_kind="image",
            file_id=attachment.id,
            mime_type=attachment.mimetype,
        )
        target = DeliveryTarget(channel=event.channel, thread_ts=event.reply_thread_ts)
        bound = ctx.bind(log)
        stage = PipelineStage.RECEIVED
        started = time.monotonic()
        bound.info("image_pipeline_started")

        try:
            stage = PipelineStage.ACKNOWLEDGING
            await self._delivery.deliver(target, IMAGE_ACK_TEXT, ctx)

            stage = PipelineStage.FETCHING
            image = await self._fetcher.fetch(route.url, ctx)

            stage = PipelineStage.RECOGNIZING
            ocr_text = await self._ocr.recognize(image, ctx)

            if not ocr_text:
                stage = PipelineStage.DELIVERING
                await self._delivery.deliver(target, NO_TEXT_FOUND_TEXT, ctx)
                self._log_completion(bound, started, ProcessingResult.NO_TEXT_FOUND)
                return ProcessingResult.NO_TEXT_FOUND

            stage = PipelineStage.ANALYZING
            analysis = await self._llm.analyze_receipt(ocr_text, ctx.extend(mode="analyze"))

            stage = PipelineStage.DELIVERING
            await self._delivery.deliver(target, analysis.text, ctx)

            stage = PipelineStage.DONE
            self._log_completion(
                bound,
                started,
                ProcessingResult.RECEIPT_ANALYZED,
                degraded=analysis.degraded,
            )
            return ProcessingResult.RECEIPT_ANALYZED

        except Exception as e:
            await self._report_failure(e, target, ctx, stage)
            return ProcessingResult.ERROR

    async def _run_mention_chat(
        self,
        route: MentionChat,
        event: IncomingEvent,
        ctx: CorrelationContext,
    ) -> ProcessingResult:
        ctx = ctx.extend(event_kind="mention", mode="chat")
        target = DeliveryTarget(channel=event.channel, thread_ts=event.reply_thread_ts)
        bound = ctx.bind(log)
        stage = PipelineStage.RECEIVED
        started = time.monotonic()

        try:
            if not route.text:
                stage = PipelineStage.DELIVERING
                await self._delivery.deliver(target, GREETING_TEXT, ctx)
                self._log_completion(bound, started, ProcessingResult.GREETED)
                return ProcessingResult.GREETED

            stage = PipelineStage.ACKNOWLEDGING
            await self._delivery.deliver(target, CHAT_ACK_TEXT, ctx)

            stage = PipelineStage.CHATTING
            reply = await self._llm.chat_reply(route.text, ctx)

            stage = PipelineStage.DELIVERING
            await self._delivery.deliver(target, reply.text, ctx)

            stage = PipelineStage.DONE
            self._log_completion(
                bound,
                started,
                ProcessingResult.CHAT_REPLIED,
                degraded=reply.degraded,
            )
            return ProcessingResult.CHAT_REPLIED

        except Exception as e:
            await self._report_failure(e, target, ctx, stage)
            return ProcessingResult.ERROR

    async def handle_command(
        self,
        text: str,
        respond: Responder,
        ctx: CorrelationContext,
        command: str = "/analyze",
    ) -> ProcessingResult:
        """Answer a slash command through its response channel.

        The platform acknowledgment must already have been sent; everything
        here happens after it. Never raises.
        """
        ctx = ctx.extend(event_kind="slash_command", mode="chat")
        bound = ctx.bind(log)
        text = text.strip()

        try:
            if not text:
                await respond(COMMAND_USAGE_TEXT.format(command=command))
                return ProcessingResult.NO_OP

            await respond(COMMAND_ACK_TEXT)
            reply = await self._llm.chat_reply(text, ctx)
            await respond(truncate_message(reply.text))
            bound.info("slash_command_complete", degraded=reply.degraded)
            return ProcessingResult.CHAT_REPLIED

        except Exception as e:
            bound.exception("slash_command_failed", error=str(e))
            try:
                await respond(f"{ERROR_PREFIX}{e}")
            except Exception as respond_error:
                bound.error("send_error_reply_failed", error=str(respond_error))
            return ProcessingResult.ERROR

    async def _report_failure(
        self,
        error: Exception,
        target: DeliveryTarget,
        ctx: CorrelationContext,
        stage: PipelineStage,
    ) -> None:
        """Log a pipeline failure and tell the user about it."""
        bound = ctx.bind(log)
        bound.exception(
            "event_processing_failed",
            stage=stage.value,
            error=str(error),
            error_type=type(error).__name__,
        )
        try:
            await self._delivery.deliver(target, f"{ERROR_PREFIX}{error}", ctx)
        except Exception as e:
            bound.error("send_error_reply_failed", error=str(e))

    @staticmethod
    def _log_completion(
        bound: Any,
        started: float,
        result: ProcessingResult,
        **fields: Any,
    ) -> None:
        bound.info(
            "event_processing_complete",
            result=result.value,
            duration_seconds=round(time.monotonic() - started, 2),
            **fields,
        )
