"""Slack chat adapter using slack-bolt.

This module implements the ChatProvider protocol for Slack and wires Bolt
listeners to the EventRouter.

Features:
- ``message`` events routed to the receipt/chat pipelines
- A slash command acknowledged immediately and answered ephemerally
- Thread replies, with thread rejections reported as a distinct error
- Socket Mode when an app token is configured, HTTP otherwise
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from aiohttp import web
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.app.async_app import AsyncApp
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from ...config.schema import SlackConfig
from ...models.context import CorrelationContext
from ...utils.async_helpers import DeliveryError, ThreadReplyRejectedError

if TYPE_CHECKING:
    from slack_bolt.context.ack.async_ack import AsyncAck
    from slack_bolt.context.respond.async_respond import AsyncRespond

    from ...core.router import EventRouter


log = structlog.get_logger()


class SlackAdapterError(Exception):
    """Base exception for Slack adapter errors."""


class SlackConnectionError(SlackAdapterError):
    """Raised when connecting to Slack fails."""


class SlackAdapter:
    """Slack chat adapter implementing the ChatProvider protocol.

    The adapter owns the Bolt app. Inbound events are handed to the router
    attached with ``attach``; outbound messages go through ``post_message``.

    Example:
        config = SlackConfig(bot_token="xoxb-...", signing_secret="...")
        adapter = SlackAdapter(config)
        adapter.attach(router)

        await adapter.connect()
        ...
        await adapter.disconnect()
    """

    def __init__(self, config: SlackConfig) -> None:
        """Initialize the Slack adapter.

        Args:
            config: Slack-specific configuration.
        """
        self._config = config
        self._connected = False
        self._router: EventRouter | None = None
        self._thread_rejection_errors = frozenset(config.thread_rejection_errors)

        app_kwargs: dict[str, Any] = {"token": config.bot_token}
        if config.signing_secret:
            app_kwargs["signing_secret"] = config.signing_secret
        self._app = AsyncApp(**app_kwargs)
        self._client: AsyncWebClient = self._app.client

        self._socket_handler: AsyncSocketModeHandler | None = None
        self._runner: web.AppRunner | None = None

        self._register_handlers()

    @property
    def app(self) -> AsyncApp:
        """Return the underlying Bolt app."""
        return self._app

    def attach(self, router: EventRouter) -> None:
        """Set the router that receives inbound events."""
        self._router = router

    def _register_handlers(self) -> None:
        """Register event, command and error handlers with the Slack app."""

        @self._app.event("message")
        async def handle_message(event: dict[str, Any], body: dict[str, Any]) -> None:
            """Handle incoming message events."""
            await self._process_message_event(event, body)

        @self._app.command(self._config.command)
        async def handle_command(
            ack: AsyncAck,
            respond: AsyncRespond,
            command: dict[str, Any],
        ) -> None:
            """Acknowledge within Slack's deadline, then answer."""
            await ack()
            await self._process_command(command, respond)

        @self._app.error
        async def handle_error(error: Exception, body: dict[str, Any]) -> None:
            """Log anything that escaped a listener; the app keeps serving."""
            log.error(
                "unhandled_listener_error",
                error=str(error),
                error_type=type(error).__name__,
                event_id=body.get("event_id") if isinstance(body, dict) else None,
                exc_info=error,
            )

    async def _process_message_event(self, event: dict[str, Any], body: dict[str, Any]) -> None:
        """Hand a message event to the router."""
        if self._router is None:
            log.warning("event_dropped_no_router", event_id=body.get("event_id"))
            return
        await self._router.handle_payload(event, body)

    async def _process_command(self, command: dict[str, Any], respond: AsyncRespond) -> None:
        """Hand a slash command to the router with an ephemeral responder."""
        if self._router is None:
            log.warning("command_dropped_no_router", command=self._config.command)
            return

        ctx = CorrelationContext(
            event_id=command.get("trigger_id") or command.get("command_ts") or "unknown",
            tenant_id=command.get("team_id"),
            event_kind="slash_command",
            fields={
                "channel": command.get("channel_id"),
                "user": command.get("user_id"),
            },
        )

        async def respond_ephemeral(text: str) -> Any:
            return await respond(text=text, response_type="ephemeral")

        await self._router.handle_command(
            command.get("text") or "",
            respond_ephemeral,
            ctx,
            command=self._config.command,
        )

    async def post_message(
        self,
        channel: str,
        text: str,
        thread_ts: str | None = None,
    ) -> str:
        """Post a message to a channel, optionally in a thread.

        Args:
            channel: Target channel identifier.
            text: Plain text message.
            thread_ts: Root message timestamp of the thread (optional).

        Returns:
            Message timestamp (ts) of the posted message.

        Raises:
            ThreadReplyRejectedError: If Slack refuses a reply in the thread.
            DeliveryError: If message delivery fails otherwise.
        """
        kwargs: dict[str, Any] = {
            "channel": channel,
            "text": text,
        }
        if thread_ts:
            kwargs["thread_ts"] = thread_ts

        try:
            result = await self._client.chat_postMessage(**kwargs)
        except SlackApiError as e:
            error_code = e.response.get("error") if e.response is not None else None
            if thread_ts and error_code in self._thread_rejection_errors:
                raise ThreadReplyRejectedError(
                    f"Thread reply rejected: {error_code}",
                    error_code=error_code,
                ) from e

            log.error(
                "post_message_failed",
                channel=channel,
                thread_ts=thread_ts,
                error_code=error_code,
                error=str(e),
            )
            raise DeliveryError(f"Failed to send message: {e}", error_code=error_code) from e

        message_ts: str = result.get("ts", "")
        log.debug(
            "message_sent",
            channel=channel,
            message_ts=message_ts,
            thread_ts=thread_ts,
        )
        return message_ts

    async def connect(self) -> None:
        """Start receiving events.

        Uses Socket Mode when an app token is configured, otherwise serves
        the Bolt app over HTTP on the events, commands and interactivity
        paths.

        Raises:
            SlackConnectionError: If connection fails.
        """
        if self._connected:
            return

        try:
            if self._config.socket_mode:
                self._socket_handler = AsyncSocketModeHandler(
                    app=self._app,
                    app_token=self._config.app_token,
                )
                await self._socket_handler.connect_async()  # type: ignore[no-untyped-call]
            else:
                await self._start_http_server()

            self._connected = True
            log.info(
                "slack_connected",
                mode="socket" if self._config.socket_mode else "http",
                port=None if self._config.socket_mode else self._config.port,
            )

        except Exception as e:
            log.error("slack_connection_failed", error=str(e))
            raise SlackConnectionError(f"Failed to connect to Slack: {e}") from e

    async def _start_http_server(self) -> None:
        server = self._app.server(
            port=self._config.port,
            path=self._config.events_path,
            host=self._config.host,
        )
        for path in (self._config.commands_path, self._config.interactivity_path):
            if path != self._config.events_path:
                server.web_app.router.add_post(path, server.handle_post_requests)

        self._runner = web.AppRunner(server.web_app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()

    async def disconnect(self) -> None:
        """Gracefully stop receiving events."""
        if not self._connected:
            return

        try:
            if self._socket_handler:
                await self._socket_handler.close_async()  # type: ignore[no-untyped-call]
            if self._runner:
                await self._runner.cleanup()
        except Exception as e:
            log.warning("disconnect_error", error=str(e))

        self._socket_handler = None
        self._runner = None
        self._connected = False
        log.info("slack_disconnected")
