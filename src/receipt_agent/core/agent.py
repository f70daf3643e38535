"""Agent lifecycle and component wiring.

This module implements the Agent class that serves as the main entry point
for Receipt Agent. It:
- Connects the chat adapter and keeps the process alive until shutdown
- Handles graceful shutdown on signals (SIGTERM, SIGINT)
- Releases the shared HTTP client on exit

``create_agent`` builds every collaborator from configuration.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

import httpx
import structlog

from receipt_agent.adapters.chat.slack import SlackAdapter
from receipt_agent.adapters.llm.chat_completions import ChatCompletionsClient
from receipt_agent.adapters.ocr.tencent import TencentOCRAdapter
from receipt_agent.config.schema import AgentConfig
from receipt_agent.core.delivery import DeliveryService
from receipt_agent.core.fetcher import AttachmentFetcher
from receipt_agent.core.ocr import OCRInvoker
from receipt_agent.core.router import EventRouter
from receipt_agent.utils.async_helpers import RetryPolicy
from receipt_agent.utils.security import mask_config_value

if TYPE_CHECKING:
    from receipt_agent.interfaces.ocr import OCRProvider

log = structlog.get_logger()


class AgentLifecycleError(Exception):
    """Base exception for agent lifecycle errors."""


class StartupError(AgentLifecycleError):
    """Failed to start the agent."""


class Agent:
    """Owns the running process.

    Event handling itself happens in Bolt listener tasks; the agent only
    connects the adapter, waits for a shutdown signal and tears down.

    Example:
        agent = await create_agent(config)
        await agent.start()  # Blocks until shutdown signal

        # Or manual control from another task:
        await agent.stop()
    """

    def __init__(
        self,
        config: AgentConfig,
        chat: SlackAdapter,
        router: EventRouter,
        http_client: httpx.AsyncClient,
    ) -> None:
        self._config = config
        self._chat = chat
        self._router = router
        self._http_client = http_client

        self._running = False
        self._shutdown_event: asyncio.Event | None = None

    @property
    def is_running(self) -> bool:
        """Return True if the agent is currently running."""
        return self._running

    @property
    def router(self) -> EventRouter:
        """Return the event router."""
        return self._router

    async def start(self) -> None:
        """Connect and block until shutdown is triggered.

        Raises:
            StartupError: If startup fails
        """
        if self._running:
            log.warning("agent_already_running")
            return

        log.info("agent_starting", **self._startup_summary())

        try:
            self._shutdown_event = asyncio.Event()

            log.info("connecting_to_chat_provider")
            await self._chat.connect()

            self._setup_signal_handlers()
            self._running = True
            log.info("agent_started")

        except Exception as e:
            log.exception("agent_startup_failed", error=str(e))
            await self._cleanup()
            raise StartupError(f"Failed to start agent: {e}") from e

        await self._shutdown_event.wait()
        await self._cleanup()
        self._running = False
        log.info("agent_stopped")

    async def stop(self) -> None:
        """Ask a running agent to shut down."""
        if not self._running or self._shutdown_event is None:
            log.warning("agent_not_running")
            return

        log.info("agent_stopping")
        self._shutdown_event.set()

    async def _cleanup(self) -> None:
        """Clean up resources."""
        log.debug("cleaning_up_resources")

        try:
            await self._chat.disconnect()
        except Exception as e:
            log.warning("chat_disconnect_error", error=str(e))

        await self._http_client.aclose()

    def _startup_summary(self) -> dict[str, str | int | bool]:
        slack = self._config.slack
        return {
            "mode": "socket" if slack.socket_mode else "http",
            "port": slack.port,
            "command": slack.command,
            "bot_token": mask_config_value("bot_token", slack.bot_token),
            "llm_model": self._config.llm.model,
            "llm_api_url": self._config.llm.api_url,
            "ocr_provider": self._config.ocr.provider,
        }

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s: asyncio.create_task(self._handle_signal(s)),
                sig,
            )
            log.debug("signal_handler_registered", signal=sig.name)

    async def _handle_signal(self, sig: signal.Signals) -> None:
        log.info("received_signal", signal=sig.name)
        await self.stop()


def _create_ocr_provider(config: AgentConfig) -> OCRProvider:
    """Create an OCR adapter based on configuration.

    Raises:
        ValueError: If provider is not supported
    """
    provider = config.ocr.provider

    if provider == "tencent":
        if not config.ocr.tencent:
            raise ValueError("Tencent configuration required when provider is 'tencent'")
        return TencentOCRAdapter(config.ocr.tencent)

    raise ValueError(f"Unsupported OCR provider: {provider}")


async def create_agent(config: AgentConfig) -> Agent:
    """Factory function to create an Agent with all dependencies.

    Args:
        config: Application configuration

    Returns:
        Configured Agent instance

    Raises:
        ValueError: If configuration is invalid
    """
    http_client = httpx.AsyncClient(timeout=config.http.timeout)

    ocr = OCRInvoker(_create_ocr_provider(config), RetryPolicy())
    llm = ChatCompletionsClient(config.llm, http_client)
    fetcher = AttachmentFetcher(http_client, config.slack.bot_token)

    chat = SlackAdapter(config.slack)
    delivery = DeliveryService(chat)
    router = EventRouter(fetcher, ocr, llm, delivery)
    chat.attach(router)

    return Agent(config, chat, router, http_client)
