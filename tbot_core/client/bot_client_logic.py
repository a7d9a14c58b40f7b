# tbot_core/client/bot_client_logic.py
import asyncio
import logging
import os
import signal
from typing import Any, Callable, Dict, Optional

from tbot_core.app_config import AppConfig
from tbot_core.client.client_shutdown_coordinator import ClientShutdownCoordinator
from tbot_core.client.event_router import EventRouter
from tbot_core.client.reconnection_controller import ReconnectionController, build_policy
from tbot_core.commands.command_handler import CommandHandler
from tbot_core.irc.irc_events import TransportEvent
from tbot_core.network_handler import NetworkHandler, TransportError
from tbot_core.state_manager import SessionContext, SessionState

logger = logging.getLogger("tbot.logic")


class BotClient:
    """
    Wires the session together and runs the single control loop.

    The transport only produces events; this loop is their only consumer and
    awaits each dispatch before taking the next one, so every state decision
    happens in order on the event loop.
    """

    def __init__(self, config: AppConfig, transport: Optional[NetworkHandler] = None, hard_exit: Callable[[int], None] = os._exit):
        self.config = config
        self.event_queue: "asyncio.Queue[TransportEvent]" = asyncio.Queue()
        self.ctx = SessionContext(
            nick=config.server.nick,
            max_attempts=config.reconnect.max_attempts,
            base_delay=config.reconnect.delay,
        )
        self.transport = transport if transport is not None else NetworkHandler(config, self.event_queue)
        self.command_handler = CommandHandler(config.bot.command_prefix)

        # The controller and coordinator refer to each other; bind through a callback.
        self.reconnection = ReconnectionController(
            self.ctx,
            self.transport,
            build_policy(config.reconnect),
            on_exhausted=self._on_retries_exhausted,
        )
        self.shutdown_coordinator = ClientShutdownCoordinator(
            self.ctx,
            self.transport,
            self.reconnection,
            shutdown_timeout=config.shutdown_timeout,
            quit_message=config.bot.quit_message,
            hard_exit=hard_exit,
        )
        self.router = EventRouter(
            self.ctx,
            self.transport,
            self.reconnection,
            self.command_handler,
            config.bot,
            initiate_shutdown=self.shutdown_coordinator.initiate_shutdown,
        )

    @property
    def shutdown_complete_event(self) -> asyncio.Event:
        return self.shutdown_coordinator.shutdown_complete_event

    def _on_retries_exhausted(self, reason: str) -> None:
        self.shutdown_coordinator.initiate_shutdown(reason)

    def request_shutdown(self, reason: str = "Shutdown requested") -> None:
        self.shutdown_coordinator.initiate_shutdown(reason)

    def _handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        # Stray task failures are only reported; they never end the session.
        exception = context.get("exception")
        message = context.get("message", "Unhandled exception in event loop")
        if exception is not None:
            logger.error(f"{message}: {exception!r}", exc_info=exception)
        else:
            logger.error(message)

    def start_connection(self) -> None:
        self.ctx.set_state(SessionState.CONNECTING)
        try:
            self.transport.connect()
        except TransportError as e:
            logger.error(f"Could not start connection: {e}")
            self.ctx.set_state(SessionState.DISCONNECTED)
            self.reconnection.schedule_retry()

    async def run(self) -> int:
        """Runs until shutdown completes and returns the process exit code."""
        loop = asyncio.get_running_loop()
        self.shutdown_coordinator.install_signal_handlers(loop)
        previous_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._handle_loop_exception)

        server = self.config.server
        logger.info(f"Starting bot {server.nick} for {server.address}:{server.port} (SSL: {server.ssl})")
        logger.info(f"Command prefix: {self.config.bot.command_prefix}")
        logger.info(f"Available commands: {', '.join(self.command_handler.command_names)}")

        try:
            if server.auto_connect:
                self.start_connection()
            else:
                logger.info("auto_connect is disabled; idle until shutdown.")
            await self._control_loop()
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.remove_signal_handler(sig)
                except NotImplementedError:
                    pass
            # Nothing more is awaited after a forced exit.
            if self.transport.task_running and not self.shutdown_coordinator.forced:
                await self.transport.stop()
            loop.set_exception_handler(previous_handler)

        exit_code = self.shutdown_coordinator.exit_code
        logger.info(f"Bot stopped with exit code {exit_code or 0}.")
        return exit_code or 0

    async def _control_loop(self) -> None:
        shutdown_wait = asyncio.create_task(self.shutdown_complete_event.wait())
        try:
            while not self.shutdown_complete_event.is_set():
                next_event = asyncio.create_task(self.event_queue.get())
                done, _ = await asyncio.wait({next_event, shutdown_wait}, return_when=asyncio.FIRST_COMPLETED)
                if next_event not in done:
                    next_event.cancel()
                    break
                event = next_event.result()
                try:
                    await self.router.dispatch(event)
                except Exception as e:
                    logger.critical(f"Unhandled error while handling {type(event).__name__}: {e}", exc_info=True)
                    self.shutdown_coordinator.initiate_shutdown(f"Internal error: {e}")
        finally:
            shutdown_wait.cancel()
