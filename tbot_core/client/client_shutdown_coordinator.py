# tbot_core/client/client_shutdown_coordinator.py
import asyncio
import logging
import os
import signal
from typing import TYPE_CHECKING, Callable, Optional

from tbot_core.client.timers import CancellableTimer
from tbot_core.state_manager import SessionContext, SessionState

if TYPE_CHECKING:
    from tbot_core.network_handler import NetworkHandler
    from tbot_core.client.reconnection_controller import ReconnectionController

logger = logging.getLogger("tbot.shutdown")

EXIT_CLEAN = 0
EXIT_FORCED = 1
EXIT_INTERRUPTED = 130


class ClientShutdownCoordinator:
    """
    Sequences the shutdown of the bot.

    The first termination request runs the graceful path: stop reconnecting,
    send QUIT, wait for the transport to close (bounded by a watchdog) and
    set ``shutdown_complete_event``. Repeated requests skip all of that and
    exit the process at once.
    """

    def __init__(
        self,
        ctx: SessionContext,
        transport: "NetworkHandler",
        reconnection: "ReconnectionController",
        shutdown_timeout: float,
        quit_message: str,
        hard_exit: Callable[[int], None] = os._exit,
    ):
        self.ctx = ctx
        self.transport = transport
        self.reconnection = reconnection
        self.shutdown_timeout = shutdown_timeout
        self.quit_message = quit_message
        self.hard_exit = hard_exit
        self.shutdown_complete_event = asyncio.Event()
        self.exit_code: Optional[int] = None
        self._watchdog: Optional[CancellableTimer] = None
        self._disconnect_task: Optional[asyncio.Task] = None
        self.forced = False

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.handle_signal, sig)
            except NotImplementedError:
                # Windows event loops do not support add_signal_handler.
                logger.warning(f"Cannot install handler for {sig.name} on this platform.")

    def handle_signal(self, signum: int) -> None:
        if signum == signal.SIGINT:
            self.ctx.shutdown.termination_signal_count += 1
            count = self.ctx.shutdown.termination_signal_count
            if count > 1 or self.ctx.shutdown.initiated:
                logger.warning(f"Received SIGINT again (count {count}); forcing exit.")
                self._force_exit(EXIT_INTERRUPTED)
                return
            logger.info("Received SIGINT, shutting down gracefully. Press Ctrl+C again to force exit.")
            self.initiate_shutdown("Received SIGINT")
        elif signum == signal.SIGTERM:
            logger.info("Received SIGTERM.")
            self.initiate_shutdown("Received SIGTERM")
        else:
            logger.debug(f"Ignoring signal {signum}.")

    def initiate_shutdown(self, reason: str = "Shutdown requested") -> None:
        """Starts the graceful shutdown. A second call forces an immediate exit."""
        if self.ctx.shutdown.initiated:
            logger.warning(f"Shutdown already in progress ({self.ctx.shutdown.reason}); new request: {reason}. Forcing exit.")
            self._force_exit(EXIT_FORCED)
            return

        self.ctx.shutdown.initiated = True
        self.ctx.shutdown.reason = reason
        logger.info(f"Initiating graceful shutdown. Reason: {reason}")
        self.ctx.set_state(SessionState.SHUTTING_DOWN)
        self.reconnection.cancel_retry()
        self.ctx.cancel_rejoin_timers()
        self._watchdog = CancellableTimer("shutdown-watchdog", self.shutdown_timeout, self._on_watchdog_expired)

        if self.transport.is_connected():
            self._disconnect_task = asyncio.get_running_loop().create_task(self._disconnect(), name="tbot-disconnect")
        else:
            logger.info("Not connected; nothing to disconnect.")
            self._cancel_watchdog()
            self._finish(EXIT_CLEAN)

    async def _disconnect(self) -> None:
        try:
            await self.transport.disconnect(self.quit_message, on_complete=self._on_disconnect_complete)
        except Exception as e:
            logger.error(f"Error during disconnect: {e}", exc_info=True)
            self._cancel_watchdog()
            self._finish(EXIT_CLEAN)

    def _on_disconnect_complete(self) -> None:
        logger.info("Disconnected from server.")
        self._cancel_watchdog()
        self._finish(EXIT_CLEAN)

    def _on_watchdog_expired(self) -> None:
        logger.warning(f"Shutdown did not complete within {self.shutdown_timeout:.1f}s; exiting anyway.")
        self._force_exit(EXIT_CLEAN)

    def _cancel_watchdog(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()

    def _finish(self, code: int) -> None:
        if self.shutdown_complete_event.is_set():
            return
        self.exit_code = code
        logger.info(f"Shutdown complete (exit code {code}).")
        self.shutdown_complete_event.set()

    def _force_exit(self, code: int) -> None:
        logger.critical(f"Forcing immediate exit with code {code}.")
        self.exit_code = code
        self.forced = True
        for handler in logging.getLogger().handlers:
            handler.flush()
        self.hard_exit(code)
        # hard_exit may be swapped for one that returns.
        self.shutdown_complete_event.set()
