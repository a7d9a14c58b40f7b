# tbot_core/client/event_router.py
import asyncio
import logging
from typing import TYPE_CHECKING, Callable, Set

from tbot_core.client.timers import CancellableTimer
from tbot_core.config_defs import BotConfig
from tbot_core.irc.irc_events import (
    Registered,
    ChannelJoined,
    NickChanged,
    PeerJoined,
    PeerLeft,
    PeerQuit,
    Kicked,
    MessageReceived,
    ProtocolError,
    ConnectionClosed,
    NetworkError,
    TransportEvent,
)
from tbot_core.state_manager import CommandInvocation, SessionContext, SessionState

if TYPE_CHECKING:
    from tbot_core.network_handler import NetworkHandler
    from tbot_core.commands.command_handler import CommandHandler
    from tbot_core.client.reconnection_controller import ReconnectionController

logger = logging.getLogger("tbot.router")

# Protocol errors after which retrying would only hit the same wall.
FATAL_PROTOCOL_ERRORS = {"err_nicknameinuse"}

NETWORK_ERROR_DESCRIPTIONS = {
    "ECONNRESET": "connection reset by peer",
    "ENOTFOUND": "server name could not be resolved",
    "ECONNREFUSED": "connection refused",
    "ETIMEDOUT": "connection timed out",
}


class EventRouter:
    """Turns each transport event into state changes and actions, one at a time."""

    def __init__(
        self,
        ctx: SessionContext,
        transport: "NetworkHandler",
        reconnection: "ReconnectionController",
        command_handler: "CommandHandler",
        bot_config: BotConfig,
        initiate_shutdown: Callable[[str], None],
    ):
        self.ctx = ctx
        self.transport = transport
        self.reconnection = reconnection
        self.command_handler = command_handler
        self.bot_config = bot_config
        self.initiate_shutdown = initiate_shutdown
        self._background_tasks: Set[asyncio.Task] = set()

    async def dispatch(self, event: TransportEvent) -> None:
        if isinstance(event, Registered):
            self._on_registered(event)
        elif isinstance(event, MessageReceived):
            await self._on_message(event)
        elif isinstance(event, Kicked):
            self._on_kicked(event)
        elif isinstance(event, NickChanged):
            logger.info(f"Now known as {event.new_nick} (was {event.old_nick})")
            self.ctx.nick = event.new_nick
        elif isinstance(event, ChannelJoined):
            logger.info(f"Joined {event.channel}")
        elif isinstance(event, PeerJoined):
            logger.info(f"{event.nick} joined {event.channel}")
        elif isinstance(event, PeerLeft):
            logger.info(f"{event.nick} left {event.channel}{f' ({event.reason})' if event.reason else ''}")
        elif isinstance(event, PeerQuit):
            logger.info(f"{event.nick} quit{f' ({event.reason})' if event.reason else ''}")
        elif isinstance(event, ProtocolError):
            self._on_protocol_error(event)
        elif isinstance(event, (ConnectionClosed, NetworkError)):
            self._on_disconnected(event)
        else:
            logger.warning(f"Unhandled transport event: {event!r}")

    def _on_registered(self, event: Registered) -> None:
        logger.info(f"Connected to IRC server as {event.nick}")
        self.reconnection.reset()
        self.ctx.nick = event.nick
        self.ctx.set_state(SessionState.CONNECTED)
        self.ctx.reconnect_suppressed = False

    def _on_kicked(self, event: Kicked) -> None:
        logger.warning(f"{event.nick} was kicked from {event.channel} by {event.by}: {event.reason}")
        if not event.is_self or not self.bot_config.auto_rejoin or self.ctx.shutdown.initiated:
            return
        channel_key = event.channel.lower()
        if channel_key in self.ctx.rejoin_timers:
            logger.debug(f"Rejoin of {event.channel} already pending.")
            return
        logger.info(f"Rejoining {event.channel} in {self.bot_config.rejoin_delay:.0f} seconds.")
        self.ctx.rejoin_timers[channel_key] = CancellableTimer(
            f"rejoin {event.channel}",
            self.bot_config.rejoin_delay,
            lambda: self._on_rejoin_timer(event.channel),
        )

    def _on_rejoin_timer(self, channel: str) -> None:
        self.ctx.rejoin_timers.pop(channel.lower(), None)
        if self.ctx.state is not SessionState.CONNECTED:
            logger.debug(f"Skipping rejoin of {channel}: not connected.")
            return
        task = asyncio.get_running_loop().create_task(self.transport.join(channel))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _on_message(self, event: MessageReceived) -> None:
        if self.ctx.is_self(event.sender):
            return
        is_private = event.is_private
        if is_private and not self.ctx.is_self(event.target):
            logger.debug(f"Ignoring private message addressed to {event.target}")
            return

        location = "PM" if is_private else event.target
        logger.info(f"[{location}] <{event.sender}> {event.text}")

        invocation = CommandInvocation.parse(event.sender, event.target, event.text, self.bot_config.command_prefix)
        if invocation is None:
            return
        reply_target = event.sender if is_private else event.target
        await self._run_command(invocation, reply_target)

    async def _run_command(self, invocation: CommandInvocation, reply_target: str) -> None:
        name = invocation.command_name
        try:
            handled = await self.command_handler.execute(self.transport, invocation, reply_target)
        except Exception as e:
            logger.error(f"Error executing command {name}: {e}", exc_info=True)
            await self.transport.say(reply_target, f"{invocation.sender}: Error executing command \"{name}\"")
            return
        if not handled:
            logger.info(f"Unknown command '{name}' from {invocation.sender}")
            await self.transport.say(
                reply_target,
                f"{invocation.sender}: Unknown command \"{name}\". Type {self.bot_config.command_prefix}help for available commands.",
            )

    def _on_protocol_error(self, event: ProtocolError) -> None:
        if self.ctx.shutdown.initiated:
            logger.debug(f"Ignoring protocol error during shutdown: {event.subtype} {event.message}")
            return
        if event.subtype in FATAL_PROTOCOL_ERRORS:
            logger.error(f"Fatal protocol error {event.subtype}: {event.message}. Not reconnecting.")
            self.ctx.reconnect_suppressed = True
            self.reconnection.cancel_retry()
            self.initiate_shutdown(f"Fatal protocol error: {event.subtype}")
            return
        logger.warning(f"IRC error {event.subtype} ({event.command}): {event.message}")

    def _on_disconnected(self, event) -> None:
        if isinstance(event, NetworkError):
            description = NETWORK_ERROR_DESCRIPTIONS.get(event.code, "network error")
            logger.error(f"Network error {event.code} ({description}): {event.message}")
        else:
            logger.warning(f"Disconnected from server: {event.reason}")

        self.ctx.set_state(SessionState.DISCONNECTED)
        self.ctx.cancel_rejoin_timers()
        if self.ctx.shutdown.initiated:
            return
        if self.ctx.reconnect_suppressed:
            logger.info("Reconnection suppressed; not retrying.")
            return
        self.reconnection.schedule_retry()
