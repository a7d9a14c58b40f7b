# tbot_core/irc/irc_protocol.py
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Optional

from tbot_core.irc.irc_message import IRCMessage
from tbot_core.irc.handlers import (
    message_handlers,
    membership_handlers,
    protocol_flow_handlers,
    irc_numeric_handlers,
)

if TYPE_CHECKING:
    from tbot_core.network_handler import NetworkHandler

logger = logging.getLogger("tbot.protocol")

LineHandler = Callable[["NetworkHandler", IRCMessage, str, list, Optional[str]], Awaitable[None]]

COMMAND_HANDLERS: Dict[str, LineHandler] = {
    "PRIVMSG": message_handlers._handle_privmsg,
    "NOTICE": message_handlers._handle_notice,
    "JOIN": membership_handlers._handle_join,
    "PART": membership_handlers._handle_part,
    "QUIT": membership_handlers._handle_quit,
    "KICK": membership_handlers._handle_kick,
    "NICK": membership_handlers._handle_nick,
    "PING": protocol_flow_handlers._handle_ping,
    "PONG": protocol_flow_handlers._handle_pong,
    "ERROR": protocol_flow_handlers._handle_error,
    "CAP": protocol_flow_handlers._handle_cap,
    "AUTHENTICATE": protocol_flow_handlers._handle_authenticate,
}

# Seen on a normal session but irrelevant to the bot.
SILENT_COMMANDS = {"MODE", "TOPIC", "INVITE", "CHGHOST", "ACCOUNT", "AWAY"}


async def handle_server_message(transport: "NetworkHandler", raw_line: str):
    """
    Parses one server line and hands it to its handler.

    A failing handler is logged and swallowed here: the read loop must keep
    going on a bad line.
    """
    stripped = raw_line.strip()
    try:
        msg = IRCMessage.parse(raw_line)
    except Exception as e:
        logger.error(f"Error parsing IRC message '{stripped}': {e}", exc_info=True)
        return
    if msg is None:
        logger.warning(f"Failed to parse raw line: {stripped}")
        return

    command = msg.command.upper()
    try:
        if command in COMMAND_HANDLERS:
            await COMMAND_HANDLERS[command](transport, msg, raw_line, list(msg.params), msg.trailing)
        elif command.isdigit():
            await irc_numeric_handlers._handle_numeric_command(transport, msg, raw_line)
        elif command in SILENT_COMMANDS:
            logger.debug(f"S << {stripped}")
        else:
            logger.warning(f"No handler for command {command}: {stripped}")
    except Exception as e:
        logger.error(f"Error handling {command}: {e}", exc_info=True)
