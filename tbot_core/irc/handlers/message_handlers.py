# tbot_core/irc/handlers/message_handlers.py
import logging
from typing import TYPE_CHECKING, Optional

from tbot_core.irc.irc_message import IRCMessage, strip_formatting
from tbot_core.irc.irc_events import MessageReceived

if TYPE_CHECKING:
    from tbot_core.network_handler import NetworkHandler

logger = logging.getLogger("tbot.handlers.message")


async def _handle_privmsg(
    transport: "NetworkHandler",
    parsed_msg: IRCMessage,
    raw_line: str,
    params: list,
    trailing: Optional[str],
):
    """Handles PRIVMSG commands."""
    if not params or trailing is None:
        logger.warning(f"PRIVMSG: Missing target or message. Raw: {raw_line.strip()}")
        return

    target = params[0]
    message_content = trailing
    source_nick = parsed_msg.source_nick or "Unknown"

    if message_content.startswith("\x01"):
        if message_content.startswith("\x01ACTION ") and message_content.endswith("\x01"):
            logger.info(f"[{target}] * {source_nick} {message_content[len(chr(1) + 'ACTION '):-1]}")
        else:
            logger.debug(f"Ignoring CTCP from {source_nick}: {message_content.strip(chr(1))}")
        return

    if transport.bot_config.strip_colors:
        message_content = strip_formatting(message_content)

    is_private = not transport.is_channel_name(target)
    transport.emit(
        MessageReceived(
            sender=source_nick,
            target=target,
            text=message_content,
            is_private=is_private,
            userhost=parsed_msg.prefix,
        )
    )


async def _handle_notice(
    transport: "NetworkHandler",
    parsed_msg: IRCMessage,
    raw_line: str,
    params: list,
    trailing: Optional[str],
):
    source_nick = parsed_msg.source_nick or "Server"
    target = params[0] if params else "*"
    logger.info(f"-{source_nick}:{target}- {trailing or ''}")
