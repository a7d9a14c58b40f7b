# tbot_core/irc/handlers/membership_handlers.py
import logging
from typing import TYPE_CHECKING, Optional

from tbot_core.irc.irc_events import ChannelJoined, NickChanged, PeerJoined, PeerLeft, PeerQuit, Kicked

if TYPE_CHECKING:
    from tbot_core.network_handler import NetworkHandler
    from tbot_core.irc.irc_message import IRCMessage

logger = logging.getLogger("tbot.handlers.membership")


async def _handle_join(transport: "NetworkHandler", msg: "IRCMessage", raw_line: str, params: list, trailing: Optional[str]):
    """Handles JOIN messages from the server."""
    channel_name = params[0] if params else trailing
    if not channel_name:
        logger.warning(f"JOIN message without channel: {raw_line.strip()}")
        return

    source_nick = msg.source_nick or ""
    if transport.is_own_nick(source_nick):
        transport.joined_channels.add(channel_name.lower())
        transport.emit(ChannelJoined(channel=channel_name, nick=source_nick))
    else:
        transport.emit(PeerJoined(channel=channel_name, nick=source_nick, userhost=msg.prefix))


async def _handle_part(transport: "NetworkHandler", msg: "IRCMessage", raw_line: str, params: list, trailing: Optional[str]):
    channel_name = params[0] if params else None
    if not channel_name:
        logger.warning(f"PART message without channel: {raw_line.strip()}")
        return

    source_nick = msg.source_nick or ""
    is_self_part = transport.is_own_nick(source_nick)
    if is_self_part:
        transport.joined_channels.discard(channel_name.lower())
    transport.emit(PeerLeft(channel=channel_name, nick=source_nick, reason=trailing or "", is_self=is_self_part))


async def _handle_quit(transport: "NetworkHandler", msg: "IRCMessage", raw_line: str, params: list, trailing: Optional[str]):
    source_nick = msg.source_nick
    if not source_nick:
        logger.warning(f"QUIT message without source_nick: {raw_line.strip()}")
        return
    transport.emit(PeerQuit(nick=source_nick, reason=trailing or ""))


async def _handle_kick(transport: "NetworkHandler", msg: "IRCMessage", raw_line: str, params: list, trailing: Optional[str]):
    if len(params) < 2:
        logger.warning(f"KICK message with insufficient params: {raw_line.strip()}")
        return

    channel_name = params[0]
    kicked_nick = params[1]
    is_self_kicked = transport.is_own_nick(kicked_nick)
    if is_self_kicked:
        transport.joined_channels.discard(channel_name.lower())

    transport.emit(
        Kicked(
            channel=channel_name,
            nick=kicked_nick,
            by=msg.source_nick or "",
            reason=trailing or "",
            is_self=is_self_kicked,
        )
    )


async def _handle_nick(transport: "NetworkHandler", msg: "IRCMessage", raw_line: str, params: list, trailing: Optional[str]):
    new_nick = trailing or (params[0] if params else None)
    if not new_nick:
        return
    if transport.is_own_nick(msg.source_nick):
        old_nick = transport.current_nick
        logger.info(f"Own nick changed from {old_nick} to {new_nick}.")
        transport.current_nick = new_nick
        transport.emit(NickChanged(old_nick=old_nick, new_nick=new_nick))
    else:
        logger.debug(f"{msg.source_nick} is now known as {new_nick}")
