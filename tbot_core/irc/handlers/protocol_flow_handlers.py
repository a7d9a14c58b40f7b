# tbot_core/irc/handlers/protocol_flow_handlers.py
import logging
from typing import TYPE_CHECKING, Optional

from tbot_core.irc.irc_message import IRCMessage
from tbot_core.irc.irc_events import ProtocolError

if TYPE_CHECKING:
    from tbot_core.network_handler import NetworkHandler

logger = logging.getLogger("tbot.handlers.protocol_flow")


async def _handle_ping(
    transport: "NetworkHandler",
    parsed_msg: IRCMessage,
    raw_line: str,
    params: list,
    trailing: Optional[str],
):
    """Handles PING messages from the server."""
    server_name = trailing if trailing else (params[0] if params else "UnknownServer")
    await transport.send_raw(f"PONG :{server_name}")
    logger.debug(f"Responded to PING from {server_name} with PONG.")


async def _handle_pong(
    transport: "NetworkHandler",
    parsed_msg: IRCMessage,
    raw_line: str,
    params: list,
    trailing: Optional[str],
):
    pong_origin = parsed_msg.prefix if parsed_msg.prefix else "UnknownOrigin"
    logger.debug(f"Received PONG from {pong_origin}")


async def _handle_error(
    transport: "NetworkHandler",
    parsed_msg: IRCMessage,
    raw_line: str,
    params: list,
    trailing: Optional[str],
):
    """Handles ERROR messages from the server (usually followed by the server closing the link)."""
    error_reason = trailing if trailing else "Unknown error"
    logger.error(f"Received ERROR from server: {error_reason}")
    transport.emit(ProtocolError(subtype="server_error", command="ERROR", params=list(params), message=error_reason))


async def _handle_cap(
    transport: "NetworkHandler",
    parsed_msg: IRCMessage,
    raw_line: str,
    params: list,
    trailing: Optional[str],
):
    """Handles CAP replies; only the sasl capability is negotiated."""
    subcommand = params[1].upper() if len(params) > 1 else "UNKNOWN_SUBCOMMAND"
    capabilities_str = trailing if trailing is not None else (params[2] if len(params) > 2 else "")
    logger.info(f"Received CAP {subcommand} with capabilities: '{capabilities_str}'")

    registration = transport.registration_handler
    if subcommand == "LS":
        # Multiline LS replies carry '*' before the final chunk.
        is_final = not (len(params) > 2 and params[2] == "*")
        await registration.handle_cap_ls(capabilities_str, is_final)
    elif subcommand == "ACK":
        await registration.handle_cap_ack(capabilities_str)
    elif subcommand == "NAK":
        await registration.handle_cap_nak(capabilities_str)
    else:
        logger.debug(f"Ignoring CAP {subcommand}.")


async def _handle_authenticate(
    transport: "NetworkHandler",
    parsed_msg: IRCMessage,
    raw_line: str,
    params: list,
    trailing: Optional[str],
):
    """Handles AUTHENTICATE messages during SASL."""
    payload = params[0] if params else (trailing if trailing else "")
    await transport.registration_handler.sasl_authenticator.handle_authenticate_challenge(payload)
