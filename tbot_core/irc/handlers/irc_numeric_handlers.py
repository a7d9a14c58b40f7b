# tbot_core/irc/handlers/irc_numeric_handlers.py
import logging
from typing import TYPE_CHECKING, Optional, Dict, Callable, Awaitable

from tbot_core.config_defs import SASL_FAILURE_NUMERICS
from tbot_core.irc.irc_message import IRCMessage
from tbot_core.irc.irc_events import Registered, ProtocolError

if TYPE_CHECKING:
    from tbot_core.network_handler import NetworkHandler

logger = logging.getLogger("tbot.handlers.numeric")

ERROR_NUMERIC_NAMES: Dict[str, str] = {
    "401": "err_nosuchnick",
    "402": "err_nosuchserver",
    "403": "err_nosuchchannel",
    "404": "err_cannotsendtochan",
    "405": "err_toomanychannels",
    "406": "err_wasnosuchnick",
    "407": "err_toomanytargets",
    "409": "err_noorigin",
    "411": "err_norecipient",
    "412": "err_notexttosend",
    "421": "err_unknowncommand",
    "422": "err_nomotd",
    "431": "err_nonicknamegiven",
    "432": "err_erroneusnickname",
    "433": "err_nicknameinuse",
    "436": "err_nickcollision",
    "437": "err_unavailresource",
    "441": "err_usernotinchannel",
    "442": "err_notonchannel",
    "443": "err_useronchannel",
    "451": "err_notregistered",
    "461": "err_needmoreparams",
    "462": "err_alreadyregistred",
    "464": "err_passwdmismatch",
    "465": "err_yourebannedcreep",
    "471": "err_channelisfull",
    "472": "err_unknownmode",
    "473": "err_inviteonlychan",
    "474": "err_bannedfromchan",
    "475": "err_badchannelkey",
    "476": "err_badchanmask",
    "477": "err_needreggednick",
    "481": "err_noprivileges",
    "482": "err_chanoprivsneeded",
    "491": "err_nooperhost",
    "501": "err_umodeunknownflag",
    "502": "err_usersdontmatch",
}

# Informational "errors" that do not deserve an event.
IGNORED_ERROR_NUMERICS = {"422"}

NumericHandler = Callable[["NetworkHandler", IRCMessage, str], Awaitable[None]]


async def _handle_rpl_welcome(transport: "NetworkHandler", parsed_msg: IRCMessage, raw_line: str):
    """Handles RPL_WELCOME (001): registration is complete."""
    if parsed_msg.params:
        transport.current_nick = parsed_msg.params[0]
    welcome_text = parsed_msg.trailing or ""
    logger.info(f"Registered with server as {transport.current_nick}: {welcome_text}")
    transport.emit(Registered(nick=transport.current_nick, server_message=welcome_text))
    await transport.registration_handler.on_registered()


async def _handle_sasl_success(transport: "NetworkHandler", parsed_msg: IRCMessage, raw_line: str):
    await transport.registration_handler.sasl_authenticator.on_sasl_result_received(True, parsed_msg.trailing or "SASL authentication successful")


async def _handle_sasl_failure(transport: "NetworkHandler", parsed_msg: IRCMessage, raw_line: str):
    await transport.registration_handler.sasl_authenticator.on_sasl_result_received(False, parsed_msg.trailing or f"SASL failed ({parsed_msg.command})")


async def _handle_logged_in(transport: "NetworkHandler", parsed_msg: IRCMessage, raw_line: str):
    logger.info(f"RPL_LOGGEDIN (900): {parsed_msg.trailing or ''}")


NUMERIC_HANDLERS: Dict[str, NumericHandler] = {
    "001": _handle_rpl_welcome,
    "900": _handle_logged_in,
    "903": _handle_sasl_success,
}
for _numeric in SASL_FAILURE_NUMERICS:
    NUMERIC_HANDLERS[_numeric] = _handle_sasl_failure


async def _handle_numeric_command(transport: "NetworkHandler", parsed_msg: IRCMessage, raw_line: str):
    code = parsed_msg.command
    handler = NUMERIC_HANDLERS.get(code)
    if handler:
        await handler(transport, parsed_msg, raw_line)
        return

    if code.startswith(("4", "5")) and code not in IGNORED_ERROR_NUMERICS:
        subtype = ERROR_NUMERIC_NAMES.get(code, f"err_{code}")
        message = parsed_msg.trailing or ""
        logger.warning(f"Server error numeric {code} ({subtype}): {' '.join(parsed_msg.params[1:])} {message}".strip())
        transport.emit(ProtocolError(subtype=subtype, command=code, params=list(parsed_msg.params), message=message))
        return

    logger.debug(f"S << [{code}] {' '.join(parsed_msg.params[1:])} {parsed_msg.trailing or ''}".rstrip())
