# tbot_core/irc/registration_handler.py
import logging
from typing import List, Set, TYPE_CHECKING

from tbot_core.irc.sasl_authenticator import SaslAuthenticator

if TYPE_CHECKING:
    from tbot_core.network_handler import NetworkHandler
    from tbot_core.config_defs import ServerConfig

logger = logging.getLogger("tbot.registration")


class RegistrationHandler:
    """
    Drives connection registration.

    Without SASL this is just PASS/NICK/USER. With SASL configured, CAP LS 302
    goes out first and the server holds registration until CAP END, which is
    sent once the sasl capability is refused or the SASL exchange finishes.
    """

    def __init__(self, network_handler: "NetworkHandler", server_config: "ServerConfig"):
        self.network_handler = network_handler
        self.server_config = server_config
        self.sasl_authenticator = SaslAuthenticator(network_handler, server_config, self)

        self.nick_user_sent = False
        self.cap_negotiation_pending = False
        self.advertised_caps: Set[str] = set()
        self.enabled_caps: Set[str] = set()

    def reset_registration_state(self):
        logger.debug("Resetting registration state.")
        self.nick_user_sent = False
        self.cap_negotiation_pending = False
        self.advertised_caps.clear()
        self.enabled_caps.clear()
        self.sasl_authenticator.reset_authentication_state()

    async def on_connection_established(self):
        self.reset_registration_state()
        if self.server_config.sasl_enabled:
            self.cap_negotiation_pending = True
            await self.network_handler.send_raw("CAP LS 302")
        await self._proceed_with_nick_user_registration()

    async def _proceed_with_nick_user_registration(self):
        if self.nick_user_sent:
            logger.debug("NICK/USER registration already sent, skipping.")
            return

        cfg = self.server_config
        logger.info(f"Proceeding with NICK/USER registration. Nick: {cfg.nick}, User: {cfg.username}, Real: {cfg.realname}")
        if cfg.server_password:
            await self.network_handler.send_raw(f"PASS {cfg.server_password}")
        await self.network_handler.send_raw(f"NICK {cfg.nick}")
        await self.network_handler.send_raw(f"USER {cfg.username or cfg.nick} 0 * :{cfg.realname or cfg.nick}")
        self.nick_user_sent = True

    async def handle_cap_ls(self, capabilities_str: str, is_final: bool):
        for cap in capabilities_str.split():
            # "sasl=PLAIN,EXTERNAL" advertises mechanisms after '='.
            self.advertised_caps.add(cap.split("=", 1)[0].lower())
        if not is_final or not self.cap_negotiation_pending:
            return

        if "sasl" in self.advertised_caps:
            await self.network_handler.send_raw("CAP REQ :sasl")
        else:
            logger.warning("Server does not advertise SASL; continuing without it.")
            await self._send_cap_end()

    async def handle_cap_ack(self, capabilities_str: str):
        acked: List[str] = [cap.lower() for cap in capabilities_str.split()]
        self.enabled_caps.update(acked)
        if "sasl" in acked:
            await self.sasl_authenticator.initiate_sasl_plain()
        else:
            await self._send_cap_end()

    async def handle_cap_nak(self, capabilities_str: str):
        logger.warning(f"Server refused capabilities: {capabilities_str}")
        await self._send_cap_end()

    async def on_sasl_authentication_complete(self, success: bool):
        logger.debug(f"SASL finished (success={success}); ending CAP negotiation.")
        await self._send_cap_end()

    async def _send_cap_end(self):
        if not self.cap_negotiation_pending:
            return
        self.cap_negotiation_pending = False
        await self.network_handler.send_raw("CAP END")

    async def on_registered(self):
        """RPL_WELCOME arrived; join the configured channels."""
        self.cap_negotiation_pending = False
        channels = self.server_config.channels
        if not channels:
            logger.info("No initial channels to auto-join.")
            return
        logger.info(f"Auto-joining initial channels: {', '.join(channels)}")
        for channel_name in channels:
            await self.network_handler.join(channel_name)
