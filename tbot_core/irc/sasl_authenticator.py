# tbot_core/irc/sasl_authenticator.py
import base64
import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from tbot_core.network_handler import NetworkHandler
    from tbot_core.config_defs import ServerConfig
    from tbot_core.irc.registration_handler import RegistrationHandler

logger = logging.getLogger("tbot.sasl")


def build_plain_payload(username: str, password: str) -> str:
    """Returns the base64 PLAIN payload: authzid NUL authcid NUL password."""
    payload_str = f"{username}\0{username}\0{password}"
    return base64.b64encode(payload_str.encode("utf-8")).decode("ascii")


class SaslAuthenticator:
    def __init__(self, network_handler: "NetworkHandler", server_config: "ServerConfig", registration_handler: "RegistrationHandler"):
        self.network_handler = network_handler
        self.server_config = server_config
        self.registration_handler = registration_handler
        self.sasl_in_progress = False
        self.sasl_authentication_succeeded: Optional[bool] = None

    def reset_authentication_state(self):
        logger.debug("Resetting SASL authentication state.")
        self.sasl_in_progress = False
        self.sasl_authentication_succeeded = None

    async def initiate_sasl_plain(self):
        if not self.server_config.sasl_enabled:
            logger.warning("SASL PLAIN: Username or password not configured. Aborting SASL.")
            await self.registration_handler.on_sasl_authentication_complete(False)
            return

        self.sasl_in_progress = True
        self.sasl_authentication_succeeded = None
        logger.info(f"Initiating SASL PLAIN authentication for user {self.server_config.sasl_username}.")
        await self.network_handler.send_raw("AUTHENTICATE PLAIN")

    async def handle_authenticate_challenge(self, challenge: str):
        if not self.sasl_in_progress:
            logger.warning("Received AUTHENTICATE challenge, but SASL not in progress.")
            return

        if challenge == "+":
            payload_b64 = build_plain_payload(self.server_config.sasl_username, self.server_config.sasl_password)
            await self.network_handler.send_raw(f"AUTHENTICATE {payload_b64}")
        else:
            logger.warning(f"Unexpected SASL AUTHENTICATE challenge: {challenge}. Aborting SASL.")
            await self.network_handler.send_raw("AUTHENTICATE *")
            await self.on_sasl_result_received(False, f"Unexpected challenge: {challenge}")

    async def on_sasl_result_received(self, success: bool, message: str):
        """Called by the numeric handlers (903 and the failure numerics)."""
        if self.sasl_authentication_succeeded is not None and not self.sasl_in_progress:
            logger.debug(f"Ignoring duplicate SASL result: {message}")
            return
        self.sasl_in_progress = False
        self.sasl_authentication_succeeded = success

        if success:
            logger.info(f"SASL authentication successful: {message}")
        else:
            logger.error(f"SASL authentication failed: {message}")

        await self.registration_handler.on_sasl_authentication_complete(success)
