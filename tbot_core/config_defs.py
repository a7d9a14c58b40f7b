import logging
from dataclasses import dataclass, field
from typing import List, Optional

# --- Default Fallback Constants ---
# These are used as fallbacks if values are not found in the INI file.

# Connection
DEFAULT_PORT = 6667
DEFAULT_SSL_PORT = 6697
DEFAULT_NICK = "tBot"
DEFAULT_CHANNELS: List[str] = []
DEFAULT_SSL = False
DEFAULT_VERIFY_SSL_CERT = True
DEFAULT_ENCODING = "utf-8"
DEFAULT_AUTO_CONNECT = True
DEFAULT_CONNECTION_TIMEOUT = 30

# Bot behaviour
DEFAULT_COMMAND_PREFIX = "!"
DEFAULT_AUTO_REJOIN = False
DEFAULT_REJOIN_DELAY = 5.0
DEFAULT_STRIP_COLORS = True
DEFAULT_MESSAGE_SPLIT = 512
DEFAULT_CHANNEL_PREFIXES = "#&"
DEFAULT_QUIT_MESSAGE = "Bot shutting down"

# Flood protection
DEFAULT_FLOOD_PROTECTION = False
DEFAULT_FLOOD_PROTECTION_DELAY = 1.0

# Reconnect
DEFAULT_RECONNECT_MAX_ATTEMPTS = 5
DEFAULT_RECONNECT_DELAY = 30.0
DEFAULT_RECONNECT_POLICY = "fixed"
DEFAULT_RECONNECT_MAX_DELAY = 300.0
DEFAULT_RECONNECT_MULTIPLIER = 2.0
DEFAULT_RECONNECT_JITTER = 0.1

# Shutdown
DEFAULT_SHUTDOWN_TIMEOUT = 3.0

# Logging
DEFAULT_LOG_ENABLED = True
DEFAULT_LOG_FILE = "tbot.log"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_ERROR_FILE = "tbot_error.log"
DEFAULT_LOG_ERROR_LEVEL = "WARNING"
DEFAULT_LOG_MAX_BYTES = 1024 * 1024 * 5
DEFAULT_LOG_BACKUP_COUNT = 3

# Numerics that end a SASL exchange without success.
SASL_FAILURE_NUMERICS = {"902", "904", "905", "906", "907"}

# --- Data Classes ---

@dataclass
class ServerConfig:
    address: str
    port: int
    ssl: bool
    nick: str
    channels: List[str] = field(default_factory=list)
    username: Optional[str] = None
    realname: Optional[str] = None
    server_password: Optional[str] = None
    sasl_username: Optional[str] = None
    sasl_password: Optional[str] = None
    verify_ssl_cert: bool = DEFAULT_VERIFY_SSL_CERT
    encoding: str = DEFAULT_ENCODING
    auto_connect: bool = DEFAULT_AUTO_CONNECT
    connection_timeout: int = DEFAULT_CONNECTION_TIMEOUT

    def __post_init__(self) -> None:
        if self.username is None:
            self.username = self.nick
        if self.realname is None:
            self.realname = self.nick
        if self.sasl_username is None and self.sasl_password is not None:
            self.sasl_username = self.nick

    @property
    def sasl_enabled(self) -> bool:
        return bool(self.sasl_username and self.sasl_password)


@dataclass
class BotConfig:
    command_prefix: str = DEFAULT_COMMAND_PREFIX
    auto_rejoin: bool = DEFAULT_AUTO_REJOIN
    rejoin_delay: float = DEFAULT_REJOIN_DELAY
    strip_colors: bool = DEFAULT_STRIP_COLORS
    message_split: int = DEFAULT_MESSAGE_SPLIT
    channel_prefixes: str = DEFAULT_CHANNEL_PREFIXES
    quit_message: str = DEFAULT_QUIT_MESSAGE
    flood_protection: bool = DEFAULT_FLOOD_PROTECTION
    flood_protection_delay: float = DEFAULT_FLOOD_PROTECTION_DELAY


@dataclass
class ReconnectConfig:
    max_attempts: int = DEFAULT_RECONNECT_MAX_ATTEMPTS
    delay: float = DEFAULT_RECONNECT_DELAY
    policy: str = DEFAULT_RECONNECT_POLICY
    max_delay: float = DEFAULT_RECONNECT_MAX_DELAY
    multiplier: float = DEFAULT_RECONNECT_MULTIPLIER
    jitter: float = DEFAULT_RECONNECT_JITTER


@dataclass
class LoggingConfig:
    enabled: bool = DEFAULT_LOG_ENABLED
    log_file: str = DEFAULT_LOG_FILE
    log_error_file: str = DEFAULT_LOG_ERROR_FILE
    level: str = DEFAULT_LOG_LEVEL
    error_level: str = DEFAULT_LOG_ERROR_LEVEL
    max_bytes: int = DEFAULT_LOG_MAX_BYTES
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT

    def get_level_int(self) -> int:
        level = getattr(logging, self.level.upper(), None)
        return level if isinstance(level, int) else logging.INFO

    def get_error_level_int(self) -> int:
        level = getattr(logging, self.error_level.upper(), None)
        return level if isinstance(level, int) else logging.WARNING
