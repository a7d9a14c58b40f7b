# tbot_core/app_config.py
import configparser
import os
import logging
from typing import Type, Any, Optional
from tbot_core.config_defs import *

logger = logging.getLogger("tbot.config")


class ConfigError(Exception):
    """Raised when the configuration cannot be read or is incomplete."""


class AppConfig:
    def __init__(self, config_file_path: Optional[str] = None, args: Any = None):
        self.BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        self.CONFIG_FILE_NAME = "tbot_config.ini"
        self.CONFIG_DIR = os.path.join(self.BASE_DIR, "config")
        self.CONFIG_FILE_PATH = config_file_path or os.path.join(self.CONFIG_DIR, self.CONFIG_FILE_NAME)
        self._config_parser = configparser.ConfigParser()
        self.bot: BotConfig = BotConfig()
        self.reconnect: ReconnectConfig = ReconnectConfig()
        self.logging: LoggingConfig = LoggingConfig()
        self._load_config_file()
        self._load_all_settings()
        self.server: ServerConfig = self._load_server_configuration(args)

    def _load_config_file(self):
        if not os.path.exists(self.CONFIG_FILE_PATH):
            raise ConfigError(f"Configuration file not found: {self.CONFIG_FILE_PATH}")
        try:
            with open(self.CONFIG_FILE_PATH, "r", encoding="utf-8") as config_file:
                self._config_parser.read_file(config_file)
        except (OSError, UnicodeDecodeError, configparser.Error) as e:
            raise ConfigError(f"Error loading {self.CONFIG_FILE_PATH}: {e}") from e

    def _get_config_value(self, section: str, key: str, fallback: Any, value_type: Type = str) -> Any:
        if self._config_parser.has_section(section) and self._config_parser.has_option(section, key):
            try:
                if value_type == bool:
                    return self._config_parser.getboolean(section, key)
                elif value_type == int:
                    return self._config_parser.getint(section, key)
                elif value_type == float:
                    return self._config_parser.getfloat(section, key)
                elif value_type == list:
                    val = self._config_parser.get(section, key)
                    return [item.strip() for item in val.split(",") if item.strip()] if val and val.strip() else []
                return self._config_parser.get(section, key)
            except (ValueError, configparser.Error):
                logger.warning(f"Invalid value for [{section}] {key}, using default {fallback!r}")
                return fallback
        return fallback

    def _load_all_settings(self):
        self.bot.command_prefix = self._get_config_value("Bot", "command_prefix", DEFAULT_COMMAND_PREFIX, str)
        self.bot.auto_rejoin = self._get_config_value("Bot", "auto_rejoin", DEFAULT_AUTO_REJOIN, bool)
        self.bot.rejoin_delay = self._get_config_value("Bot", "rejoin_delay", DEFAULT_REJOIN_DELAY, float)
        self.bot.strip_colors = self._get_config_value("Bot", "strip_colors", DEFAULT_STRIP_COLORS, bool)
        self.bot.message_split = self._get_config_value("Bot", "message_split", DEFAULT_MESSAGE_SPLIT, int)
        self.bot.channel_prefixes = self._get_config_value("Bot", "channel_prefixes", DEFAULT_CHANNEL_PREFIXES, str)
        self.bot.quit_message = self._get_config_value("Bot", "quit_message", DEFAULT_QUIT_MESSAGE, str)
        self.bot.flood_protection = self._get_config_value("FloodProtection", "enabled", DEFAULT_FLOOD_PROTECTION, bool)
        self.bot.flood_protection_delay = self._get_config_value("FloodProtection", "delay", DEFAULT_FLOOD_PROTECTION_DELAY, float)

        self.reconnect.max_attempts = self._get_config_value("Reconnect", "max_attempts", DEFAULT_RECONNECT_MAX_ATTEMPTS, int)
        self.reconnect.delay = self._get_config_value("Reconnect", "delay", DEFAULT_RECONNECT_DELAY, float)
        self.reconnect.policy = self._get_config_value("Reconnect", "policy", DEFAULT_RECONNECT_POLICY, str).strip().lower()
        self.reconnect.max_delay = self._get_config_value("Reconnect", "max_delay", DEFAULT_RECONNECT_MAX_DELAY, float)
        self.reconnect.multiplier = self._get_config_value("Reconnect", "multiplier", DEFAULT_RECONNECT_MULTIPLIER, float)
        self.reconnect.jitter = self._get_config_value("Reconnect", "jitter", DEFAULT_RECONNECT_JITTER, float)

        self.shutdown_timeout = self._get_config_value("Shutdown", "timeout", DEFAULT_SHUTDOWN_TIMEOUT, float)

        self.logging.enabled = self._get_config_value("Logging", "log_enabled", DEFAULT_LOG_ENABLED, bool)
        self.logging.log_file = self._get_config_value("Logging", "log_file", DEFAULT_LOG_FILE, str)
        self.logging.log_error_file = self._get_config_value("Logging", "log_error_file", DEFAULT_LOG_ERROR_FILE, str)
        log_level_raw = self._get_config_value("Logging", "log_level", DEFAULT_LOG_LEVEL, str)
        self.logging.level = log_level_raw.split('#')[0].strip().upper()
        log_error_level_raw = self._get_config_value("Logging", "log_error_level", DEFAULT_LOG_ERROR_LEVEL, str)
        self.logging.error_level = log_error_level_raw.split('#')[0].strip().upper()
        self.logging.max_bytes = self._get_config_value("Logging", "log_max_bytes", DEFAULT_LOG_MAX_BYTES, int)
        self.logging.backup_count = self._get_config_value("Logging", "log_backup_count", DEFAULT_LOG_BACKUP_COUNT, int)

    def _load_server_configuration(self, args: Any) -> ServerConfig:
        section = "Connection"
        address = self._get_config_value(section, "server", "", str)
        nick = self._get_config_value(section, "nick", "", str)
        use_ssl = self._get_config_value(section, "ssl", DEFAULT_SSL, bool)
        port = self._get_config_value(section, "port", 0, int)
        channels = self._get_config_value(section, "channels", list(DEFAULT_CHANNELS), list)
        verify_ssl_cert = self._get_config_value(section, "verify_ssl_cert", DEFAULT_VERIFY_SSL_CERT, bool)

        # Command line values take precedence over the INI file.
        if args is not None:
            if getattr(args, "server", None): address = args.server
            if getattr(args, "nick", None): nick = args.nick
            if getattr(args, "ssl", None) is not None: use_ssl = args.ssl
            if getattr(args, "port", None): port = args.port
            if getattr(args, "channel", None): channels = list(args.channel)
            if getattr(args, "verify_ssl_cert", None) is not None: verify_ssl_cert = args.verify_ssl_cert
            if getattr(args, "prefix", None): self.bot.command_prefix = args.prefix

        if not address:
            raise ConfigError("No server address configured ([Connection] server).")
        if not nick:
            raise ConfigError("No nickname configured ([Connection] nick).")
        if not self.bot.command_prefix:
            raise ConfigError("Command prefix must not be empty ([Bot] command_prefix).")
        if not port:
            port = DEFAULT_SSL_PORT if use_ssl else DEFAULT_PORT
        if not (1 <= port <= 65535):
            raise ConfigError(f"Port must be between 1 and 65535 (got {port}).")

        return ServerConfig(
            address=address,
            port=port,
            ssl=use_ssl,
            nick=nick,
            channels=channels,
            username=self._get_config_value(section, "username", None, str),
            realname=self._get_config_value(section, "realname", None, str),
            server_password=self._get_config_value(section, "server_password", None, str),
            sasl_username=self._get_config_value(section, "sasl_username", None, str),
            sasl_password=self._get_config_value(section, "sasl_password", None, str),
            verify_ssl_cert=verify_ssl_cert,
            encoding=self._get_config_value(section, "encoding", DEFAULT_ENCODING, str),
            auto_connect=self._get_config_value(section, "auto_connect", DEFAULT_AUTO_CONNECT, bool),
            connection_timeout=self._get_config_value(section, "connection_timeout", DEFAULT_CONNECTION_TIMEOUT, int),
        )

    @property
    def log_level_int(self) -> int:
        return self.logging.get_level_int()

    @property
    def log_error_level_int(self) -> int:
        return self.logging.get_error_level_int()
