# tbot.py
import argparse
import asyncio
import logging
import logging.handlers
import os
import sys
from typing import List, Optional

from tbot_core.app_config import AppConfig, ConfigError
from tbot_core.client.bot_client_logic import BotClient

main_logger = logging.getLogger("tbot.main_app")


def setup_logging(config: AppConfig):
    """Set up logging for the application using the config object."""
    if not config.logging.enabled:
        logging.disable(logging.CRITICAL + 1)
        print("Logging is disabled in configuration.")
        return

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    log_dir = os.path.join(config.BASE_DIR, "logs")
    if not os.path.exists(log_dir):
        try:
            os.makedirs(log_dir)
        except OSError as e:
            print(f"Error creating log directory {log_dir}: {e}. Logging to project root.")
            log_dir = config.BASE_DIR

    try:
        full_log_path = os.path.join(log_dir, config.logging.log_file)
        full_handler = logging.handlers.RotatingFileHandler(
            full_log_path,
            maxBytes=config.logging.max_bytes,
            backupCount=config.logging.backup_count,
            encoding="utf-8",
        )
        full_handler.setFormatter(formatter)
        full_handler.setLevel(config.log_level_int)
        root_logger.addHandler(full_handler)

        error_log_path = os.path.join(log_dir, config.logging.log_error_file)
        error_handler = logging.handlers.RotatingFileHandler(
            error_log_path,
            maxBytes=config.logging.max_bytes,
            backupCount=config.logging.backup_count,
            encoding="utf-8",
        )
        error_handler.setFormatter(formatter)
        error_handler.setLevel(config.log_error_level_int)
        root_logger.addHandler(error_handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(logging.INFO)
        root_logger.addHandler(console_handler)

        tbot_base_logger = logging.getLogger("tbot")
        tbot_base_logger.setLevel(config.log_level_int)
        tbot_base_logger.info(f"Logging initialized. Full log: {full_log_path}, Error log: {error_log_path}")
    except OSError as e:
        print(f"Failed to initialize file logging: {e}")
        logging.basicConfig(
            level=config.log_level_int,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            handlers=[logging.StreamHandler(sys.stdout)],
        )
        logging.getLogger("tbot").error(f"File logging setup failed. Using basic console logging. Error: {e}")


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="tBot IRC bot")
    parser.add_argument("--config", default=None, help="Path to the INI configuration file. (Default: config/tbot_config.ini)")
    parser.add_argument("--server", default=None, help="IRC server address. Overrides config.")
    parser.add_argument("--port", type=int, default=None, help="IRC server port. Overrides config.")
    parser.add_argument("--nick", default=None, help="IRC nickname. Overrides config.")
    parser.add_argument("--channel", action="append", default=None, help="IRC channel to join. Can be used multiple times.")
    parser.add_argument("--ssl", action=argparse.BooleanOptionalAction, default=None, help="Use SSL/TLS. Overrides config.")
    parser.add_argument("--verify-ssl-cert", action=argparse.BooleanOptionalAction, default=None, help="Verify SSL/TLS certificate. Overrides config.")
    parser.add_argument("--prefix", default=None, help="Command prefix. Overrides config. (Default: !)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_arguments(argv)
    try:
        app_config = AppConfig(config_file_path=args.config, args=args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(app_config)
    main_logger.info("Starting tBot.")

    bot = BotClient(app_config)
    exit_code = asyncio.run(bot.run())
    main_logger.info(f"tBot exited with code {exit_code}.")
    logging.shutdown()
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
