# tbot_core/commands/core_commands.py
import logging
import platform
import random
import time
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

import tbot_core

if TYPE_CHECKING:
    from tbot_core.network_handler import NetworkHandler

logger = logging.getLogger("tbot.commands.core")

BOT_START_TIME = time.monotonic()
DEFAULT_RANDOM_MIN = 1
DEFAULT_RANDOM_MAX = 100

COMMAND_DEFINITIONS = [
    {
        "name": "ping",
        "handler": "handle_ping_command",
        "help": {
            "usage": "ping",
            "description": "Checks that the bot is alive.",
        },
    },
    {
        "name": "echo",
        "handler": "handle_echo_command",
        "help": {
            "usage": "echo <text>",
            "description": "Repeats the given text.",
        },
    },
    {
        "name": "time",
        "handler": "handle_time_command",
        "help": {
            "usage": "time",
            "description": "Shows the bot's current local time.",
        },
    },
    {
        "name": "uptime",
        "handler": "handle_uptime_command",
        "help": {
            "usage": "uptime",
            "description": "Shows how long the bot has been running.",
        },
    },
    {
        "name": "version",
        "handler": "handle_version_command",
        "help": {
            "usage": "version",
            "description": "Shows the bot and Python versions.",
        },
    },
    {
        "name": "random",
        "handler": "handle_random_command",
        "help": {
            "usage": "random [max] | random <min> <max>",
            "description": "Picks a random integer, 1 to 100 by default.",
        },
    },
]


def format_uptime(seconds: float) -> str:
    seconds = int(seconds)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours}h {minutes}m {secs}s"


def _parse_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        return None


def parse_random_bounds(args: List[str]):
    """Returns (low, high) from 0, 1 or 2 arguments; bad values fall back to the defaults."""
    low, high = DEFAULT_RANDOM_MIN, DEFAULT_RANDOM_MAX
    if len(args) == 1:
        parsed_max = _parse_int(args[0])
        high = parsed_max if parsed_max is not None else DEFAULT_RANDOM_MAX
    elif len(args) >= 2:
        parsed_min, parsed_max = _parse_int(args[0]), _parse_int(args[1])
        low = parsed_min if parsed_min is not None else DEFAULT_RANDOM_MIN
        high = parsed_max if parsed_max is not None else DEFAULT_RANDOM_MAX
    if low > high:
        low, high = high, low
    return low, high


async def handle_ping_command(transport: "NetworkHandler", sender: str, target: str, raw_text: str, args: List[str]):
    await transport.say(target, f"{sender}: Pong!")


async def handle_echo_command(transport: "NetworkHandler", sender: str, target: str, raw_text: str, args: List[str]):
    if not args:
        await transport.say(target, f"{sender}: Please provide something to echo!")
        return
    await transport.say(target, f"{sender}: {' '.join(args)}")


async def handle_time_command(transport: "NetworkHandler", sender: str, target: str, raw_text: str, args: List[str]):
    now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    await transport.say(target, f"{sender}: Current time is {now}")


async def handle_uptime_command(transport: "NetworkHandler", sender: str, target: str, raw_text: str, args: List[str]):
    await transport.say(target, f"{sender}: Bot uptime: {format_uptime(time.monotonic() - BOT_START_TIME)}")


async def handle_version_command(transport: "NetworkHandler", sender: str, target: str, raw_text: str, args: List[str]):
    await transport.say(target, f"{sender}: Bot version {tbot_core.__version__} running on Python {platform.python_version()}")


async def handle_random_command(transport: "NetworkHandler", sender: str, target: str, raw_text: str, args: List[str]):
    low, high = parse_random_bounds(args)
    number = random.randint(low, high)
    logger.debug(f"random {low}..{high} -> {number}")
    await transport.say(target, f"{sender}: Random number between {low} and {high}: {number}")
