# tbot_core/commands/fun_commands.py
import importlib.util
import logging
import random
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from tbot_core.network_handler import NetworkHandler

logger = logging.getLogger("tbot.commands.fun")

ASCII_MAX_LINES = 10

EIGHT_BALL_ANSWERS = [
    "It is certain.",
    "It is decidedly so.",
    "Without a doubt.",
    "Yes, definitely.",
    "You may rely on it.",
    "As I see it, yes.",
    "Most likely.",
    "Outlook good.",
    "Yes.",
    "Signs point to yes.",
    "Reply hazy, try again.",
    "Ask again later.",
    "Better not tell you now.",
    "Cannot predict now.",
    "Concentrate and ask again.",
    "Don't count on it.",
    "My reply is no.",
    "My sources say no.",
    "Outlook not so good.",
    "Very doubtful.",
]

# Check for pyfiglet availability without importing it at module load.
PYFIGLET_AVAILABLE = importlib.util.find_spec("pyfiglet") is not None

COMMAND_DEFINITIONS = [
    {
        "name": "8ball",
        "handler": "handle_8ball_command",
        "help": {
            "usage": "8ball <question>",
            "description": "Asks the Magic 8-Ball a question.",
        },
    },
]

if PYFIGLET_AVAILABLE:
    COMMAND_DEFINITIONS.append(
        {
            "name": "ascii",
            "handler": "handle_ascii_command",
            "help": {
                "usage": "ascii <text>",
                "description": "Renders <text> as ASCII art.",
            },
        }
    )
else:
    logger.info("pyfiglet library not found. ascii command will be disabled.")


async def handle_8ball_command(transport: "NetworkHandler", sender: str, target: str, raw_text: str, args: List[str]):
    if not args:
        await transport.say(target, f"{sender}: Please ask a question!")
        return
    await transport.say(target, f"{sender}: {random.choice(EIGHT_BALL_ANSWERS)}")


def render_ascii(text: str, max_lines: int = ASCII_MAX_LINES) -> List[str]:
    import pyfiglet

    art_lines = [line.rstrip() for line in pyfiglet.figlet_format(text).split("\n")]
    art_lines = [line for line in art_lines if line.strip()]
    return art_lines[:max_lines]


async def handle_ascii_command(transport: "NetworkHandler", sender: str, target: str, raw_text: str, args: List[str]):
    if not args:
        await transport.say(target, f"{sender}: Please provide some text!")
        return
    for line in render_ascii(" ".join(args)):
        await transport.say(target, line)
