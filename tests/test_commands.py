import re

import pytest

from tbot_core.commands import core_commands, fun_commands
from tbot_core.commands.command_handler import CommandHandler
from tbot_core.state_manager import CommandInvocation


def _invocation(text: str, sender: str = "alice", target: str = "#bots") -> CommandInvocation:
    return CommandInvocation.parse(sender, target, text, "!")


@pytest.fixture
def handler() -> CommandHandler:
    return CommandHandler("!")


def test_table_contains_builtin_commands(handler):
    for name in ("ping", "echo", "help", "time", "uptime", "version", "random", "8ball"):
        assert handler.has_command(name)


@pytest.mark.asyncio
async def test_ping(handler, fake_transport):
    assert await handler.execute(fake_transport, _invocation("!ping"), "#bots")
    assert fake_transport.said == [("#bots", "alice: Pong!")]


@pytest.mark.asyncio
async def test_echo_with_and_without_text(handler, fake_transport):
    await handler.execute(fake_transport, _invocation("!echo hello   world"), "#bots")
    await handler.execute(fake_transport, _invocation("!echo"), "#bots")
    assert fake_transport.said == [
        ("#bots", "alice: hello world"),
        ("#bots", "alice: Please provide something to echo!"),
    ]


@pytest.mark.asyncio
async def test_random_within_requested_bounds(handler, fake_transport):
    for _ in range(50):
        await handler.execute(fake_transport, _invocation("!random 5 10"), "#bots")
    for _, text in fake_transport.said:
        match = re.fullmatch(r"alice: Random number between 5 and 10: (\d+)", text)
        assert match is not None
        assert 5 <= int(match.group(1)) <= 10


@pytest.mark.parametrize(
    "args, expected",
    [
        ([], (1, 100)),
        (["20"], (1, 20)),
        (["10", "5"], (5, 10)),
        (["x", "7"], (1, 7)),
        (["3", "y"], (3, 100)),
        (["nope"], (1, 100)),
    ],
)
def test_random_bounds(args, expected):
    assert core_commands.parse_random_bounds(args) == expected


@pytest.mark.asyncio
async def test_help_lists_commands(handler, fake_transport):
    await handler.execute(fake_transport, _invocation("!help"), "#bots")
    target, text = fake_transport.said[0]
    assert target == "#bots"
    assert text.startswith("alice: Available commands: ")
    assert "ping" in text and "8ball" in text


@pytest.mark.asyncio
async def test_help_for_single_command(handler, fake_transport):
    await handler.execute(fake_transport, _invocation("!help echo"), "#bots")
    assert fake_transport.said == [("#bots", "alice: !echo <text> - Repeats the given text.")]


@pytest.mark.asyncio
async def test_unknown_command_is_not_handled(handler, fake_transport):
    assert await handler.execute(fake_transport, _invocation("!nosuch"), "#bots") is False
    assert fake_transport.said == []


@pytest.mark.asyncio
async def test_8ball(handler, fake_transport):
    await handler.execute(fake_transport, _invocation("!8ball"), "#bots")
    await handler.execute(fake_transport, _invocation("!8ball will it work?"), "#bots")
    assert fake_transport.said[0] == ("#bots", "alice: Please ask a question!")
    answer = fake_transport.said[1][1]
    assert answer[len("alice: "):] in fun_commands.EIGHT_BALL_ANSWERS


@pytest.mark.asyncio
async def test_version_mentions_package_version(handler, fake_transport):
    import tbot_core

    await handler.execute(fake_transport, _invocation("!version"), "#bots")
    assert tbot_core.__version__ in fake_transport.said[0][1]


def test_format_uptime():
    assert core_commands.format_uptime(3723.9) == "1h 2m 3s"
    assert core_commands.format_uptime(0) == "0h 0m 0s"


@pytest.mark.skipif(not fun_commands.PYFIGLET_AVAILABLE, reason="pyfiglet not installed")
def test_ascii_output_is_capped():
    lines = fun_commands.render_ascii("hello world this is long", max_lines=3)
    assert 0 < len(lines) <= 3


@pytest.mark.asyncio
async def test_sync_handlers_are_supported(fake_transport):
    import types

    module = types.ModuleType("sync_commands")
    calls = []
    module.COMMAND_DEFINITIONS = [{"name": "Shout", "handler": "handle_shout"}]
    module.handle_shout = lambda transport, sender, target, raw_text, args: calls.append((sender, target, args))
    handler = CommandHandler("!", modules=(module,))

    assert await handler.execute(fake_transport, _invocation("!shout a b"), "#bots")
    assert calls == [("alice", "#bots", ["a", "b"])]
