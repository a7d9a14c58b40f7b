from tbot_core.irc.irc_message import IRCMessage, strip_formatting
from tbot_core.state_manager import CommandInvocation


def test_parse_privmsg_with_prefix_and_trailing():
    msg = IRCMessage.parse(":alice!a@host.example PRIVMSG #bots :!random 5 10\r\n")
    assert msg is not None
    assert msg.prefix == "alice!a@host.example"
    assert msg.source_nick == "alice"
    assert msg.command == "PRIVMSG"
    assert msg.params == ["#bots"]
    assert msg.trailing == "!random 5 10"


def test_parse_tags_are_unescaped():
    msg = IRCMessage.parse("@time=2024-01-01T00:00:00Z;msg=a\\sb;flag :srv NOTICE * :hi")
    assert msg.tags["time"] == "2024-01-01T00:00:00Z"
    assert msg.tags["msg"] == "a b"
    assert msg.tags["flag"] == ""
    assert msg.command == "NOTICE"


def test_parse_numeric_without_trailing():
    msg = IRCMessage.parse(":irc.example.org 433 * tBot :Nickname is already in use")
    assert msg.command == "433"
    assert msg.params == ["*", "tBot"]
    assert msg.trailing == "Nickname is already in use"


def test_parse_empty_line():
    assert IRCMessage.parse("\r\n") is None


def test_strip_formatting_removes_colour_and_bold():
    assert strip_formatting("\x0304,01red\x03 \x02bold\x02 \x1fu\x0f") == "red bold u"


def test_command_invocation_splits_arguments():
    invocation = CommandInvocation.parse("alice", "#bots", "!random 5 10", "!")
    assert invocation.command_name == "random"
    assert invocation.args == ["5", "10"]
    assert invocation.sender == "alice"
    assert invocation.target == "#bots"


def test_command_invocation_lowercases_name():
    assert CommandInvocation.parse("alice", "#bots", "!PING", "!").command_name == "ping"


def test_command_invocation_requires_prefix_and_name():
    assert CommandInvocation.parse("alice", "#bots", "hello there", "!") is None
    assert CommandInvocation.parse("alice", "#bots", "!", "!") is None
    assert CommandInvocation.parse("alice", "#bots", "!  ", "!") is None
