# tbot_core/irc/irc_message.py
import re
from typing import Dict, List, Optional

# [@tags ][:prefix ]COMMAND[ middle params][ :trailing]
LINE_RE = re.compile(r"^(?::(?P<prefix>\S+) +)?(?P<command>\S+)(?: +(?P<middle>[^:]*?))?(?: *:(?P<trailing>.*))?$")

# mIRC bold, color, reset, reverse, italic, strikethrough, monospace and underline codes.
IRC_FORMATTING_RE = re.compile(r"\x03(?:\d{1,2}(?:,\d{1,2})?)?|[\x02\x0f\x11\x16\x1d\x1e\x1f]")

TAG_ESCAPES = {":": ";", "s": " ", "\\": "\\", "r": "\r", "n": "\n"}


def _unescape_tag(value: str) -> str:
    out = []
    chars = iter(value)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            out.append(TAG_ESCAPES.get(nxt, nxt))
        else:
            out.append(ch)
    return "".join(out)


def _parse_tags(tag_str: str) -> Dict[str, str]:
    tags: Dict[str, str] = {}
    for item in tag_str.split(";"):
        if not item:
            continue
        key, _, value = item.partition("=")
        tags[key] = _unescape_tag(value)
    return tags


def strip_formatting(text: str) -> str:
    return IRC_FORMATTING_RE.sub("", text)


class IRCMessage:
    """A single server line split into prefix, command, middle params and trailing text."""

    def __init__(self, prefix: Optional[str], command: str, params: List[str], trailing: Optional[str], tags: Optional[Dict[str, str]] = None):
        self.prefix = prefix
        self.command = command
        self.params = params
        self.trailing = trailing
        self.tags = tags or {}

    @property
    def source_nick(self) -> Optional[str]:
        if self.prefix is None:
            return None
        return self.prefix.split("!", 1)[0]

    @classmethod
    def parse(cls, line: str) -> Optional["IRCMessage"]:
        line = line.rstrip("\r\n")
        tags: Dict[str, str] = {}
        if line.startswith("@"):
            tag_str, _, line = line[1:].partition(" ")
            tags = _parse_tags(tag_str)
            line = line.lstrip(" ")
        if not line:
            return None

        match = LINE_RE.match(line)
        if not match:
            return None
        middle = match.group("middle")
        return cls(
            prefix=match.group("prefix"),
            command=match.group("command"),
            params=middle.split() if middle else [],
            trailing=match.group("trailing"),
            tags=tags,
        )
