# tbot_core/irc/irc_events.py
"""
Transport events.

The network layer turns every interesting server line (and every connection
failure) into exactly one of these immutable records and puts it on the
event queue. The bot's control loop is the only consumer.
"""
from dataclasses import dataclass, field
from typing import Optional, List, Union


@dataclass(frozen=True)
class Registered:
    nick: str
    server_message: str = ""


@dataclass(frozen=True)
class ChannelJoined:
    channel: str
    nick: str


@dataclass(frozen=True)
class NickChanged:
    old_nick: str
    new_nick: str


@dataclass(frozen=True)
class PeerJoined:
    channel: str
    nick: str
    userhost: Optional[str] = None


@dataclass(frozen=True)
class PeerLeft:
    channel: str
    nick: str
    reason: str = ""
    is_self: bool = False


@dataclass(frozen=True)
class PeerQuit:
    nick: str
    reason: str = ""


@dataclass(frozen=True)
class Kicked:
    channel: str
    nick: str
    by: str
    reason: str = ""
    is_self: bool = False


@dataclass(frozen=True)
class MessageReceived:
    sender: str
    target: str
    text: str
    is_private: bool = False
    userhost: Optional[str] = None


@dataclass(frozen=True)
class ProtocolError:
    subtype: str
    command: str
    params: List[str] = field(default_factory=list)
    message: str = ""


@dataclass(frozen=True)
class ConnectionClosed:
    reason: str = ""


@dataclass(frozen=True)
class NetworkError:
    code: str
    message: str = ""


TransportEvent = Union[
    Registered,
    ChannelJoined,
    NickChanged,
    PeerJoined,
    PeerLeft,
    PeerQuit,
    Kicked,
    MessageReceived,
    ProtocolError,
    ConnectionClosed,
    NetworkError,
]
