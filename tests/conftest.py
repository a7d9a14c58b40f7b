import asyncio
from typing import List, Optional, Tuple

import pytest

from tbot_core.app_config import AppConfig
from tbot_core.network_handler import TransportError

BASE_CONFIG = """
[Connection]
server = irc.example.org
port = 6667
ssl = false
nick = tBot
channels = #bots

[Bot]
command_prefix = !
auto_rejoin = true
rejoin_delay = 0.01

[FloodProtection]
enabled = false

[Reconnect]
max_attempts = 5
delay = 0.01

[Shutdown]
timeout = 0.05

[Logging]
log_enabled = false
"""


class FakeTransport:
    """Records what the bot asks of the transport without any socket."""

    def __init__(self) -> None:
        self.connected = False
        self.task_running = False
        self.connect_calls = 0
        self.connect_error: Optional[Exception] = None
        self.said: List[Tuple[str, str]] = []
        self.joined: List[str] = []
        self.disconnect_reasons: List[Optional[str]] = []
        self.disconnect_error: Optional[Exception] = None
        self.disconnect_hangs = False
        self.stop_calls = 0
        self.stop_hangs = False

    def connect(self) -> None:
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error

    def is_connected(self) -> bool:
        return self.connected

    async def disconnect(self, reason=None, on_complete=None) -> None:
        self.disconnect_reasons.append(reason)
        if self.disconnect_error is not None:
            raise self.disconnect_error
        if self.disconnect_hangs:
            await asyncio.sleep(3600)
        self.connected = False
        if on_complete is not None:
            on_complete()

    async def stop(self) -> bool:
        self.stop_calls += 1
        if self.stop_hangs:
            await asyncio.sleep(3600)
        self.task_running = False
        return True

    async def say(self, target: str, text: str) -> None:
        self.said.append((target, text))

    async def join(self, channel: str) -> None:
        self.joined.append(channel)


@pytest.fixture
def write_config(tmp_path):
    def _write(text: str = BASE_CONFIG, name: str = "tbot_config.ini") -> str:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def app_config(write_config) -> AppConfig:
    return AppConfig(config_file_path=write_config())


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def failing_connect_error() -> TransportError:
    return TransportError("connect refused to start")


async def wait_for(predicate, *, timeout: float = 0.5, interval: float = 0.005) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()
