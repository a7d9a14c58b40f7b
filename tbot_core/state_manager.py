# tbot_core/state_manager.py
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from tbot_core.client.timers import CancellableTimer

logger = logging.getLogger("tbot.state")


class SessionState(Enum):
    """Possible session states."""

    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    SHUTTING_DOWN = auto()


@dataclass
class ReconnectionState:
    """
    Retry bookkeeping for the Reconnection Controller.

    Attributes:
        attempt_count (int): Retries scheduled since the last successful registration.
        max_attempts (int): Retry budget; reaching it ends the session.
        base_delay (float): Base delay in seconds handed to the delay policy.
        pending_timer (Optional[CancellableTimer]): Set only while a retry is armed.
    """
    max_attempts: int
    base_delay: float
    attempt_count: int = 0
    pending_timer: Optional["CancellableTimer"] = None

    @property
    def retry_pending(self) -> bool:
        return self.pending_timer is not None

    @property
    def exhausted(self) -> bool:
        return self.attempt_count >= self.max_attempts


@dataclass
class ShutdownState:
    initiated: bool = False
    termination_signal_count: int = 0
    reason: Optional[str] = None


@dataclass
class CommandInvocation:
    """One prefixed chat message, parsed into a command name and arguments."""
    sender: str
    target: str
    raw_text: str
    command_name: str
    args: List[str] = field(default_factory=list)

    @classmethod
    def parse(cls, sender: str, target: str, raw_text: str, prefix: str) -> Optional["CommandInvocation"]:
        if not prefix or not raw_text.startswith(prefix):
            return None
        parts = raw_text[len(prefix):].split()
        if not parts:
            return None
        return cls(
            sender=sender,
            target=target,
            raw_text=raw_text,
            command_name=parts[0].lower(),
            args=parts[1:],
        )


class SessionContext:
    """
    The single owner of all mutable session state.

    The Event Router, Reconnection Controller and Lifecycle Coordinator all
    receive the same instance; none of them keeps state of its own.
    """

    def __init__(self, nick: str, max_attempts: int, base_delay: float):
        self.nick = nick
        self.state = SessionState.DISCONNECTED
        self.reconnection = ReconnectionState(max_attempts=max_attempts, base_delay=base_delay)
        self.shutdown = ShutdownState()
        self.reconnect_suppressed = False
        self.rejoin_timers: Dict[str, "CancellableTimer"] = {}

    def set_state(self, new_state: SessionState) -> None:
        if self.state is SessionState.SHUTTING_DOWN and new_state is not SessionState.SHUTTING_DOWN:
            logger.debug(f"Ignoring transition to {new_state.name}: session is shutting down.")
            return
        if self.state is not new_state:
            logger.debug(f"Session state {self.state.name} -> {new_state.name}")
            self.state = new_state

    def is_self(self, nick: Optional[str]) -> bool:
        return bool(nick) and nick.lower() == self.nick.lower()

    def cancel_rejoin_timers(self) -> None:
        for channel, timer in list(self.rejoin_timers.items()):
            timer.cancel()
            logger.debug(f"Cancelled pending rejoin of {channel}.")
        self.rejoin_timers.clear()
