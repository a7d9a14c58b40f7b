# tbot_core/client/reconnection_controller.py
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from tbot_core.client.timers import CancellableTimer
from tbot_core.config_defs import ReconnectConfig
from tbot_core.state_manager import SessionContext, SessionState

if TYPE_CHECKING:
    from tbot_core.network_handler import NetworkHandler

logger = logging.getLogger("tbot.reconnect")


@dataclass
class FixedDelayPolicy:
    """Waits the same number of seconds before every attempt."""
    base_delay: float

    def get_delay(self, attempt: int) -> float:
        return self.base_delay


@dataclass
class ExponentialBackoffPolicy:
    """Exponential backoff with proportional jitter, capped at max_delay.

    Args:
        base_delay: Delay before the first attempt.
        max_delay: Upper bound before jitter is applied.
        multiplier: Growth factor per attempt.
        jitter: Fraction of the delay added or removed at random.
    """
    base_delay: float
    max_delay: float
    multiplier: float = 2.0
    jitter: float = 0.1

    def get_delay(self, attempt: int) -> float:
        exponent = max(attempt - 1, 0)
        base = min(self.base_delay * (self.multiplier ** exponent), self.max_delay)
        jitter_range = base * self.jitter
        return max(0.0, base + random.uniform(-jitter_range, jitter_range))


def build_policy(reconnect_config: ReconnectConfig):
    if reconnect_config.policy == "exponential":
        return ExponentialBackoffPolicy(
            base_delay=reconnect_config.delay,
            max_delay=reconnect_config.max_delay,
            multiplier=reconnect_config.multiplier,
            jitter=reconnect_config.jitter,
        )
    if reconnect_config.policy != "fixed":
        logger.warning(f"Unknown reconnect policy '{reconnect_config.policy}', using fixed delay.")
    return FixedDelayPolicy(base_delay=reconnect_config.delay)


class ReconnectionController:
    """
    Decides whether and when the session reconnects.

    All bookkeeping lives in ``ctx.reconnection``; at most one retry timer is
    ever armed. ``on_exhausted`` is called when the retry budget runs out.
    """

    def __init__(
        self,
        ctx: SessionContext,
        transport: "NetworkHandler",
        policy,
        on_exhausted: Callable[[str], None],
    ):
        self.ctx = ctx
        self.transport = transport
        self.policy = policy
        self.on_exhausted = on_exhausted

    def schedule_retry(self) -> bool:
        """Arms the retry timer. Returns True if a retry was scheduled."""
        state = self.ctx.reconnection
        if self.ctx.shutdown.initiated:
            logger.debug("Not scheduling reconnect: shutdown in progress.")
            return False
        if state.retry_pending:
            logger.debug("Reconnect already pending.")
            return False
        if state.exhausted:
            logger.error(f"Max reconnection attempts ({state.max_attempts}) reached. Giving up.")
            self.on_exhausted("Max reconnection attempts reached")
            return False

        state.attempt_count += 1
        delay = self.policy.get_delay(state.attempt_count)
        logger.info(f"Reconnecting in {delay:.1f} seconds (attempt {state.attempt_count}/{state.max_attempts})")
        state.pending_timer = CancellableTimer("reconnect", delay, self._on_retry_timer)
        return True

    def cancel_retry(self) -> None:
        state = self.ctx.reconnection
        if state.pending_timer is not None:
            state.pending_timer.cancel()
            state.pending_timer = None
            logger.debug("Pending reconnect cancelled.")

    def reset(self) -> None:
        """Successful registration: forget previous failures."""
        self.cancel_retry()
        self.ctx.reconnection.attempt_count = 0

    def _on_retry_timer(self) -> None:
        self.ctx.reconnection.pending_timer = None
        if self.ctx.shutdown.initiated:
            return
        self.ctx.set_state(SessionState.CONNECTING)
        logger.info(f"Attempting to reconnect (attempt {self.ctx.reconnection.attempt_count})...")
        try:
            self.transport.connect()
        except Exception as e:
            logger.error(f"Reconnect attempt failed to start: {e}")
            self.ctx.set_state(SessionState.DISCONNECTED)
            self.schedule_retry()
