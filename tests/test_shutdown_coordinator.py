import asyncio
import signal

import pytest

from tbot_core.client.client_shutdown_coordinator import ClientShutdownCoordinator
from tbot_core.client.reconnection_controller import FixedDelayPolicy, ReconnectionController
from tbot_core.client.timers import CancellableTimer
from tbot_core.state_manager import SessionContext, SessionState


def _coordinator(transport, timeout=0.05):
    ctx = SessionContext(nick="tBot", max_attempts=5, base_delay=10.0)
    reconnection = ReconnectionController(ctx, transport, FixedDelayPolicy(10.0), on_exhausted=lambda reason: None)
    exits = []
    coordinator = ClientShutdownCoordinator(
        ctx,
        transport,
        reconnection,
        shutdown_timeout=timeout,
        quit_message="Bot shutting down",
        hard_exit=exits.append,
    )
    return ctx, reconnection, coordinator, exits


@pytest.mark.asyncio
async def test_not_connected_finishes_immediately(fake_transport):
    ctx, _, coordinator, exits = _coordinator(fake_transport)

    coordinator.initiate_shutdown("test")

    assert coordinator.shutdown_complete_event.is_set()
    assert coordinator.exit_code == 0
    assert ctx.state is SessionState.SHUTTING_DOWN
    assert fake_transport.disconnect_reasons == []
    assert exits == []


@pytest.mark.asyncio
async def test_connected_disconnects_with_quit_message(fake_transport):
    fake_transport.connected = True
    _, _, coordinator, exits = _coordinator(fake_transport)

    coordinator.initiate_shutdown("test")
    await asyncio.wait_for(coordinator.shutdown_complete_event.wait(), timeout=1)

    assert fake_transport.disconnect_reasons == ["Bot shutting down"]
    assert coordinator.exit_code == 0
    assert exits == []


@pytest.mark.asyncio
async def test_watchdog_forces_exit_on_hung_disconnect(fake_transport):
    fake_transport.connected = True
    fake_transport.disconnect_hangs = True
    _, _, coordinator, exits = _coordinator(fake_transport, timeout=0.02)

    coordinator.initiate_shutdown("test")
    await asyncio.wait_for(coordinator.shutdown_complete_event.wait(), timeout=1)

    assert coordinator.exit_code == 0
    assert exits == [0]
    assert coordinator.forced is True
    coordinator._disconnect_task.cancel()


@pytest.mark.asyncio
async def test_failing_disconnect_still_finishes(fake_transport):
    fake_transport.connected = True
    fake_transport.disconnect_error = OSError("broken pipe")
    _, _, coordinator, _ = _coordinator(fake_transport)

    coordinator.initiate_shutdown("test")
    await asyncio.wait_for(coordinator.shutdown_complete_event.wait(), timeout=1)
    assert coordinator.exit_code == 0


@pytest.mark.asyncio
async def test_second_initiate_forces_exit_1(fake_transport):
    fake_transport.connected = True
    fake_transport.disconnect_hangs = True
    _, _, coordinator, exits = _coordinator(fake_transport, timeout=10)

    coordinator.initiate_shutdown("first")
    await asyncio.sleep(0)
    assert exits == []
    assert fake_transport.disconnect_reasons == ["Bot shutting down"]

    coordinator.initiate_shutdown("second")

    assert exits == [1]
    assert coordinator.exit_code == 1
    assert fake_transport.disconnect_reasons == ["Bot shutting down"]
    coordinator._cancel_watchdog()
    coordinator._disconnect_task.cancel()


@pytest.mark.asyncio
async def test_shutdown_cancels_retry_and_rejoin_timers(fake_transport):
    ctx, reconnection, coordinator, _ = _coordinator(fake_transport)
    reconnection.schedule_retry()
    rejoin = CancellableTimer("rejoin #bots", 10.0, lambda: None)
    ctx.rejoin_timers["#bots"] = rejoin

    coordinator.initiate_shutdown("test")

    assert ctx.reconnection.pending_timer is None
    assert ctx.rejoin_timers == {}
    assert rejoin.active is False
    assert reconnection.schedule_retry() is False


@pytest.mark.asyncio
async def test_first_sigint_is_graceful_second_forces_130(fake_transport):
    fake_transport.connected = True
    fake_transport.disconnect_hangs = True
    ctx, _, coordinator, exits = _coordinator(fake_transport, timeout=10)

    coordinator.handle_signal(signal.SIGINT)
    await asyncio.sleep(0)
    assert ctx.shutdown.initiated is True
    assert ctx.shutdown.termination_signal_count == 1
    assert exits == []

    coordinator.handle_signal(signal.SIGINT)
    assert exits == [130]
    assert ctx.shutdown.termination_signal_count == 2
    coordinator._cancel_watchdog()
    coordinator._disconnect_task.cancel()


@pytest.mark.asyncio
async def test_sigint_while_connected_exits_cleanly(fake_transport):
    fake_transport.connected = True
    _, _, coordinator, exits = _coordinator(fake_transport)

    coordinator.handle_signal(signal.SIGINT)
    await asyncio.wait_for(coordinator.shutdown_complete_event.wait(), timeout=1)

    assert coordinator.exit_code == 0
    assert fake_transport.disconnect_reasons == ["Bot shutting down"]
    assert exits == []


@pytest.mark.asyncio
async def test_sigterm_during_shutdown_forces_exit_1(fake_transport):
    fake_transport.connected = True
    fake_transport.disconnect_hangs = True
    _, _, coordinator, exits = _coordinator(fake_transport, timeout=10)

    coordinator.handle_signal(signal.SIGTERM)
    assert exits == []
    coordinator.handle_signal(signal.SIGTERM)
    assert exits == [1]
    coordinator._cancel_watchdog()
    coordinator._disconnect_task.cancel()
