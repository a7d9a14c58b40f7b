import asyncio
import signal

import pytest

from tbot_core.client.bot_client_logic import BotClient
from tbot_core.irc.irc_events import ConnectionClosed, MessageReceived, ProtocolError, Registered
from tbot_core.network_handler import TransportError
from tbot_core.state_manager import SessionState

from conftest import wait_for


@pytest.fixture
def exits():
    return []


@pytest.fixture
def bot(app_config, fake_transport, exits):
    return BotClient(app_config, transport=fake_transport, hard_exit=exits.append)


async def _start(bot):
    task = asyncio.create_task(bot.run())
    await asyncio.sleep(0)
    return task


@pytest.mark.asyncio
async def test_run_connects_and_processes_events_in_order(bot, fake_transport):
    task = await _start(bot)
    assert fake_transport.connect_calls == 1
    assert bot.ctx.state is SessionState.CONNECTING

    fake_transport.connected = True
    bot.event_queue.put_nowait(Registered(nick="tBot"))
    bot.event_queue.put_nowait(MessageReceived(sender="alice", target="#bots", text="!ping"))
    assert await wait_for(lambda: fake_transport.said == [("#bots", "alice: Pong!")])
    assert bot.ctx.state is SessionState.CONNECTED

    bot.shutdown_coordinator.handle_signal(signal.SIGINT)
    assert await asyncio.wait_for(task, timeout=1) == 0
    assert fake_transport.disconnect_reasons == ["Bot shutting down"]


@pytest.mark.asyncio
async def test_close_after_registration_reconnects(bot, fake_transport):
    task = await _start(bot)
    bot.event_queue.put_nowait(Registered(nick="tBot"))
    bot.event_queue.put_nowait(ConnectionClosed(reason="eof"))

    assert await wait_for(lambda: fake_transport.connect_calls == 2)
    assert bot.ctx.reconnection.attempt_count == 1

    bot.request_shutdown("test over")
    assert await asyncio.wait_for(task, timeout=1) == 0


@pytest.mark.asyncio
async def test_retry_exhaustion_ends_run_with_zero(bot, fake_transport):
    task = await _start(bot)
    for attempt in range(1, bot.ctx.reconnection.max_attempts + 1):
        bot.event_queue.put_nowait(ConnectionClosed(reason="eof"))
        assert await wait_for(lambda: fake_transport.connect_calls == attempt + 1)
        assert bot.ctx.reconnection.attempt_count == attempt

    bot.event_queue.put_nowait(ConnectionClosed(reason="eof"))
    assert await asyncio.wait_for(task, timeout=2) == 0
    assert fake_transport.connect_calls == bot.ctx.reconnection.max_attempts + 1
    assert bot.ctx.shutdown.reason == "Max reconnection attempts reached"


@pytest.mark.asyncio
async def test_initial_connect_failure_goes_to_retry(app_config, fake_transport, exits):
    fake_transport.connect_error = TransportError("cannot start")
    bot = BotClient(app_config, transport=fake_transport, hard_exit=exits.append)

    task = await _start(bot)
    assert bot.ctx.reconnection.attempt_count >= 1
    assert await asyncio.wait_for(task, timeout=2) == 0
    assert fake_transport.connect_calls == bot.ctx.reconnection.max_attempts + 1


@pytest.mark.asyncio
async def test_nickname_in_use_shuts_down_without_retry(bot, fake_transport):
    task = await _start(bot)
    bot.event_queue.put_nowait(ProtocolError(subtype="err_nicknameinuse", command="433"))

    assert await asyncio.wait_for(task, timeout=1) == 0
    assert bot.ctx.reconnection.attempt_count == 0
    assert fake_transport.connect_calls == 1


@pytest.mark.asyncio
async def test_fault_escaping_dispatch_initiates_shutdown(bot, fake_transport, monkeypatch):
    async def _explode(event):
        raise RuntimeError("router bug")

    monkeypatch.setattr(bot.router, "dispatch", _explode)
    task = await _start(bot)
    bot.event_queue.put_nowait(Registered(nick="tBot"))

    assert await asyncio.wait_for(task, timeout=1) == 0
    assert bot.ctx.shutdown.reason == "Internal error: router bug"


@pytest.mark.asyncio
async def test_stray_task_exception_is_only_logged(bot, caplog):
    task = await _start(bot)

    async def _stray():
        raise ValueError("nobody awaits me")

    stray = asyncio.get_running_loop().create_task(_stray())
    await asyncio.sleep(0.01)
    bot._handle_loop_exception(asyncio.get_running_loop(), {"message": "Task exception was never retrieved", "exception": stray.exception(), "task": stray})

    assert bot.ctx.shutdown.initiated is False
    assert "nobody awaits me" in caplog.text

    bot.request_shutdown("test over")
    assert await asyncio.wait_for(task, timeout=1) == 0


@pytest.mark.asyncio
async def test_second_sigint_forces_130(bot, fake_transport, exits):
    fake_transport.connected = True
    fake_transport.disconnect_hangs = True
    bot.shutdown_coordinator.shutdown_timeout = 10
    task = await _start(bot)

    bot.shutdown_coordinator.handle_signal(signal.SIGINT)
    await asyncio.sleep(0)
    bot.shutdown_coordinator.handle_signal(signal.SIGINT)

    assert exits == [130]
    assert await asyncio.wait_for(task, timeout=1) == 130
    bot.shutdown_coordinator._cancel_watchdog()
    bot.shutdown_coordinator._disconnect_task.cancel()


@pytest.mark.asyncio
async def test_watchdog_bounds_run_when_transport_is_stuck(bot, fake_transport, exits):
    fake_transport.connected = True
    fake_transport.task_running = True
    fake_transport.disconnect_hangs = True
    fake_transport.stop_hangs = True
    task = await _start(bot)

    loop = asyncio.get_running_loop()
    started = loop.time()
    bot.request_shutdown("test over")

    assert await asyncio.wait_for(task, timeout=1) == 0
    assert loop.time() - started < 0.5
    assert exits == [0]
    assert fake_transport.stop_calls == 0
    bot.shutdown_coordinator._disconnect_task.cancel()
