"""Tests for in-flight tracking and the shutdown signal."""

import asyncio
import os
import signal

import pytest

from proxyer import InFlightTracker, ShutdownSignal, SignalHandlerError


@pytest.mark.asyncio
async def test_tracker_counts_and_drains():
    tracker = InFlightTracker()
    release = asyncio.Event()

    async def handler():
        async with tracker.track():
            await release.wait()

    tasks = [asyncio.create_task(handler()) for _ in range(3)]
    await asyncio.sleep(0)
    assert tracker.count == 3

    drained = asyncio.create_task(tracker.wait_drained())
    await asyncio.sleep(0.01)
    assert not drained.done()

    release.set()
    await asyncio.gather(*tasks)
    await drained
    assert tracker.count == 0


@pytest.mark.asyncio
async def test_tracker_with_nothing_running_is_drained():
    await asyncio.wait_for(InFlightTracker().wait_drained(), timeout=1)


@pytest.mark.asyncio
async def test_tracker_releases_on_error():
    tracker = InFlightTracker()
    with pytest.raises(RuntimeError):
        async with tracker.track():
            raise RuntimeError("boom")
    assert tracker.count == 0


@pytest.mark.asyncio
async def test_trigger_wakes_waiter():
    shutdown = ShutdownSignal()
    asyncio.get_running_loop().call_later(0.01, shutdown.trigger, signal.SIGTERM)
    assert await shutdown.wait() is signal.SIGTERM
    assert shutdown.received is signal.SIGTERM


@pytest.mark.asyncio
async def test_first_signal_wins():
    shutdown = ShutdownSignal()
    shutdown.trigger(signal.SIGINT)
    shutdown.trigger(signal.SIGTERM)
    assert await shutdown.wait() is signal.SIGINT


@pytest.mark.asyncio
async def test_real_signal_is_delivered():
    shutdown = ShutdownSignal(signals=(signal.SIGUSR1,))
    shutdown.install()
    try:
        os.kill(os.getpid(), signal.SIGUSR1)
        assert await asyncio.wait_for(shutdown.wait(), timeout=5) is signal.SIGUSR1
    finally:
        shutdown.uninstall()


@pytest.mark.asyncio
async def test_install_failure_raises_signal_handler_error(monkeypatch):
    loop = asyncio.get_running_loop()

    def refuse(*args):
        raise NotImplementedError

    monkeypatch.setattr(loop, "add_signal_handler", refuse)
    shutdown = ShutdownSignal()
    with pytest.raises(SignalHandlerError, match="SIGINT"):
        shutdown.install()


@pytest.mark.asyncio
async def test_failed_install_only_removes_handlers_it_added(monkeypatch):
    loop = asyncio.get_running_loop()
    real_add = loop.add_signal_handler
    real_remove = loop.remove_signal_handler
    removed = []

    def add(signum, callback, *args):
        if signum == signal.SIGUSR2:
            raise ValueError("invalid signal")
        real_add(signum, callback, *args)

    def remove(signum):
        removed.append(signum)
        return real_remove(signum)

    monkeypatch.setattr(loop, "add_signal_handler", add)
    monkeypatch.setattr(loop, "remove_signal_handler", remove)

    shutdown = ShutdownSignal(signals=(signal.SIGUSR1, signal.SIGUSR2))
    with pytest.raises(SignalHandlerError, match="SIGUSR2"):
        shutdown.install()
    assert removed == [signal.SIGUSR1]


@pytest.mark.asyncio
async def test_wait_without_a_recorded_signal_raises():
    shutdown = ShutdownSignal()
    shutdown._event.set()
    with pytest.raises(RuntimeError, match="without a signal"):
        await shutdown.wait()
