"""Server lifecycle: states, in-flight tracking, shutdown signal.

Shutdown is graceful and has no deadline. Once the signal arrives the server
stops accepting connections and waits for every running handler to finish on
its own. Nothing is cancelled.
"""

import asyncio
import enum
import signal
from contextlib import asynccontextmanager
from typing import AsyncIterator

import logfire

from .errors import SignalHandlerError


class ServerState(enum.Enum):
    STARTING = "starting"
    SERVING = "serving"
    DRAINING = "draining"
    STOPPED = "stopped"


class InFlightTracker:
    """Counts request handlers that are currently running."""

    def __init__(self):
        self._count = 0
        self._drained = asyncio.Event()
        self._drained.set()

    @property
    def count(self) -> int:
        return self._count

    @asynccontextmanager
    async def track(self) -> AsyncIterator[None]:
        """Mark one handler as running for the duration of the block."""
        self._count += 1
        self._drained.clear()
        try:
            yield
        finally:
            self._count -= 1
            if self._count == 0:
                self._drained.set()

    async def wait_drained(self) -> None:
        """Block until no handler is running."""
        while self._count:
            await self._drained.wait()


class ShutdownSignal:
    """Turns SIGINT/SIGTERM into an awaitable event on the running loop.

    Usage:
        shutdown = ShutdownSignal()
        shutdown.install()
        ...
        signum = await shutdown.wait()
    """

    DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, signals: tuple[signal.Signals, ...] = DEFAULT_SIGNALS):
        self._signals = signals
        self._received: signal.Signals | None = None
        self._event = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._installed: list[signal.Signals] = []

    def install(self) -> None:
        """Register the handlers on the running loop.

        Raises:
            SignalHandlerError: if the platform or loop refuses a handler.
        """
        self._loop = asyncio.get_running_loop()
        for signum in self._signals:
            try:
                self._loop.add_signal_handler(signum, self.trigger, signum)
                self._installed.append(signum)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                self.uninstall()
                raise SignalHandlerError(
                    f"failed to install {signal.Signals(signum).name} signal handler: {e}"
                ) from e

    def uninstall(self) -> None:
        """Remove any handlers installed by install()."""
        if self._loop is None:
            return
        while self._installed:
            self._loop.remove_signal_handler(self._installed.pop())
        self._loop = None

    def trigger(self, signum: signal.Signals = signal.SIGINT) -> None:
        """Record a shutdown request. Later calls are ignored."""
        if self._event.is_set():
            return
        self._received = signal.Signals(signum)
        logfire.info(f"Received {self._received.name}, shutting down")
        self._event.set()

    @property
    def received(self) -> signal.Signals | None:
        return self._received

    async def wait(self) -> signal.Signals:
        """Block until a shutdown signal arrives; returns it."""
        await self._event.wait()
        if self._received is None:
            raise RuntimeError("Shutdown event set without a signal")
        return self._received
