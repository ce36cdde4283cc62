"""Shared proxy counters.

One StatsCounter is created per server and handed to the request handlers.
Increments take the writer side of the lock, snapshots the reader side, so
any number of /status reads can run together but never see a half-applied
increment.
"""

from dataclasses import dataclass, replace

import aiorwlock


@dataclass
class Stats:
    """Snapshot of the proxy counters."""

    proxied: int = 0


class StatsCounter:
    """Lock-guarded owner of the live Stats record."""

    def __init__(self):
        self._stats = Stats()
        self._lock = aiorwlock.RWLock()

    async def increment_proxied(self) -> int:
        """Count one request that reached the dispatch step.

        Returns:
            The counter value after the increment.
        """
        async with self._lock.writer_lock:
            self._stats.proxied += 1
            return self._stats.proxied

    async def snapshot(self) -> Stats:
        """Return a copy of the current counters."""
        async with self._lock.reader_lock:
            return replace(self._stats)
