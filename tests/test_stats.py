"""Tests for the lock-guarded counter."""

import asyncio

import pytest

from proxyer import Stats, StatsCounter


@pytest.mark.asyncio
async def test_starts_at_zero():
    counter = StatsCounter()
    assert await counter.snapshot() == Stats(proxied=0)


@pytest.mark.asyncio
async def test_increment_returns_new_value():
    counter = StatsCounter()
    assert await counter.increment_proxied() == 1
    assert await counter.increment_proxied() == 2


@pytest.mark.asyncio
async def test_snapshot_is_a_copy():
    counter = StatsCounter()
    snapshot = await counter.snapshot()
    await counter.increment_proxied()
    assert snapshot.proxied == 0
    assert (await counter.snapshot()).proxied == 1


@pytest.mark.asyncio
async def test_concurrent_increments_are_not_lost():
    counter = StatsCounter()

    async def reader():
        stats = await counter.snapshot()
        assert 0 <= stats.proxied <= 500

    tasks = [counter.increment_proxied() for _ in range(500)]
    tasks += [reader() for _ in range(100)]
    await asyncio.gather(*tasks)

    assert (await counter.snapshot()).proxied == 500


def test_repr_is_the_status_body():
    assert repr(Stats(proxied=7)) == "Stats(proxied=7)"
