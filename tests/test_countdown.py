"""Tests for the asyncio countdown timer."""

import asyncio

from mentora.services.countdown import CountdownTimer


async def test_ticks_until_stopped():
    ticks = []

    async def on_tick():
        ticks.append(len(ticks))

    timer = CountdownTimer(on_tick, interval=0.01)
    timer.start()
    timer.start()  # already running
    await asyncio.sleep(0.1)
    timer.stop()
    count = len(ticks)
    await asyncio.sleep(0.05)

    assert count > 0
    assert len(ticks) == count
    assert not timer.running


async def test_stop_from_inside_tick():
    ticks = []
    timer = None

    async def on_tick():
        ticks.append(1)
        timer.stop()

    timer = CountdownTimer(on_tick, interval=0.01)
    timer.start()
    await asyncio.sleep(0.1)

    assert ticks == [1]
    assert not timer.running


async def test_failing_tick_stops_timer():
    async def on_tick():
        raise RuntimeError("boom")

    timer = CountdownTimer(on_tick, interval=0.01)
    timer.start()
    await asyncio.sleep(0.05)
    assert not timer.running
