"""Tests for the throttled update scheduler."""

from __future__ import annotations

import asyncio

from gatewaychat.orchestrator.scheduler import UpdateScheduler


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def make(window=0.1):
    flushes: list[bool] = []
    clock = FakeClock()
    return UpdateScheduler(flushes.append, window=window, clock=clock), flushes, clock


class TestSchedule:
    async def test_first_change_flushes_immediately(self):
        sched, flushes, _ = make()
        sched.schedule()
        assert flushes == [True]
        assert not sched.pending

    async def test_changes_within_window_collapse(self):
        sched, flushes, clock = make(window=0.05)
        sched.schedule()
        clock.now += 0.01
        sched.schedule()
        sched.schedule()
        sched.schedule()
        assert flushes == [True]
        assert sched.pending

        await asyncio.sleep(0.1)
        assert flushes == [True, True]
        assert not sched.pending

    async def test_flush_after_window_is_immediate(self):
        sched, flushes, clock = make()
        sched.schedule()
        clock.now += 0.2
        sched.schedule()
        assert flushes == [True, True]


class TestFlushNow:
    async def test_cancels_pending_timer(self):
        sched, flushes, clock = make(window=0.05)
        sched.schedule()
        clock.now += 0.01
        sched.schedule()
        sched.flush_now(False)
        assert flushes == [True, False]
        assert not sched.pending

        await asyncio.sleep(0.1)
        assert flushes == [True, False]

    async def test_closed_scheduler_ignores_everything(self):
        sched, flushes, clock = make(window=0.05)
        sched.schedule()
        clock.now += 0.01
        sched.schedule()
        sched.close()
        sched.flush_now(True)
        sched.schedule()

        await asyncio.sleep(0.1)
        assert flushes == [True]
        assert sched.closed
