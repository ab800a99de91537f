import asyncio

import pytest

from conftest import FakeClock
from pricedrop.core.errors import MonitorBusyError
from pricedrop.jobs.periodic import PeriodicTrigger
from pricedrop.services.monitor import RunResult


class ScriptedMonitor:
    """Stands in for PriceMonitor; each run pops the next scripted outcome."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def run_once(self) -> RunResult:
        self.calls += 1
        outcome = self.outcomes.pop(0) if self.outcomes else RunResult()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


async def wait_for_runs(trigger: PeriodicTrigger, runs: int) -> None:
    for _ in range(200):
        if trigger.runs >= runs:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"expected {runs} runs, saw {trigger.runs}")


@pytest.mark.asyncio
async def test_start_runs_immediately_and_is_idempotent():
    trigger = PeriodicTrigger(ScriptedMonitor(RunResult(checked=3, notified=1)), interval_seconds=3600)

    assert trigger.start()
    assert not trigger.start()

    await wait_for_runs(trigger, 1)
    assert trigger.is_running
    assert trigger.last_result.checked == 3

    await trigger.stop()
    assert not trigger.is_running


@pytest.mark.asyncio
async def test_stop_without_start_is_a_noop():
    trigger = PeriodicTrigger(ScriptedMonitor(), interval_seconds=3600)
    await trigger.stop()
    assert not trigger.is_running


@pytest.mark.asyncio
async def test_loop_keeps_going_after_failures():
    monitor = ScriptedMonitor(
        RuntimeError("database went away"),
        MonitorBusyError("run in flight"),
        RunResult(checked=2),
    )
    trigger = PeriodicTrigger(monitor, interval_seconds=0)

    trigger.start()
    await wait_for_runs(trigger, 3)
    await trigger.stop()

    assert monitor.calls >= 3
    assert trigger.last_result is not None
    assert trigger.last_result.checked in (0, 2)


@pytest.mark.asyncio
async def test_trigger_now_surfaces_busy_monitor():
    trigger = PeriodicTrigger(ScriptedMonitor(MonitorBusyError("run in flight")), interval_seconds=3600)

    with pytest.raises(MonitorBusyError):
        await trigger.trigger_now()


@pytest.mark.asyncio
async def test_trigger_now_returns_run_result():
    trigger = PeriodicTrigger(ScriptedMonitor(RunResult(checked=1, notified=1)), interval_seconds=3600)

    result = await trigger.trigger_now()

    assert result.notified == 1
    assert trigger.runs == 0


class SlowMonitor:
    """Each run takes ``duration`` seconds on the given clock."""

    def __init__(self, clock: FakeClock, duration: float):
        self.clock = clock
        self.duration = duration

    async def run_once(self) -> RunResult:
        self.clock.now += self.duration
        return RunResult(checked=1)


async def first_sleep(duration: float, interval: float) -> float:
    clock = FakeClock()
    sleeps = []
    parked = asyncio.Event()

    async def park(seconds):
        sleeps.append(seconds)
        parked.set()
        await asyncio.Event().wait()

    trigger = PeriodicTrigger(
        SlowMonitor(clock, duration), interval_seconds=interval, clock=clock, sleep=park
    )
    trigger.start()
    await asyncio.wait_for(parked.wait(), timeout=1)
    await trigger.stop()
    return sleeps[0]


@pytest.mark.asyncio
async def test_interval_counts_from_run_start():
    assert await first_sleep(duration=240, interval=600) == 360


@pytest.mark.asyncio
async def test_overrunning_run_starts_next_one_immediately():
    assert await first_sleep(duration=900, interval=600) == 0
