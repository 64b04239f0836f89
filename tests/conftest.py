from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Iterator

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from lifetime_core.arena import Arena  # noqa: E402
from lifetime_core.scheduler import ManualClock, Scheduler  # noqa: E402
from runtime_bus import RuntimeBus  # noqa: E402
from scenarios.context import ScenarioContext  # noqa: E402


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def bus() -> RuntimeBus:
    return RuntimeBus()


@pytest.fixture()
def arena(bus: RuntimeBus) -> Arena:
    return Arena(bus)


@pytest.fixture()
def scheduler(bus: RuntimeBus, clock: ManualClock) -> Iterator[Scheduler]:
    sched = Scheduler(bus=bus, clock=clock)
    yield sched
    sched.cancel_all()
    sched.wait_idle(2.0)


@pytest.fixture()
def ctx(clock: ManualClock) -> Iterator[ScenarioContext]:
    context = ScenarioContext.create(clock=clock)
    yield context
    context.scheduler.cancel_all()
    context.scheduler.wait_idle(2.0)


@pytest.fixture()
def settle(ctx: ScenarioContext, clock: ManualClock) -> Callable[[float], None]:
    """Move the manual clock forward, firing due timers and joining workers."""

    def _settle(seconds: float, step: float = 0.25) -> None:
        for _ in range(int(round(seconds / step))):
            clock.advance(step)
            ctx.scheduler.run_due()
            ctx.scheduler.wait_idle(2.0)

    return _settle
