from __future__ import annotations

import itertools
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from app_ui.config import LabConfig
from diagnostics.logging_setup import get_logger
from lifetime_core.arena import Arena, StrongRef
from lifetime_core.continuation import Continuation, SuspendedTask, suspend
from lifetime_core.scheduler import Dispatch, Scheduler
from runtime_bus import RuntimeBus, topics

from .screens import Screen

logger = get_logger("scenarios")


@dataclass
class ScenarioContext:
    """Collaborators a scenario runs against, plus the presenter's screen table."""

    arena: Arena
    scheduler: Scheduler
    bus: RuntimeBus
    config: LabConfig = field(default_factory=LabConfig)
    tasks: List[SuspendedTask] = field(default_factory=list)
    _presented: Dict[str, StrongRef] = field(default_factory=dict)
    _numbers: Any = field(default_factory=lambda: itertools.count(1))

    @classmethod
    def create(
        cls,
        config: Optional[LabConfig] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        main_dispatch: Optional[Dispatch] = None,
    ) -> "ScenarioContext":
        config = config or LabConfig()
        bus = RuntimeBus()
        arena = Arena(bus)
        scheduler = Scheduler(
            bus=bus,
            clock=clock,
            main_dispatch=main_dispatch,
            time_scale=config.time_scale,
        )
        return cls(arena=arena, scheduler=scheduler, bus=bus, config=config)

    # -- presentation ---------------------------------------------------
    def present(self, title: str, *, managed: bool = True) -> StrongRef:
        """Spawn a screen. Unmanaged screens are dismissed by whoever gets the reference."""
        screen = Screen(title, next(self._numbers), self.scheduler)
        ref = self.arena.spawn(screen)
        if managed:
            self._presented[screen.label] = ref
        logger.info("%s presented", screen.label)
        self.bus.publish(topics.SCREEN_PRESENTED, {"label": screen.label}, source="presenter")
        return ref

    def dismiss(
        self,
        screen_ref: StrongRef,
        *,
        delay: Optional[float] = None,
        completion: Optional[Callable[[], None]] = None,
    ) -> None:
        label = screen_ref.get().label
        if delay is None:
            self._dismiss_now(label, completion)
            return

        def _dismiss_later() -> None:
            self._dismiss_now(label, completion)

        self.scheduler.call_later(delay, _dismiss_later, label=f"dismiss {label}")

    def _dismiss_now(self, label: str, completion: Optional[Callable[[], None]]) -> bool:
        ref = self._presented.pop(label, None)
        if ref is None:
            return False
        screen = ref.get()
        logger.info("%s dismissed", label)
        if completion is not None:
            completion()
        self.bus.publish(topics.SCREEN_DISMISSED, {"label": label}, source="presenter")
        ref.release()
        if not screen.destroyed:
            logger.info(
                "%s still alive after dismiss (strong count %d)",
                label,
                self.arena.strong_count(screen.handle),
            )
        return True

    def presented(self) -> List[str]:
        return list(self._presented)

    def dismiss_all(self) -> int:
        return sum(1 for label in list(self._presented) if self._dismiss_now(label, None))

    # -- async ----------------------------------------------------------
    def suspend(
        self,
        body: Callable[[Continuation], None],
        after: Optional[Callable[[Any], None]] = None,
        *,
        name: str,
    ) -> SuspendedTask:
        task = suspend(body, after, name=name)
        self.tasks.append(task)
        return task

    def suspended_tasks(self) -> List[str]:
        return [task.name for task in self.tasks if not task.reached_after.is_set()]

    # -- events ---------------------------------------------------------
    def post_clock_change(self) -> None:
        logger.info("posting system clock change")
        self.bus.publish(topics.SYSTEM_CLOCK_CHANGED, {"ts": time.time()}, source="system")

    def report(self) -> Dict[str, Any]:
        return {
            "live": self.arena.live_entities(),
            "leaked_cycles": self.arena.find_leaked_cycles(),
            "pending": self.scheduler.pending(),
            "presented": self.presented(),
            "suspended": self.suspended_tasks(),
        }
