from __future__ import annotations

from typing import Optional

from diagnostics.logging_setup import get_logger
from lifetime_core.delegation import Publisher, Subscriber
from lifetime_core.scheduler import CancelBag, Scheduler

logger = get_logger("scenarios")


class SomeObject:
    def __init__(self) -> None:
        self.value = 0


class Screen(Subscriber):
    """Stand-in for a presented view controller.

    Timers and observers registered through ``bag`` are cancelled in
    ``deinit``, which only helps if the screen actually gets destroyed.
    """

    def __init__(self, title: str, number: int, scheduler: Optional[Scheduler] = None) -> None:
        super().__init__(f"{title}#{number}")
        self.title = title
        self.some_int = 0
        self.some_object = SomeObject()
        self.bag: Optional[CancelBag] = CancelBag(scheduler) if scheduler is not None else None

    def deinit(self) -> None:
        if self.bag is None:
            return
        cancelled = self.bag.dispose()
        if cancelled:
            logger.info("%s: cancelled %d timer(s)/observer(s) in deinit", self.label, cancelled)

    def perform_heavy_task(self) -> None:
        logger.info("Heavy task performed by %s", self.label)

    def handle_result(self, result: str, context: str) -> None:
        logger.info("Result (%s): %s", context, result)

    def print_message(self, context: str) -> None:
        logger.info("Closure executed (%s), %s still exists", context, self.label)

    def on_event(self, publisher: Publisher, event: str) -> None:
        super().on_event(publisher, event)
        logger.info("%s: received data update notification", self.label)


class DataManager(Publisher):
    def __init__(self, label: str = "StrongDataManager") -> None:
        super().__init__(label)
