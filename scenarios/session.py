from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from diagnostics.logging_setup import get_logger
from runtime_bus import topics

from .catalog import CATALOG, Catalog
from .context import ScenarioContext
from .types import ScenarioSpec

logger = get_logger("scenarios")


class ScenarioSession:
    """Binds catalog entries to one context as zero-argument triggers."""

    def __init__(self, ctx: ScenarioContext, catalog: Optional[Catalog] = None) -> None:
        self.ctx = ctx
        self.catalog = catalog or CATALOG
        self.history: List[str] = []

    def trigger(self, scenario_id: str) -> Callable[[], None]:
        spec = self.catalog.get(scenario_id)

        def _trigger() -> None:
            self._run(spec)

        return _trigger

    def run(self, scenario_id: str) -> None:
        self.trigger(scenario_id)()

    def entries(self) -> List[Tuple[str, str, Callable[[], None]]]:
        return [(spec.scenario_id, spec.title, self.trigger(spec.scenario_id)) for spec in self.catalog]

    def _run(self, spec: ScenarioSpec) -> None:
        page = self.catalog.page_for(spec.scenario_id)
        logger.info("== %s / %s ==", page.title, spec.title)
        self.history.append(spec.scenario_id)
        self.ctx.bus.publish(
            topics.SCENARIO_STARTED,
            {"scenario_id": spec.scenario_id, "page_id": page.page_id},
            source="session",
        )
        spec.run(self.ctx)

    def shutdown(self) -> None:
        self.ctx.scheduler.stop()
        cancelled = self.ctx.scheduler.cancel_all()
        if cancelled:
            logger.info("cancelled %d pending timer(s) on shutdown", cancelled)
