from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, List, Mapping, Tuple

from . import (
    advanced_leak,
    async_closure,
    capture_list,
    dispatch_closure,
    leak_test,
    parameter_closure,
    property_closure,
)
from .types import PageSpec, ScenarioSpec, SectionSpec


@dataclass(frozen=True)
class Catalog:
    """Ordered, immutable sections -> pages -> scenarios."""

    sections: Tuple[SectionSpec, ...]
    _scenarios: Mapping[str, Tuple[PageSpec, ScenarioSpec]] = field(init=False, repr=False, compare=False)
    _pages: Mapping[str, PageSpec] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        scenarios = {}
        pages = {}
        for section in self.sections:
            for page in section.pages:
                if page.page_id in pages:
                    raise ValueError(f"duplicate page id: {page.page_id}")
                pages[page.page_id] = page
                for scenario in page.scenarios:
                    if scenario.scenario_id in scenarios:
                        raise ValueError(f"duplicate scenario id: {scenario.scenario_id}")
                    if not callable(scenario.run):
                        raise ValueError(f"scenario {scenario.scenario_id} has no trigger")
                    scenarios[scenario.scenario_id] = (page, scenario)
        object.__setattr__(self, "_scenarios", MappingProxyType(scenarios))
        object.__setattr__(self, "_pages", MappingProxyType(pages))

    def get(self, scenario_id: str) -> ScenarioSpec:
        try:
            return self._scenarios[scenario_id][1]
        except KeyError:
            raise KeyError(f"unknown scenario: {scenario_id}") from None

    def page(self, page_id: str) -> PageSpec:
        try:
            return self._pages[page_id]
        except KeyError:
            raise KeyError(f"unknown page: {page_id}") from None

    def page_for(self, scenario_id: str) -> PageSpec:
        self.get(scenario_id)
        return self._scenarios[scenario_id][0]

    def scenario_ids(self) -> List[str]:
        return list(self._scenarios)

    def __iter__(self) -> Iterator[ScenarioSpec]:
        for _page, scenario in self._scenarios.values():
            yield scenario

    def __len__(self) -> int:
        return len(self._scenarios)


def build_catalog() -> Catalog:
    return Catalog(
        sections=(
            SectionSpec("learning", "Closure Learning", (capture_list.PAGE,)),
            SectionSpec(
                "usage",
                "Closure Usage Cases",
                (
                    parameter_closure.PAGE,
                    property_closure.PAGE,
                    dispatch_closure.PAGE,
                    async_closure.PAGE,
                ),
            ),
            SectionSpec("leaks", "Leak Scenarios", (leak_test.PAGE, advanced_leak.PAGE)),
        )
    )


CATALOG = build_catalog()
