from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Tuple

if TYPE_CHECKING:  # pragma: no cover
    from .context import ScenarioContext


class Demonstrates(str, Enum):
    CAPTURE_LIST = "capture_list"
    CAPTURE_MODE = "capture_mode"
    CONTINUATION = "continuation"
    DELEGATE = "delegate"
    EVENT = "event"


@dataclass(frozen=True)
class ScenarioSpec:
    scenario_id: str
    title: str
    run: Callable[["ScenarioContext"], None]
    demonstrates: Demonstrates
    summary: str = ""


@dataclass(frozen=True)
class PageSpec:
    page_id: str
    title: str
    scenarios: Tuple[ScenarioSpec, ...]


@dataclass(frozen=True)
class SectionSpec:
    section_id: str
    title: str
    pages: Tuple[PageSpec, ...]
