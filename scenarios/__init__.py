"""Scenario catalog and the screens each scenario drives."""

from .catalog import CATALOG, Catalog, build_catalog
from .context import ScenarioContext
from .screens import DataManager, Screen
from .session import ScenarioSession
from .types import Demonstrates, PageSpec, ScenarioSpec, SectionSpec

__all__ = [
    "CATALOG",
    "Catalog",
    "build_catalog",
    "ScenarioContext",
    "DataManager",
    "Screen",
    "ScenarioSession",
    "Demonstrates",
    "PageSpec",
    "ScenarioSpec",
    "SectionSpec",
]
