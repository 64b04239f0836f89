"""Headless run of the scenario catalog on a manual clock."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from lifetime_core.scheduler import ManualClock

from .catalog import CATALOG
from .context import ScenarioContext
from .session import ScenarioSession

ISOLATED = {"usage.property.unowned_after_dismiss"}


def _print_tree() -> None:
    for section in CATALOG.sections:
        print(f"Section {section.section_id}: {section.title}")
        for page in section.pages:
            print(f"  Page {page.page_id}: {page.title}")
            for scenario in page.scenarios:
                print(f"    {scenario.scenario_id}: {scenario.title}")


def _settle(ctx: ScenarioContext, clock: ManualClock, seconds: float) -> None:
    steps = int(seconds * 4)
    for _ in range(steps):
        clock.advance(0.25)
        ctx.scheduler.run_due()
        ctx.scheduler.wait_idle(1.0)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run the closure lab scenarios without a UI.")
    parser.add_argument("scenarios", nargs="*", help="scenario ids (default: all)")
    parser.add_argument("--tree", action="store_true", help="only print the catalog")
    parser.add_argument("--with-probes", action="store_true", help="include child-process probes")
    parser.add_argument("--settle", type=float, default=4.0, help="simulated seconds after each scenario")
    args = parser.parse_args(argv)

    if args.tree:
        _print_tree()
        return 0

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    clock = ManualClock()
    ctx = ScenarioContext.create(clock=clock)
    session = ScenarioSession(ctx)
    ids = args.scenarios or [
        scenario_id
        for scenario_id in CATALOG.scenario_ids()
        if args.with_probes or scenario_id not in ISOLATED
    ]
    for scenario_id in ids:
        session.run(scenario_id)
        _settle(ctx, clock, args.settle)

    report = ctx.report()
    print("\nLive entities:")
    for row in report["live"]:
        print(f"  {row['label']} ({row['type']}) strong={row['strong']}")
    print(f"Leaked cycles: {', '.join(report['leaked_cycles']) or 'none'}")
    print(f"Suspended tasks: {', '.join(report['suspended']) or 'none'}")
    session.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
