"""Property Closure page: completion handlers stored on the screen."""

from __future__ import annotations

from pathlib import Path

from diagnostics.logging_setup import get_logger
from lifetime_core.arena import RefKind
from lifetime_core.callables import make_callable
from lifetime_core.crash_probe import run_isolated

from .context import ScenarioContext
from .types import Demonstrates, PageSpec, ScenarioSpec

logger = get_logger("scenarios")

SCREEN = "PropertyClosureScreen"
CRASH_DATA_DIR = Path("data/roaming")


def _stored_handler(ctx: ScenarioContext, mode: RefKind, field_name: str, context: str) -> None:
    screen_ref = ctx.present(SCREEN)
    screen = screen_ref.get()
    handler = make_callable(
        screen_ref,
        mode,
        lambda target: target.print_message(context),
        label=f"{field_name}[{context}]",
    )
    screen.hold(field_name, handler)

    def _on_dismissed() -> None:
        stored = screen.held(field_name)
        if stored is not None:
            stored.get().invoke()

    ctx.dismiss(screen_ref, completion=_on_dismissed)


def weak_handler(ctx: ScenarioContext) -> None:
    _stored_handler(ctx, RefKind.WEAK, "weak_completion_handler", "Global Closure [weak self]")


def strong_handler(ctx: ScenarioContext) -> None:
    _stored_handler(ctx, RefKind.STRONG, "strong_completion_handler", "Global Closure [strong self]")


def unowned_handler(ctx: ScenarioContext) -> None:
    _stored_handler(ctx, RefKind.UNOWNED, "unowned_completion_handler", "Global Closure [unowned self]")


def unowned_after_dismiss(ctx: ScenarioContext) -> None:
    """Calls an unowned handler after its screen is gone, in a child process."""

    def _probe() -> None:
        result = run_isolated("unowned_after_release", data_dir=CRASH_DATA_DIR.resolve())
        if result.crashed:
            last = result.stderr.strip().splitlines()[-1:] or ["<no output>"]
            logger.info("unowned access after dismiss crashed the probe process: %s", last[0])
        else:
            logger.warning("unowned probe unexpectedly exited cleanly")

    logger.info("Running unowned-after-dismiss in an isolated process")
    ctx.scheduler.call_later(0, _probe, "background", label="unowned crash probe")


PAGE = PageSpec(
    page_id="usage.property",
    title="Property Closure",
    scenarios=(
        ScenarioSpec(
            "usage.property.weak",
            "Test Global Closure [weak self]",
            weak_handler,
            Demonstrates.CAPTURE_MODE,
        ),
        ScenarioSpec(
            "usage.property.strong",
            "Test Global Closure [strong self]",
            strong_handler,
            Demonstrates.CAPTURE_MODE,
            "The stored handler owns the screen that owns it: a retain cycle.",
        ),
        ScenarioSpec(
            "usage.property.unowned",
            "Test Global Closure [unowned self]",
            unowned_handler,
            Demonstrates.CAPTURE_MODE,
            "The handler runs while the screen is still alive, so unowned is fine here.",
        ),
        ScenarioSpec(
            "usage.property.unowned_after_dismiss",
            "Unowned self after dismiss (isolated)",
            unowned_after_dismiss,
            Demonstrates.CAPTURE_MODE,
            "Dereferencing an unowned capture after deinit is fatal; shown in a child process.",
        ),
    ),
)
