"""Dispatch Queue Closure page: work queued on main, global and custom queues."""

from __future__ import annotations

from diagnostics.logging_setup import get_logger
from lifetime_core.arena import RefKind
from lifetime_core.callables import make_callable
from lifetime_core.capture import demonstrate
from lifetime_core.scheduler import BACKGROUND, MAIN

from .context import ScenarioContext
from .types import Demonstrates, PageSpec, ScenarioSpec

logger = get_logger("scenarios")

SCREEN = "DispatchQueueClosureScreen"

# queue name -> executor
_QUEUES = (("main", MAIN), ("global", BACKGROUND), ("custom", BACKGROUND))


def _queue_message(queue: str):
    def _body(screen) -> None:
        logger.info("DispatchQueue (%s) task executed, %s still exists", queue, screen.label)

    return _body


def _queued(ctx: ScenarioContext, mode: RefKind) -> None:
    logger.info("Starting DispatchQueue test with [%s self]", mode.value)
    screen_ref = ctx.present(SCREEN)
    for queue, executor in _QUEUES:
        demonstrate(
            screen_ref,
            mode,
            scheduler=ctx.scheduler,
            delay=ctx.config.dispatch_delay(queue),
            executor=executor,
            body=_queue_message(queue),
            label=f"{queue}-queue[{mode.value}]",
        )
    ctx.dismiss(screen_ref)


def weak_self(ctx: ScenarioContext) -> None:
    _queued(ctx, RefKind.WEAK)


def strong_self(ctx: ScenarioContext) -> None:
    _queued(ctx, RefKind.STRONG)


def property_closure(ctx: ScenarioContext) -> None:
    logger.info("Starting DispatchQueue test with property closure (potential leak)")
    screen_ref = ctx.present(SCREEN)
    screen = screen_ref.get()
    screen.hold(
        "property_closure",
        make_callable(screen_ref, RefKind.STRONG, _queue_message("property"), label="property_closure"),
    )

    def _call_property_closure(target) -> None:
        stored = target.held("property_closure")
        if stored is not None:
            stored.get().invoke()

    demonstrate(
        screen_ref,
        RefKind.STRONG,
        scheduler=ctx.scheduler,
        delay=ctx.config.dispatch_delay("property"),
        executor=BACKGROUND,
        body=_call_property_closure,
        label="custom-queue[property]",
    )
    ctx.dismiss(screen_ref)


PAGE = PageSpec(
    page_id="usage.dispatch",
    title="DispatchQueue Closure",
    scenarios=(
        ScenarioSpec(
            "usage.dispatch.weak",
            "Test DispatchQueue [weak self]",
            weak_self,
            Demonstrates.CAPTURE_MODE,
            "Every queued block finds the screen already gone.",
        ),
        ScenarioSpec(
            "usage.dispatch.strong",
            "Test DispatchQueue [strong self]",
            strong_self,
            Demonstrates.CAPTURE_MODE,
            "The screen lives until the last queued block has run, then deinits.",
        ),
        ScenarioSpec(
            "usage.dispatch.property",
            "Test Property Closure (Potential Leak)",
            property_closure,
            Demonstrates.CAPTURE_MODE,
            "The stored property closure keeps the screen alive for good.",
        ),
    ),
)
