"""Async Closure page: a suspended task that is, or is never, resumed."""

from __future__ import annotations

from diagnostics.logging_setup import get_logger
from lifetime_core.continuation import Continuation
from lifetime_core.scheduler import BACKGROUND

from .context import ScenarioContext
from .types import Demonstrates, PageSpec, ScenarioSpec

logger = get_logger("scenarios")

SCREEN = "AsyncClosureScreen"


def perform_safe(ctx: ScenarioContext) -> None:
    logger.info("Testing Safe Async Operation")
    screen_ref = ctx.present(SCREEN)
    # The task owns the screen until it finishes.
    task_hold = screen_ref.clone()
    label = task_hold.get().label

    def _body(continuation: Continuation) -> None:
        def _complete() -> None:
            logger.info("Safe async operation completed")
            continuation.resume()

        ctx.scheduler.call_later(ctx.config.async_delay_s, _complete, BACKGROUND, label="safe async operation")

    def _after(_value) -> None:
        logger.info("After safe async operation")
        ctx.dismiss(task_hold)
        task_hold.release()

    ctx.suspend(_body, _after, name=f"safe-async {label}")


def perform_leaky(ctx: ScenarioContext) -> None:
    logger.info("Testing Leaky Async Operation")
    screen_ref = ctx.present(SCREEN)
    task_hold = screen_ref.clone()
    label = task_hold.get().label

    def _body(_continuation: Continuation) -> None:
        def _complete() -> None:
            logger.info("Leaky async operation completed")

        ctx.scheduler.call_later(ctx.config.async_delay_s, _complete, BACKGROUND, label="leaky async operation")

    def _after(_value) -> None:
        logger.info("This line will never be reached")
        ctx.dismiss(task_hold)
        task_hold.release()

    ctx.suspend(_body, _after, name=f"leaky-async {label}")
    # The user closes the screen; the parked task still owns it.
    ctx.dismiss(screen_ref, delay=ctx.config.dismiss_delay_s)


PAGE = PageSpec(
    page_id="usage.async",
    title="Async Closure",
    scenarios=(
        ScenarioSpec(
            "usage.async.safe",
            "Safe Async Operation",
            perform_safe,
            Demonstrates.CONTINUATION,
            "The continuation is resumed; the task finishes and releases the screen.",
        ),
        ScenarioSpec(
            "usage.async.leaky",
            "Leaky Async Operation",
            perform_leaky,
            Demonstrates.CONTINUATION,
            "The continuation is never resumed; the task and its screen stay forever.",
        ),
    ),
)
