"""Advanced Leak Test page: delegates and stream subscriptions."""

from __future__ import annotations

from diagnostics.logging_setup import get_logger
from lifetime_core.arena import RefKind
from lifetime_core.callables import make_callable
from lifetime_core.delegation import DelegateDemo, Ownership
from lifetime_core.scheduler import CancelBag

from .context import ScenarioContext
from .types import Demonstrates, PageSpec, ScenarioSpec

logger = get_logger("scenarios")

SCREEN = "AdvancedLeakTestScreen"


def _delegate(ctx: ScenarioContext, ownership: Ownership) -> None:
    # The demo's teardown is the dismissal, so the context does not track the screen.
    screen_ref = ctx.present(SCREEN, managed=False)
    demo = DelegateDemo(ctx.arena, screen_ref, publisher_label="StrongDataManager")
    manager_ref = demo.subscribe(ownership)
    demo.publish_event()
    manager_ref.release()
    logger.info("%s dismissed", demo.subscriber.label)
    demo.teardown()


def weak_delegate(ctx: ScenarioContext) -> None:
    logger.info("Testing Weak Delegate")
    _delegate(ctx, Ownership.NON_OWNING)


def strong_delegate(ctx: ScenarioContext) -> None:
    logger.info("Testing Strong Delegate")
    _delegate(ctx, Ownership.OWNING)


def interval_observable(ctx: ScenarioContext) -> None:
    logger.info("Testing Interval Observable")
    screen_ref = ctx.present(SCREEN)
    subscription = make_callable(
        screen_ref,
        RefKind.STRONG,
        lambda screen: logger.info("Interval event received by %s", screen.label),
        label="interval[onNext]",
    )
    try:
        token = ctx.scheduler.call_every(ctx.config.timer_interval_s, subscription)
    finally:
        subscription.release()
    # Disposed in deinit, which the subscription itself prevents.
    screen_ref.get().bag.add(token)
    ctx.dismiss(screen_ref)


def timer_publisher(ctx: ScenarioContext) -> None:
    logger.info("Testing Timer Publisher")
    screen_ref = ctx.present(SCREEN)
    sink = make_callable(
        screen_ref,
        RefKind.STRONG,
        lambda screen: logger.info("Timer publisher event received by %s", screen.label),
        label="timer[sink]",
    )
    # The cancellable goes into a local bag instead of the screen's own.
    local_bag = CancelBag(ctx.scheduler)
    try:
        local_bag.add(ctx.scheduler.call_every(ctx.config.timer_interval_s, sink))
    finally:
        sink.release()
    cancelled = local_bag.dispose()
    logger.info("Local cancellable bag went out of scope, %d subscription(s) cancelled", cancelled)
    ctx.dismiss(screen_ref)


PAGE = PageSpec(
    page_id="leaks.advanced",
    title="Advanced Leak Test",
    scenarios=(
        ScenarioSpec(
            "leaks.advanced.weak_delegate",
            "Weak Delegate",
            weak_delegate,
            Demonstrates.DELEGATE,
            "The manager points back weakly; both deinit on dismiss.",
        ),
        ScenarioSpec(
            "leaks.advanced.strong_delegate",
            "Strong Delegate",
            strong_delegate,
            Demonstrates.DELEGATE,
            "The manager owns its delegate: screen and manager leak together.",
        ),
        ScenarioSpec(
            "leaks.advanced.interval_observable",
            "Interval Observable",
            interval_observable,
            Demonstrates.CAPTURE_MODE,
            "An interval subscription owns the screen; the dispose bag never empties.",
        ),
        ScenarioSpec(
            "leaks.advanced.timer_publisher",
            "Timer Publisher",
            timer_publisher,
            Demonstrates.CAPTURE_MODE,
            "The subscription dies with its local bag, so nothing leaks.",
        ),
    ),
)
