"""Closure Capture List page: snapshot versus live capture, strong versus weak self."""

from __future__ import annotations

from diagnostics.logging_setup import get_logger
from lifetime_core.arena import RefKind
from lifetime_core.capture import demonstrate

from .context import ScenarioContext
from .types import Demonstrates, PageSpec, ScenarioSpec

logger = get_logger("scenarios")

SCREEN = "ClosureCaptureListScreen"


def value_type_capture(ctx: ScenarioContext) -> None:
    screen_ref = ctx.present(SCREEN)
    screen = screen_ref.get()
    screen.some_int = 0

    def closure_without_capture() -> None:
        logger.info("Without capture list - Current value: %s", screen.some_int)

    def closure_with_capture(some_int: int = screen.some_int) -> None:
        logger.info("With capture list - Captured value: %s", some_int)

    screen.some_int = 10
    closure_without_capture()
    closure_with_capture()
    ctx.dismiss(screen_ref)


def reference_type_capture(ctx: ScenarioContext) -> None:
    screen_ref = ctx.present(SCREEN)
    screen = screen_ref.get()
    screen.some_object.value = 0

    def closure_without_capture() -> None:
        logger.info("Without capture list - Current value: %s", screen.some_object.value)

    # The default binds the object, not its value, so later mutations show through.
    def closure_with_capture(some_object=screen.some_object) -> None:
        logger.info("With capture list - Captured value: %s", some_object.value)

    screen.some_object.value = 10
    closure_without_capture()
    closure_with_capture()
    ctx.dismiss(screen_ref)


def _stored_closure(ctx: ScenarioContext, mode: RefKind) -> None:
    screen_ref = ctx.present(SCREEN)
    demonstrate(screen_ref, mode, store_on_owner="stored_closure")
    logger.info("Dismissing %s, watch for deinit", screen_ref.get().label)
    ctx.dismiss(screen_ref)


def strong_reference(ctx: ScenarioContext) -> None:
    _stored_closure(ctx, RefKind.STRONG)


def weak_reference(ctx: ScenarioContext) -> None:
    _stored_closure(ctx, RefKind.WEAK)


PAGE = PageSpec(
    page_id="learning.capture_list",
    title="Closure Capture List",
    scenarios=(
        ScenarioSpec(
            "learning.capture_list.value_type",
            "Test Value Type Capture",
            value_type_capture,
            Demonstrates.CAPTURE_LIST,
            "A bound default freezes the value; a plain closure reads it live.",
        ),
        ScenarioSpec(
            "learning.capture_list.reference_type",
            "Test Reference Type Capture",
            reference_type_capture,
            Demonstrates.CAPTURE_LIST,
            "Binding a shared object still sees its mutations.",
        ),
        ScenarioSpec(
            "learning.capture_list.strong_reference",
            "Test Strong Reference",
            strong_reference,
            Demonstrates.CAPTURE_MODE,
            "Stored closure capturing its screen strongly: the screen never deinits.",
        ),
        ScenarioSpec(
            "learning.capture_list.weak_reference",
            "Test Weak Reference",
            weak_reference,
            Demonstrates.CAPTURE_MODE,
            "Stored closure capturing its screen weakly: deinit fires on dismiss.",
        ),
    ),
)
