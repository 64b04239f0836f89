"""Parameter Closure page: escaping and non-escaping completion handlers."""

from __future__ import annotations

from lifetime_core.arena import RefKind
from lifetime_core.capture import demonstrate
from lifetime_core.callables import make_callable

from .context import ScenarioContext
from .types import Demonstrates, PageSpec, ScenarioSpec

SCREEN = "ParameterClosureScreen"


def _handler(context: str, result: str):
    def _body(screen) -> None:
        screen.handle_result(result, context)

    return _body


def _escaping(ctx: ScenarioContext, mode: RefKind, context: str) -> None:
    screen_ref = ctx.present(SCREEN)
    demonstrate(
        screen_ref,
        mode,
        scheduler=ctx.scheduler,
        delay=ctx.config.escaping_task_delay_s,
        body=_handler(context, "Async Task Completed"),
        label=f"completion[{context}]",
        absent_message=f"Self is nil in {context} closure",
    )
    ctx.dismiss(screen_ref)


def _non_escaping(ctx: ScenarioContext, mode: RefKind, context: str) -> None:
    screen_ref = ctx.present(SCREEN)
    completion = make_callable(
        screen_ref,
        mode,
        _handler(context, "Sync Task Completed"),
        label=f"completion[{context}]",
        absent_message=f"Self is nil in {context} closure",
    )
    # Runs before the call returns, so the capture mode makes no difference.
    with completion as handler:
        handler.invoke()
    ctx.dismiss(screen_ref)


def escaping_weak(ctx: ScenarioContext) -> None:
    _escaping(ctx, RefKind.WEAK, "Escaping [weak self]")


def escaping_strong(ctx: ScenarioContext) -> None:
    _escaping(ctx, RefKind.STRONG, "Escaping strong self")


def non_escaping_weak(ctx: ScenarioContext) -> None:
    _non_escaping(ctx, RefKind.WEAK, "Non-Escaping [weak self]")


def non_escaping_strong(ctx: ScenarioContext) -> None:
    _non_escaping(ctx, RefKind.STRONG, "Non-Escaping strong self")


PAGE = PageSpec(
    page_id="usage.parameter",
    title="Parameter Closure",
    scenarios=(
        ScenarioSpec(
            "usage.parameter.escaping_weak",
            "Escaping [weak self]",
            escaping_weak,
            Demonstrates.CAPTURE_MODE,
            "The screen deinits on dismiss; the late completion finds it gone.",
        ),
        ScenarioSpec(
            "usage.parameter.escaping_strong",
            "Escaping strong self",
            escaping_strong,
            Demonstrates.CAPTURE_MODE,
            "The pending completion keeps the screen alive until it has run.",
        ),
        ScenarioSpec(
            "usage.parameter.non_escaping_weak",
            "Non-Escaping [weak self]",
            non_escaping_weak,
            Demonstrates.CAPTURE_MODE,
        ),
        ScenarioSpec(
            "usage.parameter.non_escaping_strong",
            "Non-Escaping strong self",
            non_escaping_strong,
            Demonstrates.CAPTURE_MODE,
        ),
    ),
)
