from __future__ import annotations

from typing import Optional

from diagnostics.logging_setup import get_logger

from .arena import Entity, RefKind, StrongRef
from .callables import Body, DeferredCallable, make_callable
from .scheduler import MAIN, Scheduler, TimerToken

logger = get_logger("capture")


def bump_counter(owner: Entity) -> None:
    counter = owner.bump() if hasattr(owner, "bump") else None
    logger.info("%s is alive, counter=%s", owner.label, counter)


def demonstrate(
    owner: StrongRef,
    mode: RefKind | str,
    *,
    scheduler: Optional[Scheduler] = None,
    delay: Optional[float] = None,
    repeat: bool = False,
    store_on_owner: Optional[str] = None,
    executor: str = MAIN,
    body: Optional[Body] = None,
    label: Optional[str] = None,
    absent_message: Optional[str] = None,
) -> Optional[TimerToken]:
    """Build a callable capturing ``owner`` as ``mode`` and run or schedule it.

    Without a delay the callable runs right away. With a delay it goes to the
    scheduler, once or (``repeat``) every ``delay`` seconds. ``store_on_owner``
    names a field on the owner that keeps the callable too; together with a
    strong capture that is a retain cycle.
    """
    mode = RefKind(mode)
    callable_ref = make_callable(
        owner,
        mode,
        body or bump_counter,
        label=label,
        absent_message=absent_message,
    )
    entity: DeferredCallable = callable_ref.get()
    logger.info("%s created (%s capture)", entity.label, mode.value)
    try:
        if store_on_owner:
            owner.get().hold(store_on_owner, callable_ref.clone())
        if repeat or delay is not None:
            if scheduler is None:
                raise ValueError("a scheduler is required for delayed or repeating callables")
            if repeat:
                return scheduler.call_every(delay or 1.0, callable_ref, executor)
            return scheduler.call_later(delay, callable_ref, executor)
        entity.invoke()
        return None
    finally:
        callable_ref.release()
