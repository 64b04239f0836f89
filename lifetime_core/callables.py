from __future__ import annotations

from enum import Enum
from typing import Callable, Optional, Union

from diagnostics.logging_setup import get_logger

from .arena import Entity, RefKind, StrongRef, UnownedRef, WeakRef

logger = get_logger("callables")

Capture = Union[StrongRef, WeakRef, UnownedRef]
Body = Callable[[Entity], object]


class Outcome(str, Enum):
    EXECUTED = "executed"
    ABSENT = "absent"


class DeferredCallable(Entity):
    """A closure together with the way it captured its owner.

    A strong capture is stored as an owned field, so the owner stays alive
    for as long as the callable does. Weak and unowned captures are plain
    attributes and do not count.
    """

    def __init__(
        self,
        label: str,
        capture: Capture,
        body: Body,
        *,
        absent_message: Optional[str] = None,
    ) -> None:
        super().__init__(label)
        self.mode = capture.kind
        self.body = body
        self.absent_message = absent_message
        self.invocations = 0
        self.last_outcome: Optional[Outcome] = None
        if isinstance(capture, StrongRef):
            self.hold("capture", capture)
            self._capture: Optional[Capture] = None
        else:
            self._capture = capture

    @property
    def capture(self) -> Optional[Capture]:
        if self.mode is RefKind.STRONG:
            return self.held("capture")
        return self._capture

    def invoke(self) -> Outcome:
        self.invocations += 1
        if self.mode is RefKind.STRONG:
            target = self.held("capture").get()
            self.body(target)
            outcome = Outcome.EXECUTED
        elif self.mode is RefKind.WEAK:
            guard = self._capture.upgrade()
            if guard is None:
                if self.absent_message:
                    logger.info("%s", self.absent_message)
                else:
                    logger.info("%s: captured owner is gone, skipping", self.label)
                outcome = Outcome.ABSENT
            else:
                with guard as target:
                    self.body(target)
                outcome = Outcome.EXECUTED
        else:
            target = self._capture.get()
            self.body(target)
            outcome = Outcome.EXECUTED
        self.last_outcome = outcome
        return outcome


def make_callable(
    owner: StrongRef,
    mode: RefKind | str,
    body: Body,
    *,
    label: Optional[str] = None,
    absent_message: Optional[str] = None,
) -> StrongRef[DeferredCallable]:
    """Capture ``owner`` as ``mode`` and place the resulting callable in its arena."""
    mode = RefKind(mode)
    if mode is RefKind.STRONG:
        capture: Capture = owner.clone()
    elif mode is RefKind.WEAK:
        capture = owner.downgrade()
    else:
        capture = owner.unowned()
    owner_label = owner.get().label
    name = label or f"closure[{mode.value} {owner_label}]"
    try:
        return owner.arena.spawn(
            DeferredCallable(name, capture, body, absent_message=absent_message)
        )
    except Exception:
        if isinstance(capture, StrongRef):
            capture.release()
        raise
