from __future__ import annotations

import threading
import weakref
from enum import Enum
from typing import Any, Callable, Optional

from diagnostics.logging_setup import get_logger

from .arena import LifetimeError

logger = get_logger("continuation")


class ContinuationState(str, Enum):
    SUSPENDED = "suspended"
    RESUMED = "resumed"


class ContinuationMisuseError(LifetimeError):
    pass


class Completion:
    """Read side of a continuation. Waiting on it does not keep the token alive."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._event = threading.Event()
        self._lock = threading.Lock()
        self.state = ContinuationState.SUSPENDED
        self.value: Any = None

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    @property
    def is_resumed(self) -> bool:
        return self._event.is_set()

    def _signal(self, value: Any) -> None:
        with self._lock:
            if self.state is ContinuationState.RESUMED:
                raise ContinuationMisuseError(f"continuation {self.name} resumed more than once")
            self.state = ContinuationState.RESUMED
            self.value = value
        self._event.set()


def _report_leak(completion: Completion) -> None:
    if not completion.is_resumed:
        logger.warning(
            "continuation %s leaked: released without being resumed, its task stays suspended",
            completion.name,
        )


class Continuation:
    """One-shot resumption token.

    ``resume`` may be called once; a second call raises
    ``ContinuationMisuseError``. Dropping the last reference to a token that
    was never resumed logs a leak warning.
    """

    def __init__(self, name: str = "continuation") -> None:
        self.name = name
        self.completion = Completion(name)
        self._finalizer = weakref.finalize(self, _report_leak, self.completion)

    @property
    def state(self) -> ContinuationState:
        return self.completion.state

    @property
    def is_resumed(self) -> bool:
        return self.completion.is_resumed

    @property
    def value(self) -> Any:
        return self.completion.value

    def resume(self, value: Any = None) -> None:
        self.completion._signal(value)
        self._finalizer.detach()
        logger.debug("continuation %s resumed", self.name)

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self.completion.wait(timeout)

    def __repr__(self) -> str:
        return f"<Continuation {self.name} {self.state.value}>"


class SuspendedTask:
    """A computation that suspends on a continuation, then runs ``after``.

    ``reached_after`` is set once the post-suspension statement has run. If
    the continuation is never resumed the worker thread stays parked forever.
    """

    def __init__(
        self,
        name: str,
        body: Callable[[Continuation], None],
        after: Optional[Callable[[Any], None]] = None,
    ) -> None:
        self.name = name
        self.body = body
        self.after = after
        self.reached_after = threading.Event()
        self.completion: Optional[Completion] = None
        self._started = threading.Event()
        self._thread = threading.Thread(target=self._run, name=f"suspended-{name}", daemon=True)

    @property
    def state(self) -> ContinuationState:
        if self.completion is None:
            return ContinuationState.SUSPENDED
        return self.completion.state

    def start(self) -> "SuspendedTask":
        self._thread.start()
        self._started.wait()
        return self

    def join(self, timeout: Optional[float] = None) -> bool:
        return self.reached_after.wait(timeout)

    def _run(self) -> None:
        continuation = Continuation(self.name)
        completion = continuation.completion
        self.completion = completion
        try:
            self.body(continuation)
        finally:
            del continuation
            self._started.set()
        completion.wait()
        if self.after is not None:
            try:
                self.after(completion.value)
            except Exception as exc:
                logger.error("suspended task %s failed after resume: %s", self.name, exc)
        self.reached_after.set()


def suspend(
    body: Callable[[Continuation], None],
    after: Optional[Callable[[Any], None]] = None,
    *,
    name: str = "task",
) -> SuspendedTask:
    return SuspendedTask(name, body, after).start()
