"""Reference lifetimes, deferred callables, scheduling and continuations."""

from .arena import (
    Arena,
    Entity,
    Handle,
    LifetimeError,
    Owner,
    RefKind,
    StaleHandleError,
    StrongRef,
    UnownedAccessError,
    UnownedRef,
    WeakRef,
)
from .callables import DeferredCallable, Outcome, make_callable
from .capture import demonstrate
from .continuation import Continuation, ContinuationMisuseError, ContinuationState, SuspendedTask, suspend
from .delegation import DelegateDemo, Ownership, Publisher, Subscriber
from .scheduler import BACKGROUND, MAIN, CancelBag, ManualClock, Scheduler, TimerToken

__all__ = [
    "Arena",
    "Entity",
    "Handle",
    "LifetimeError",
    "Owner",
    "RefKind",
    "StaleHandleError",
    "StrongRef",
    "UnownedAccessError",
    "UnownedRef",
    "WeakRef",
    "DeferredCallable",
    "Outcome",
    "make_callable",
    "demonstrate",
    "Continuation",
    "ContinuationMisuseError",
    "ContinuationState",
    "SuspendedTask",
    "suspend",
    "DelegateDemo",
    "Ownership",
    "Publisher",
    "Subscriber",
    "BACKGROUND",
    "MAIN",
    "CancelBag",
    "ManualClock",
    "Scheduler",
    "TimerToken",
]
