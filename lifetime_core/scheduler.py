from __future__ import annotations

import heapq
import itertools
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

from diagnostics.logging_setup import get_logger
from runtime_bus import MessageEnvelope, RuntimeBus

from .arena import LifetimeError, StrongRef

logger = get_logger("scheduler")

Task = Union[StrongRef, Callable[[], object]]
Dispatch = Callable[[Callable[[], None]], None]

MAIN = "main"
BACKGROUND = "background"


class ManualClock:
    """Clock for tests: time only moves when ``advance`` is called."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    def __call__(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        self._now += float(seconds)
        return self._now


@dataclass(frozen=True)
class TimerToken:
    token_id: str
    kind: str
    label: str


@dataclass
class _Timer:
    token: TimerToken
    due: float
    task: Task
    executor: str
    interval: Optional[float] = None


def _inline(thunk: Callable[[], None]) -> None:
    thunk()


class Scheduler:
    """Delayed, repeating and event-driven callbacks.

    The scheduler keeps an owning reference to every callable it has pending.
    A one-shot timer gives it up after firing; repeating timers and event
    registrations keep it until ``cancel``.
    """

    def __init__(
        self,
        *,
        bus: Optional[RuntimeBus] = None,
        clock: Callable[[], float] = time.monotonic,
        main_dispatch: Optional[Dispatch] = None,
        time_scale: float = 1.0,
    ) -> None:
        if time_scale <= 0:
            raise ValueError("time_scale must be positive")
        self.bus = bus
        self.clock = clock
        self.time_scale = float(time_scale)
        self._main_dispatch = main_dispatch or _inline
        self._lock = threading.RLock()
        self._cond = threading.Condition(self._lock)
        self._heap: List[Tuple[float, int, str]] = []
        self._seq = itertools.count()
        self._timers: Dict[str, _Timer] = {}
        self._events: Dict[str, Tuple[str, StrongRef | Callable[[], object], TimerToken, str]] = {}
        self._workers: List[threading.Thread] = []
        self._thread: Optional[threading.Thread] = None
        self._running = False

    def set_main_dispatch(self, dispatch: Optional[Dispatch]) -> None:
        self._main_dispatch = dispatch or _inline

    # -- scheduling -----------------------------------------------------
    def call_later(
        self,
        delay: float,
        task: Task,
        executor: str = MAIN,
        *,
        label: Optional[str] = None,
    ) -> TimerToken:
        return self._add_timer(delay, task, executor, label, interval=None)

    def call_every(
        self,
        interval: float,
        task: Task,
        executor: str = MAIN,
        *,
        label: Optional[str] = None,
    ) -> TimerToken:
        if interval <= 0:
            raise ValueError("interval must be positive")
        return self._add_timer(interval, task, executor, label, interval=interval)

    def on_event(
        self,
        topic: str,
        task: Task,
        executor: str = MAIN,
        *,
        label: Optional[str] = None,
    ) -> TimerToken:
        if self.bus is None:
            raise RuntimeError("scheduler has no bus to register events on")
        owned, name = self._adopt(task, label)
        token = TimerToken(str(uuid.uuid4()), "event", name)

        def _on_envelope(envelope: MessageEnvelope) -> None:
            run_task = self._run_ref(token.token_id)
            if run_task is None:
                return
            logger.debug("event %s -> %s", envelope.topic, name)
            self._dispatch(run_task, executor, name)

        sub_id = self.bus.subscribe(topic, _on_envelope)
        with self._lock:
            self._events[token.token_id] = (sub_id, owned, token, topic)
        return token

    def cancel(self, token: TimerToken) -> bool:
        with self._cond:
            timer = self._timers.pop(token.token_id, None)
            event = self._events.pop(token.token_id, None)
            self._cond.notify_all()
        if timer is not None:
            self._release(timer.task)
            logger.debug("cancelled timer %s", token.label)
            return True
        if event is not None:
            sub_id, owned, _token, _topic = event
            if self.bus is not None:
                self.bus.unsubscribe(sub_id)
            self._release(owned)
            logger.debug("removed observer %s", token.label)
            return True
        return False

    def cancel_all(self) -> int:
        with self._lock:
            tokens = [timer.token for timer in self._timers.values()]
            tokens.extend(entry[2] for entry in self._events.values())
        return sum(1 for token in tokens if self.cancel(token))

    # -- execution ------------------------------------------------------
    def run_due(self, now: Optional[float] = None) -> int:
        current = self.clock() if now is None else now
        fired: List[Tuple[Task, str, str]] = []
        with self._lock:
            while self._heap and self._heap[0][0] <= current:
                due, _seq, token_id = heapq.heappop(self._heap)
                timer = self._timers.get(token_id)
                if timer is None or timer.due != due:
                    continue
                if timer.interval is None:
                    self._timers.pop(token_id, None)
                    fired.append((timer.task, timer.executor, timer.token.label))
                    continue
                fired.append((self._clone(timer.task), timer.executor, timer.token.label))
                timer.due = due + timer.interval * self.time_scale
                heapq.heappush(self._heap, (timer.due, next(self._seq), token_id))
        fatal: Optional[BaseException] = None
        started = 0
        try:
            for task, executor, label in fired:
                started += 1
                try:
                    self._dispatch(task, executor, label)
                except Exception as exc:
                    if not getattr(exc, "fatal", False):
                        raise
                    if fatal is None:
                        fatal = exc
        finally:
            # Tasks that were popped but never handed to an executor.
            for task, _executor, _label in fired[started:]:
                self._release(task)
        if fatal is not None:
            raise fatal
        return len(fired)

    def next_due_in(self) -> Optional[float]:
        with self._lock:
            self._prune()
            if not self._heap:
                return None
            return max(0.0, self._heap[0][0] - self.clock())

    def pending(self) -> List[Dict[str, object]]:
        now = self.clock()
        with self._lock:
            rows: List[Dict[str, object]] = [
                {
                    "token": timer.token.token_id,
                    "kind": timer.token.kind,
                    "label": timer.token.label,
                    "due_in": round(max(0.0, timer.due - now), 3),
                    "executor": timer.executor,
                }
                for timer in self._timers.values()
            ]
            rows.extend(
                {
                    "token": token.token_id,
                    "kind": token.kind,
                    "label": token.label,
                    "topic": topic,
                }
                for _sub, _owned, token, topic in self._events.values()
            )
        return rows

    def start(self) -> None:
        with self._cond:
            if self._thread is not None:
                return
            self._running = True
            self._thread = threading.Thread(target=self._loop, name="scheduler-loop", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        with self._cond:
            self._running = False
            thread = self._thread
            self._thread = None
            self._cond.notify_all()
        if thread is not None:
            thread.join(timeout)

    def wait_idle(self, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        with self._lock:
            workers = list(self._workers)
        for worker in workers:
            worker.join(max(0.0, deadline - time.monotonic()))
        with self._lock:
            self._workers = [w for w in self._workers if w.is_alive()]
            return not self._workers

    # -- internals ------------------------------------------------------
    def _add_timer(
        self,
        delay: float,
        task: Task,
        executor: str,
        label: Optional[str],
        *,
        interval: Optional[float],
    ) -> TimerToken:
        if executor not in (MAIN, BACKGROUND):
            raise ValueError(f"unknown executor: {executor}")
        owned, name = self._adopt(task, label)
        kind = "once" if interval is None else "repeat"
        token = TimerToken(str(uuid.uuid4()), kind, name)
        due = self.clock() + max(0.0, float(delay)) * self.time_scale
        with self._cond:
            self._timers[token.token_id] = _Timer(token, due, owned, executor, interval)
            heapq.heappush(self._heap, (due, next(self._seq), token.token_id))
            self._cond.notify_all()
        return token

    def _adopt(self, task: Task, label: Optional[str]) -> Tuple[Task, str]:
        if isinstance(task, StrongRef):
            return task.clone(), label or task.get().label
        if not callable(task):
            raise TypeError("task must be a StrongRef to a callable entity or a callable")
        return task, label or getattr(task, "__name__", "callback")

    def _run_ref(self, token_id: str) -> Optional[Task]:
        with self._lock:
            entry = self._events.get(token_id)
            if entry is None:
                return None
            return self._clone(entry[1])

    @staticmethod
    def _clone(task: Task) -> Task:
        if isinstance(task, StrongRef):
            return task.clone()
        return task

    @staticmethod
    def _release(task: Task) -> None:
        if isinstance(task, StrongRef):
            task.release()

    def _dispatch(self, task: Task, executor: str, label: str) -> None:
        def _thunk() -> None:
            self._execute(task, label)

        if executor == BACKGROUND:
            worker = threading.Thread(target=_thunk, name=f"scheduler-{label}", daemon=True)
            with self._lock:
                self._workers = [w for w in self._workers if w.is_alive()]
                self._workers.append(worker)
            worker.start()
        else:
            self._main_dispatch(_thunk)

    def _execute(self, task: Task, label: str) -> None:
        try:
            if isinstance(task, StrongRef):
                task.get().invoke()
            else:
                task()
        except LifetimeError as exc:
            if exc.fatal:
                logger.critical("fatal contract violation in %s: %s", label, exc)
                raise
            logger.error("scheduled task %s failed: %s", label, exc)
        except Exception as exc:
            logger.error("scheduled task %s failed: %s", label, exc)
        finally:
            self._release(task)

    def _prune(self) -> None:
        while self._heap:
            due, _seq, token_id = self._heap[0]
            timer = self._timers.get(token_id)
            if timer is not None and timer.due == due:
                return
            heapq.heappop(self._heap)

    def _loop(self) -> None:
        while True:
            with self._cond:
                if not self._running:
                    return
                self._prune()
                wait = None
                if self._heap:
                    wait = self._heap[0][0] - self.clock()
                if wait is None or wait > 0:
                    self._cond.wait(timeout=0.5 if wait is None else min(wait, 0.5))
                if not self._running:
                    return
            self.run_due()


class CancelBag:
    """Tokens cancelled together, like a dispose bag."""

    def __init__(self, scheduler: Scheduler) -> None:
        self.scheduler = scheduler
        self._tokens: List[TimerToken] = []

    def add(self, token: TimerToken) -> TimerToken:
        self._tokens.append(token)
        return token

    def dispose(self) -> int:
        tokens, self._tokens = self._tokens, []
        return sum(1 for token in tokens if self.scheduler.cancel(token))

    def __len__(self) -> int:
        return len(self._tokens)
