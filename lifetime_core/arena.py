"""Reference-counted entity arena.

Entities live in slots addressed by ``Handle(index, generation)``. A slot's
generation is bumped when its entity is destroyed, so handles taken before
the destruction stop matching. Three reference kinds sit on top:

* ``StrongRef`` owns one unit of the strong count.
* ``WeakRef`` checks the generation before every access and yields ``None``
  once the entity is gone.
* ``UnownedRef`` skips the check. A vacant slot raises ``UnownedAccessError``;
  a reused slot silently hands back whichever entity lives there now.

Counting is purely deterministic: there is no tracing collector, so a cycle
of strong references is never reclaimed. ``Arena.collect`` only reports such
cycles.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Dict, Generic, List, Optional, TypeVar

from diagnostics.logging_setup import get_logger
from runtime_bus import RuntimeBus, topics

logger = get_logger("arena")

E = TypeVar("E", bound="Entity")


class RefKind(str, Enum):
    STRONG = "strong"
    WEAK = "weak"
    UNOWNED = "unowned"


class LifetimeError(Exception):
    fatal = False


class StaleHandleError(LifetimeError):
    pass


class UnownedAccessError(LifetimeError):
    """Dereference of an unowned reference whose target was destroyed.

    This is a contract violation, not a recoverable condition.
    """

    fatal = True


@dataclass(frozen=True, slots=True)
class Handle:
    index: int
    generation: int

    def __str__(self) -> str:
        return f"{self.index}v{self.generation}"


@dataclass(slots=True)
class _Slot:
    generation: int = 0
    entity: Optional["Entity"] = None
    strong: int = 0


class Entity:
    """Base for anything whose lifetime the arena governs.

    Owning references an entity keeps are stored through ``hold`` so that
    they are released when the entity is destroyed, and so that the arena can
    see them when looking for cycles.
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self.arena: Optional[Arena] = None
        self.handle: Optional[Handle] = None
        self.destroyed = False
        self._fields: Dict[str, StrongRef] = {}

    def hold(self, name: str, ref: "StrongRef") -> None:
        previous = self._fields.get(name)
        self._fields[name] = ref
        if previous is not None and previous is not ref:
            previous.release()

    def drop(self, name: str) -> None:
        ref = self._fields.pop(name, None)
        if ref is not None:
            ref.release()

    def held(self, name: str) -> Optional["StrongRef"]:
        return self._fields.get(name)

    def held_refs(self) -> List["StrongRef"]:
        return list(self._fields.values())

    def deinit(self) -> None:
        """Hook run once, before the entity's owned references are released."""

    def _teardown(self) -> None:
        self.deinit()
        fields = list(self._fields.values())
        self._fields.clear()
        for ref in fields:
            ref.release()

    def __repr__(self) -> str:
        state = "destroyed" if self.destroyed else str(self.handle)
        return f"<{type(self).__name__} {self.label} {state}>"


class Owner(Entity):
    """A mutable entity with a counter field."""

    def __init__(self, label: str, counter: int = 0) -> None:
        super().__init__(label)
        self.counter = counter

    def bump(self) -> int:
        self.counter += 1
        return self.counter


class Ref(Generic[E]):
    kind: RefKind

    def __init__(self, arena: "Arena", handle: Handle) -> None:
        self.arena = arena
        self.handle = handle

    def is_alive(self) -> bool:
        return self.arena.is_alive(self.handle)

    def get(self) -> Optional[E]:  # pragma: no cover - interface
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.handle}>"


class StrongRef(Ref[E]):
    kind = RefKind.STRONG

    def __init__(self, arena: "Arena", handle: Handle) -> None:
        super().__init__(arena, handle)
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def get(self) -> E:
        if self._released:
            raise StaleHandleError(f"strong reference {self.handle} used after release")
        entity = self.arena.get(self.handle)
        if entity is None:
            raise StaleHandleError(f"strong reference {self.handle} points at a vacant slot")
        return entity

    def clone(self) -> "StrongRef[E]":
        if self._released:
            raise StaleHandleError(f"cannot clone released reference {self.handle}")
        self.arena.retain(self.handle)
        return StrongRef(self.arena, self.handle)

    def downgrade(self) -> "WeakRef[E]":
        return WeakRef(self.arena, self.handle)

    def unowned(self) -> "UnownedRef[E]":
        return UnownedRef(self.arena, self.handle)

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self.arena.release(self.handle)

    def __enter__(self) -> E:
        return self.get()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class WeakRef(Ref[E]):
    kind = RefKind.WEAK

    def get(self) -> Optional[E]:
        return self.arena.get(self.handle)

    def upgrade(self) -> Optional[StrongRef[E]]:
        return self.arena.try_retain(self.handle)


class UnownedRef(Ref[E]):
    kind = RefKind.UNOWNED

    def get(self) -> E:
        return self.arena.get_unchecked(self.handle)


class Arena:
    def __init__(self, bus: Optional[RuntimeBus] = None, *, history: int = 200) -> None:
        self.bus = bus
        self._lock = threading.RLock()
        self._slots: List[_Slot] = []
        self._free: List[int] = []
        self._deinit_log: Deque[str] = deque(maxlen=history)

    # -- lifetime -------------------------------------------------------
    def spawn(self, entity: E) -> StrongRef[E]:
        if entity.arena is not None:
            raise LifetimeError(f"{entity.label} already lives in an arena")
        with self._lock:
            if self._free:
                index = self._free.pop()
                slot = self._slots[index]
            else:
                index = len(self._slots)
                slot = _Slot()
                self._slots.append(slot)
            slot.entity = entity
            slot.strong = 1
            handle = Handle(index, slot.generation)
        entity.arena = self
        entity.handle = handle
        logger.debug("spawned %s at %s", entity.label, handle)
        self._publish(topics.ENTITY_SPAWNED, entity)
        return StrongRef(self, handle)

    def retain(self, handle: Handle) -> None:
        with self._lock:
            slot = self._live_slot(handle)
            if slot is None:
                raise StaleHandleError(f"retain of stale handle {handle}")
            slot.strong += 1

    def try_retain(self, handle: Handle) -> Optional[StrongRef]:
        with self._lock:
            slot = self._live_slot(handle)
            if slot is None:
                return None
            slot.strong += 1
        return StrongRef(self, handle)

    def release(self, handle: Handle) -> None:
        with self._lock:
            slot = self._live_slot(handle)
            if slot is None:
                raise StaleHandleError(f"release of stale handle {handle}")
            slot.strong -= 1
            if slot.strong > 0:
                return
            entity = slot.entity
            slot.entity = None
            slot.strong = 0
            slot.generation += 1
            self._free.append(handle.index)
        self._destroy(entity)

    def _destroy(self, entity: Optional[Entity]) -> None:
        if entity is None:
            return
        entity.destroyed = True
        logger.info("%s deinit", entity.label)
        with self._lock:
            self._deinit_log.append(entity.label)
        self._publish(topics.ENTITY_DEINIT, entity)
        entity._teardown()

    # -- access ---------------------------------------------------------
    def is_alive(self, handle: Handle) -> bool:
        with self._lock:
            return self._live_slot(handle) is not None

    def get(self, handle: Handle) -> Optional[Entity]:
        with self._lock:
            slot = self._live_slot(handle)
            return slot.entity if slot is not None else None

    def get_unchecked(self, handle: Handle) -> Entity:
        # No generation check: a reused slot yields its current occupant.
        slot = self._slots[handle.index]
        entity = slot.entity
        if entity is None:
            raise UnownedAccessError(
                f"unowned reference {handle} dereferenced after its entity was deallocated"
            )
        return entity

    def strong_count(self, handle: Handle) -> int:
        with self._lock:
            slot = self._live_slot(handle)
            return slot.strong if slot is not None else 0

    def _live_slot(self, handle: Handle) -> Optional[_Slot]:
        if handle.index < 0 or handle.index >= len(self._slots):
            return None
        slot = self._slots[handle.index]
        if slot.entity is None or slot.generation != handle.generation:
            return None
        return slot

    # -- diagnostics ----------------------------------------------------
    def live_entities(self) -> List[Dict[str, object]]:
        with self._lock:
            return [
                {
                    "label": slot.entity.label,
                    "type": type(slot.entity).__name__,
                    "handle": str(Handle(index, slot.generation)),
                    "strong": slot.strong,
                }
                for index, slot in enumerate(self._slots)
                if slot.entity is not None
            ]

    def live_count(self) -> int:
        with self._lock:
            return sum(1 for slot in self._slots if slot.entity is not None)

    def deinit_history(self) -> List[str]:
        with self._lock:
            return list(self._deinit_log)

    def find_leaked_cycles(self) -> List[str]:
        """Labels of live entities reachable only from other such entities.

        Trial deletion: subtract the strong references held by live entities
        from each strong count. Entities left with no outside holder are
        candidates; a candidate held by a non-candidate is reachable and is
        dropped, until nothing changes.
        """
        with self._lock:
            live = {
                index: slot
                for index, slot in enumerate(self._slots)
                if slot.entity is not None
            }
            internal: Dict[int, int] = {index: 0 for index in live}
            holders: Dict[int, List[int]] = {index: [] for index in live}
            for index, slot in live.items():
                for ref in slot.entity.held_refs():
                    if ref.released:
                        continue
                    target = self._live_slot(ref.handle)
                    if target is None:
                        continue
                    internal[ref.handle.index] += 1
                    holders[ref.handle.index].append(index)
            garbage = {index for index, slot in live.items() if internal[index] >= slot.strong}
            changed = True
            while changed:
                changed = False
                for index in list(garbage):
                    if any(holder not in garbage for holder in holders[index]):
                        garbage.discard(index)
                        changed = True
            return sorted(live[index].entity.label for index in garbage)

    def collect(self) -> List[str]:
        """Run the reference-counting collector.

        Anything with a positive strong count stays, so cycles survive; they
        are logged and returned instead.
        """
        leaked = self.find_leaked_cycles()
        for label in leaked:
            logger.warning("retain cycle keeps %s alive", label)
        return leaked

    def _publish(self, topic: str, entity: Entity) -> None:
        if self.bus is None:
            return
        self.bus.publish(
            topic,
            {"label": entity.label, "type": type(entity).__name__},
            source="arena",
        )
