from __future__ import annotations

import gc

import pytest

from lifetime_core.arena import (
    Arena,
    Entity,
    Handle,
    LifetimeError,
    Owner,
    StaleHandleError,
    UnownedAccessError,
)
from runtime_bus import RuntimeBus, topics


def test_spawn_and_release_runs_deinit_once() -> None:
    arena = Arena()
    calls = []

    class Tracked(Entity):
        def deinit(self) -> None:
            calls.append(self.label)

    ref = arena.spawn(Tracked("tracked"))
    assert arena.is_alive(ref.handle)
    assert arena.strong_count(ref.handle) == 1

    ref.release()
    ref.release()

    assert calls == ["tracked"]
    assert not arena.is_alive(ref.handle)
    assert arena.deinit_history() == ["tracked"]
    assert arena.live_count() == 0


def test_clone_keeps_entity_until_last_release() -> None:
    arena = Arena()
    first = arena.spawn(Owner("owner"))
    second = first.clone()
    assert arena.strong_count(first.handle) == 2

    first.release()
    assert second.get().label == "owner"

    second.release()
    assert arena.live_count() == 0


def test_released_strong_ref_raises_on_get() -> None:
    arena = Arena()
    ref = arena.spawn(Owner("owner"))
    keep = ref.clone()
    ref.release()
    with pytest.raises(StaleHandleError):
        ref.get()
    with pytest.raises(StaleHandleError):
        ref.clone()
    keep.release()


def test_slot_reuse_bumps_generation() -> None:
    arena = Arena()
    first = arena.spawn(Owner("first"))
    old_handle = first.handle
    first.release()

    second = arena.spawn(Owner("second"))
    assert second.handle.index == old_handle.index
    assert second.handle.generation == old_handle.generation + 1
    assert arena.get(old_handle) is None
    assert not arena.is_alive(old_handle)
    with pytest.raises(StaleHandleError):
        arena.release(old_handle)
    with pytest.raises(StaleHandleError):
        arena.retain(old_handle)
    second.release()


def test_weak_ref_yields_none_after_release() -> None:
    arena = Arena()
    owner = arena.spawn(Owner("owner"))
    weak = owner.downgrade()
    assert weak.get() is owner.get()
    assert arena.strong_count(owner.handle) == 1

    guard = weak.upgrade()
    assert guard is not None
    assert arena.strong_count(owner.handle) == 2
    guard.release()

    owner.release()
    assert weak.get() is None
    assert weak.upgrade() is None


def test_weak_ref_does_not_follow_reused_slot() -> None:
    arena = Arena()
    owner = arena.spawn(Owner("owner"))
    weak = owner.downgrade()
    owner.release()
    other = arena.spawn(Owner("other"))
    assert weak.get() is None
    other.release()


def test_unowned_ref_reads_while_alive() -> None:
    arena = Arena()
    owner = arena.spawn(Owner("owner"))
    unowned = owner.unowned()
    assert unowned.get().label == "owner"
    assert arena.strong_count(owner.handle) == 1
    owner.release()


def test_unowned_ref_on_vacant_slot_is_fatal() -> None:
    arena = Arena()
    owner = arena.spawn(Owner("owner"))
    unowned = owner.unowned()
    owner.release()
    with pytest.raises(UnownedAccessError) as excinfo:
        unowned.get()
    assert excinfo.value.fatal is True


def test_unowned_ref_reads_occupant_of_reused_slot() -> None:
    arena = Arena()
    owner = arena.spawn(Owner("owner"))
    unowned = owner.unowned()
    owner.release()
    impostor = arena.spawn(Owner("impostor"))
    assert unowned.get().label == "impostor"
    impostor.release()


def test_release_cascades_through_held_fields() -> None:
    arena = Arena()
    parent = arena.spawn(Owner("parent"))
    child = arena.spawn(Owner("child"))
    parent.get().hold("child", child)

    parent.release()

    assert arena.live_count() == 0
    assert arena.deinit_history() == ["parent", "child"]


def test_hold_replaces_and_releases_previous_field() -> None:
    arena = Arena()
    parent = arena.spawn(Owner("parent"))
    parent.get().hold("slot", arena.spawn(Owner("a")))
    parent.get().hold("slot", arena.spawn(Owner("b")))
    assert arena.deinit_history() == ["a"]
    parent.get().drop("slot")
    assert arena.deinit_history() == ["a", "b"]
    parent.release()


def test_cycle_survives_collect_and_gc() -> None:
    arena = Arena()
    a = arena.spawn(Owner("a"))
    b = arena.spawn(Owner("b"))
    a.get().hold("peer", b.clone())
    b.get().hold("peer", a.clone())
    a.release()
    b.release()

    gc.collect()
    leaked = arena.collect()

    assert leaked == ["a", "b"]
    assert arena.live_count() == 2
    assert arena.deinit_history() == []


def test_externally_held_cycle_is_not_reported() -> None:
    arena = Arena()
    a = arena.spawn(Owner("a"))
    b = arena.spawn(Owner("b"))
    a.get().hold("peer", b.clone())
    b.get().hold("peer", a.clone())
    b.release()

    assert arena.find_leaked_cycles() == []

    a.release()
    assert arena.find_leaked_cycles() == ["a", "b"]


def test_entity_held_by_cycle_member_is_reported() -> None:
    arena = Arena()
    a = arena.spawn(Owner("a"))
    a.get().hold("self", a.clone())
    a.get().hold("extra", arena.spawn(Owner("extra")))
    a.release()
    assert arena.find_leaked_cycles() == ["a", "extra"]


def test_spawn_rejects_entity_already_in_arena() -> None:
    arena = Arena()
    entity = Owner("owner")
    ref = arena.spawn(entity)
    with pytest.raises(LifetimeError):
        Arena().spawn(entity)
    ref.release()


def test_lifecycle_events_reach_bus() -> None:
    bus = RuntimeBus()
    arena = Arena(bus)
    seen = []
    bus.subscribe(topics.ENTITY_SPAWNED, lambda env: seen.append(("spawned", env.payload["label"])))
    bus.subscribe(topics.ENTITY_DEINIT, lambda env: seen.append(("deinit", env.payload["label"])))

    arena.spawn(Owner("owner")).release()

    assert seen == [("spawned", "owner"), ("deinit", "owner")]


def test_live_entities_report() -> None:
    arena = Arena()
    ref = arena.spawn(Owner("owner"))
    rows = arena.live_entities()
    assert rows == [{"label": "owner", "type": "Owner", "handle": str(ref.handle), "strong": 1}]
    assert str(Handle(3, 2)) == "3v2"
    ref.release()
