from __future__ import annotations

import logging

import pytest

from app_ui.config import LabConfig
from lifetime_core.scheduler import ManualClock
from scenarios import ScenarioContext, ScenarioSession


@pytest.fixture()
def session(ctx, caplog: pytest.LogCaptureFixture) -> ScenarioSession:
    caplog.set_level(logging.INFO)
    return ScenarioSession(ctx)


def _live(ctx) -> list:
    return [row["label"] for row in ctx.arena.live_entities()]


def _gone(ctx, label: str) -> bool:
    return label in ctx.arena.deinit_history() and label not in _live(ctx)


# -- Closure Capture List ------------------------------------------------


def test_value_type_capture_freezes_value(session, caplog) -> None:
    session.run("learning.capture_list.value_type")
    assert "Without capture list - Current value: 10" in caplog.text
    assert "With capture list - Captured value: 0" in caplog.text
    assert _gone(session.ctx, "ClosureCaptureListScreen#1")


def test_reference_type_capture_sees_mutation(session, caplog) -> None:
    session.run("learning.capture_list.reference_type")
    assert "Without capture list - Current value: 10" in caplog.text
    assert "With capture list - Captured value: 10" in caplog.text


def test_strong_stored_closure_never_deinits(session, caplog) -> None:
    session.run("learning.capture_list.strong_reference")
    ctx = session.ctx
    assert "ClosureCaptureListScreen#1 is alive, counter=1" in caplog.text
    assert "ClosureCaptureListScreen#1" in _live(ctx)
    assert "ClosureCaptureListScreen#1" in ctx.arena.collect()
    assert "ClosureCaptureListScreen#1 still alive after dismiss" in caplog.text


def test_weak_stored_closure_deinits(session, caplog) -> None:
    session.run("learning.capture_list.weak_reference")
    assert "ClosureCaptureListScreen#1 deinit" in caplog.text
    assert session.ctx.arena.live_count() == 0


# -- Parameter Closure ---------------------------------------------------


def test_escaping_weak_finds_screen_gone(session, settle, caplog) -> None:
    session.run("usage.parameter.escaping_weak")
    assert _gone(session.ctx, "ParameterClosureScreen#1")

    settle(2.0)

    assert "Self is nil in Escaping [weak self] closure" in caplog.text
    assert session.ctx.arena.live_count() == 0


def test_escaping_strong_delays_deinit(session, settle, caplog) -> None:
    session.run("usage.parameter.escaping_strong")
    assert "ParameterClosureScreen#1" in _live(session.ctx)

    settle(2.0)

    assert "Result (Escaping strong self): Async Task Completed" in caplog.text
    assert _gone(session.ctx, "ParameterClosureScreen#1")


@pytest.mark.parametrize("scenario_id", ["usage.parameter.non_escaping_weak", "usage.parameter.non_escaping_strong"])
def test_non_escaping_runs_before_dismiss(session, caplog, scenario_id: str) -> None:
    session.run(scenario_id)
    assert "Sync Task Completed" in caplog.text
    assert session.ctx.arena.live_count() == 0


# -- Property Closure ----------------------------------------------------


def test_property_weak_handler_runs_then_deinits(session, caplog) -> None:
    session.run("usage.property.weak")
    assert "Closure executed (Global Closure [weak self]), PropertyClosureScreen#1 still exists" in caplog.text
    assert session.ctx.arena.live_count() == 0


def test_property_strong_handler_is_a_cycle(session) -> None:
    session.run("usage.property.strong")
    leaked = session.ctx.arena.collect()
    assert "PropertyClosureScreen#1" in leaked


def test_property_unowned_handler_is_safe_while_alive(session, caplog) -> None:
    session.run("usage.property.unowned")
    assert "Closure executed (Global Closure [unowned self])" in caplog.text
    assert session.ctx.arena.live_count() == 0


# -- DispatchQueue Closure -----------------------------------------------


def test_dispatch_weak_blocks_find_screen_gone(session, settle, caplog) -> None:
    session.run("usage.dispatch.weak")
    assert _gone(session.ctx, "DispatchQueueClosureScreen#1")
    settle(3.0)
    assert "DispatchQueue (main) task executed" not in caplog.text
    assert session.ctx.arena.live_count() == 0


def test_dispatch_strong_keeps_screen_until_last_block(session, settle, caplog) -> None:
    session.run("usage.dispatch.strong")
    settle(2.0)
    assert "DispatchQueueClosureScreen#1" in _live(session.ctx)
    assert "DispatchQueue (global) task executed" in caplog.text

    settle(1.0)
    assert "DispatchQueue (custom) task executed" in caplog.text
    assert _gone(session.ctx, "DispatchQueueClosureScreen#1")


def test_dispatch_property_closure_leaks(session, settle, caplog) -> None:
    session.run("usage.dispatch.property")
    settle(3.0)
    assert "DispatchQueue (property) task executed" in caplog.text
    assert "DispatchQueueClosureScreen#1" in session.ctx.arena.collect()


# -- Async Closure -------------------------------------------------------


def test_safe_async_resumes_and_releases(session, settle, caplog) -> None:
    session.run("usage.async.safe")
    ctx = session.ctx
    task = ctx.tasks[-1]
    assert "AsyncClosureScreen#1" in _live(ctx)

    settle(2.0)

    assert task.join(2.0)
    assert "After safe async operation" in caplog.text
    assert _gone(ctx, "AsyncClosureScreen#1")
    assert ctx.suspended_tasks() == []


def test_leaky_async_keeps_task_and_screen(session, settle, caplog) -> None:
    session.run("usage.async.leaky")
    ctx = session.ctx

    settle(3.0)

    assert "Leaky async operation completed" in caplog.text
    assert "continuation leaky-async AsyncClosureScreen#1 leaked" in caplog.text
    assert "This line will never be reached" not in caplog.text
    assert "AsyncClosureScreen#1" in _live(ctx)
    assert ctx.suspended_tasks() == ["leaky-async AsyncClosureScreen#1"]
    assert ctx.presented() == []


# -- Closure Leak Test ---------------------------------------------------


def test_leak_stored_closure(session, settle) -> None:
    session.run("leaks.closure.stored_closure")
    settle(2.0)
    assert "ClosureLeakTestScreen#1" in session.ctx.arena.collect()


def test_leak_dispatch_queue_is_not_a_leak(session, settle, caplog) -> None:
    session.run("leaks.closure.dispatch_queue")
    settle(2.0)
    assert "Heavy task performed by ClosureLeakTestScreen#1" in caplog.text
    assert _gone(session.ctx, "ClosureLeakTestScreen#1")


def test_leak_timer_keeps_firing(session, settle, caplog) -> None:
    session.run("leaks.closure.timer")
    settle(3.0)
    ctx = session.ctx
    assert caplog.text.count("Heavy task performed by ClosureLeakTestScreen#1") >= 3
    assert "ClosureLeakTestScreen#1" in _live(ctx)
    assert [row["label"] for row in ctx.scheduler.pending()] == ["timer[heavy task]"]


def test_leak_notification_observer(session, settle, caplog) -> None:
    session.run("leaks.closure.notification")
    settle(2.0)
    assert "ClosureLeakTestScreen#1" in _live(session.ctx)

    session.run("leaks.closure.post_clock_change")

    assert "Heavy task performed by ClosureLeakTestScreen#1" in caplog.text


def test_leak_escaping_is_not_a_leak(session, settle, caplog) -> None:
    session.run("leaks.closure.escaping")
    settle(2.0)
    assert "Result (escaping): Task completed" in caplog.text
    assert _gone(session.ctx, "ClosureLeakTestScreen#1")


def test_leak_data_manager_cycle(session, settle) -> None:
    session.run("leaks.closure.data_manager")
    settle(2.0)
    leaked = session.ctx.arena.collect()
    assert {"ClosureLeakTestScreen#1", "StrongDataManager", "completion_handler"} <= set(leaked)


# -- Advanced Leak Test --------------------------------------------------


def test_weak_delegate_releases_both(session, caplog) -> None:
    session.run("leaks.advanced.weak_delegate")
    ctx = session.ctx
    assert "AdvancedLeakTestScreen#1: received data update notification" in caplog.text
    assert ctx.arena.live_count() == 0
    assert ctx.arena.deinit_history() == ["AdvancedLeakTestScreen#1", "StrongDataManager"]


def test_strong_delegate_leaks_both(session, caplog) -> None:
    session.run("leaks.advanced.strong_delegate")
    assert "retain cycle: AdvancedLeakTestScreen#1 and StrongDataManager" in caplog.text
    assert session.ctx.arena.collect() == ["AdvancedLeakTestScreen#1", "StrongDataManager"]


def test_interval_observable_leaks(session, settle) -> None:
    session.run("leaks.advanced.interval_observable")
    settle(2.0)
    assert "AdvancedLeakTestScreen#1" in _live(session.ctx)
    assert len(session.ctx.scheduler.pending()) == 1


def test_timer_publisher_does_not_leak(session, settle, caplog) -> None:
    session.run("leaks.advanced.timer_publisher")
    settle(2.0)
    assert "1 subscription(s) cancelled" in caplog.text
    assert _gone(session.ctx, "AdvancedLeakTestScreen#1")
    assert session.ctx.scheduler.pending() == []


def test_screen_numbers_increase(session) -> None:
    session.run("learning.capture_list.weak_reference")
    session.run("learning.capture_list.weak_reference")
    assert session.ctx.arena.deinit_history()[-2:] == [
        "ClosureCaptureListScreen#2",
        "closure[weak ClosureCaptureListScreen#2]",
    ]


def test_one_off_blocks_use_their_own_delay_keys(clock: ManualClock) -> None:
    config = LabConfig(
        dispatch_delays_s={"main": 7.0, "global": 8.0, "custom": 9.0, "heavy_task": 0.5, "property": 1.5}
    )
    ctx = ScenarioContext.create(config, clock=clock)
    session = ScenarioSession(ctx)

    session.run("leaks.closure.dispatch_queue")
    session.run("usage.dispatch.property")

    due = {row["label"]: row["due_in"] for row in ctx.scheduler.pending()}
    assert due["global-queue[heavy task]"] == 0.5
    assert due["custom-queue[property]"] == 1.5
    ctx.scheduler.cancel_all()
    ctx.scheduler.wait_idle(2.0)
