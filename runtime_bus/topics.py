"""Topic constants for the runtime bus."""

# System notifications observed by scenarios
SYSTEM_CLOCK_CHANGED = "system.clock.changed"
DATA_UPDATED = "data.updated"

# Scenario lifecycle
SCENARIO_STARTED = "scenario.started"
SCREEN_PRESENTED = "screen.presented"
SCREEN_DISMISSED = "screen.dismissed"

# Entity lifecycle
ENTITY_SPAWNED = "entity.spawned"
ENTITY_DEINIT = "entity.deinit"

__all__ = [
    "SYSTEM_CLOCK_CHANGED",
    "DATA_UPDATED",
    "SCENARIO_STARTED",
    "SCREEN_PRESENTED",
    "SCREEN_DISMISSED",
    "ENTITY_SPAWNED",
    "ENTITY_DEINIT",
]
