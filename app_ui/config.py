# =============================================================================
# NAV INDEX (search these tags)
# [NAV-00] Imports / constants
# [NAV-10] Config model
# [NAV-20] Config loading (defaults/roaming)
# [NAV-99] End
# =============================================================================

# === [NAV-00] Imports / constants ============================================
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, Optional

CONFIG_PATH = Path("data/roaming/closurelab_config.json")
# "heavy_task" and "property" time the one-off blocks on the leak and property pages.
_DEFAULT_DISPATCH_DELAYS = {"main": 1.0, "global": 2.0, "custom": 3.0, "heavy_task": 1.0, "property": 2.0}


# === [NAV-10] Config model ===================================================
@dataclass(frozen=True)
class LabConfig:
    """Timings for the scenarios. Every delay is multiplied by ``time_scale``."""

    time_scale: float = 1.0
    dismiss_delay_s: float = 2.0
    escaping_task_delay_s: float = 2.0
    timer_interval_s: float = 1.0
    async_delay_s: float = 2.0
    dispatch_delays_s: Dict[str, float] = field(default_factory=lambda: dict(_DEFAULT_DISPATCH_DELAYS))
    log_to_file: bool = True

    def dispatch_delay(self, queue: str) -> float:
        return float(self.dispatch_delays_s.get(queue, _DEFAULT_DISPATCH_DELAYS.get(queue, 1.0)))

    def to_dict(self) -> Dict:
        return asdict(self)


_DEFAULT_CONFIG = LabConfig().to_dict()


def _coerce(data: Dict) -> LabConfig:
    merged = dict(_DEFAULT_CONFIG)
    for key, value in data.items():
        if key in merged:
            merged[key] = value
    delays = dict(_DEFAULT_DISPATCH_DELAYS)
    raw_delays = merged.get("dispatch_delays_s")
    if isinstance(raw_delays, dict):
        for queue, value in raw_delays.items():
            try:
                delays[str(queue)] = max(0.0, float(value))
            except (TypeError, ValueError):
                continue
    kwargs = {"dispatch_delays_s": delays, "log_to_file": bool(merged.get("log_to_file", True))}
    for key in ("time_scale", "dismiss_delay_s", "escaping_task_delay_s", "timer_interval_s", "async_delay_s"):
        try:
            kwargs[key] = max(0.0, float(merged[key]))
        except (TypeError, ValueError):
            kwargs[key] = _DEFAULT_CONFIG[key]
    for key in ("time_scale", "timer_interval_s"):
        if kwargs[key] <= 0:
            kwargs[key] = _DEFAULT_CONFIG[key]
    return LabConfig(**kwargs)


# === [NAV-20] Config loading (defaults/roaming) ==============================
def load_lab_config(path: Optional[Path] = None) -> LabConfig:
    path = path or CONFIG_PATH
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(_DEFAULT_CONFIG, indent=2), encoding="utf-8")
        return LabConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        return LabConfig()
    if not isinstance(data, dict):
        return LabConfig()
    return _coerce(data)


def save_lab_config(config: LabConfig, path: Optional[Path] = None) -> None:
    path = path or CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.to_dict(), indent=2), encoding="utf-8")


# === [NAV-99] End =============================================================
__all__ = [
    "CONFIG_PATH",
    "LabConfig",
    "load_lab_config",
    "save_lab_config",
]
