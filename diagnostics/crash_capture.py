from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Dict, List, Optional


def get_crash_dir(base_dir: Optional[Path] = None) -> Path:
    root = base_dir or Path("data/roaming")
    crash_dir = root / "crashes"
    crash_dir.mkdir(parents=True, exist_ok=True)
    return crash_dir


def write_crash_marker(
    exc: BaseException,
    context: Dict[str, Any] | None = None,
    *,
    base_dir: Optional[Path] = None,
) -> Path:
    crash_dir = get_crash_dir(base_dir)
    payload = {
        "ts": time.time(),
        "exception_type": type(exc).__name__,
        "message": str(exc),
        "context": context or {},
    }
    path = crash_dir / f"crash_marker_{time.time_ns()}.json"
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


def list_crash_markers(base_dir: Optional[Path] = None) -> List[Dict[str, Any]]:
    crash_dir = get_crash_dir(base_dir)
    markers: List[Dict[str, Any]] = []
    for path in sorted(crash_dir.glob("crash_marker_*.json")):
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except Exception:
            continue
        if isinstance(data, dict):
            data["path"] = str(path)
            markers.append(data)
    return markers
