"""Crash-expected probes, each run in a child interpreter.

An unowned dereference after deallocation is fatal by contract, so it is
never exercised in-process. ``run_isolated`` starts
``python -m lifetime_core.crash_probe <probe>`` and reports how the child
ended.
"""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from diagnostics.crash_capture import write_crash_marker
from diagnostics.logging_setup import get_logger

from .arena import Arena, Owner, RefKind, UnownedAccessError
from .callables import make_callable
from .capture import bump_counter

logger = get_logger("crash_probe")

ROOT = Path(__file__).resolve().parents[1]


def _probe_unowned_after_release() -> None:
    arena = Arena()
    owner = arena.spawn(Owner("PropertyClosureScreen"))
    handler = make_callable(owner, RefKind.UNOWNED, bump_counter)
    owner.release()
    handler.get().invoke()


def _probe_unowned_while_alive() -> None:
    arena = Arena()
    owner = arena.spawn(Owner("PropertyClosureScreen"))
    handler = make_callable(owner, RefKind.UNOWNED, bump_counter)
    handler.get().invoke()
    handler.release()
    owner.release()


def _probe_weak_after_release() -> None:
    arena = Arena()
    owner = arena.spawn(Owner("PropertyClosureScreen"))
    handler = make_callable(owner, RefKind.WEAK, bump_counter)
    owner.release()
    handler.get().invoke()
    handler.release()


def _probe_unowned_reused_slot() -> None:
    arena = Arena()
    owner = arena.spawn(Owner("PropertyClosureScreen"))
    unowned = owner.unowned()
    owner.release()
    impostor = arena.spawn(Owner("UnrelatedScreen"))
    target = unowned.get()
    logger.warning("unowned reference now reads %s", target.label)
    print(f"unowned read: {target.label}")
    impostor.release()


PROBES: Dict[str, Callable[[], None]] = {
    "unowned_after_release": _probe_unowned_after_release,
    "unowned_while_alive": _probe_unowned_while_alive,
    "weak_after_release": _probe_weak_after_release,
    "unowned_reused_slot": _probe_unowned_reused_slot,
}


@dataclass(frozen=True)
class ProbeResult:
    probe: str
    returncode: int
    stdout: str
    stderr: str

    @property
    def crashed(self) -> bool:
        return self.returncode != 0


def run_probe(name: str, *, data_dir: Optional[Path] = None) -> None:
    probe = PROBES[name]
    try:
        probe()
    except UnownedAccessError as exc:
        logger.critical("probe %s hit a fatal contract violation: %s", name, exc)
        write_crash_marker(exc, {"probe": name}, base_dir=data_dir)
        raise
    print(f"probe {name} completed")


def run_isolated(
    name: str,
    *,
    data_dir: Optional[Path] = None,
    timeout: float = 60.0,
) -> ProbeResult:
    if name not in PROBES:
        raise KeyError(f"unknown probe: {name}")
    cmd = [sys.executable, "-m", "lifetime_core.crash_probe", name]
    if data_dir is not None:
        cmd.extend(["--data-dir", str(data_dir)])
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(p for p in (str(ROOT), env.get("PYTHONPATH", "")) if p)
    proc = subprocess.run(
        cmd,
        cwd=str(ROOT),
        env=env,
        capture_output=True,
        text=True,
        timeout=timeout,
    )
    result = ProbeResult(name, proc.returncode, proc.stdout, proc.stderr)
    if result.crashed:
        logger.info("probe %s crashed as expected (exit code %s)", name, proc.returncode)
    else:
        logger.info("probe %s exited cleanly", name)
    return result


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run one crash-expected lifetime probe.")
    parser.add_argument("probe", choices=sorted(PROBES))
    parser.add_argument("--data-dir", type=Path, default=None)
    args = parser.parse_args(argv)
    run_probe(args.probe, data_dir=args.data_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
