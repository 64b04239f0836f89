from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, List, Optional


class LogBuffer:
    """Ring buffer of recent log lines, read by the UI log pane."""

    def __init__(self, max_lines: int = 400) -> None:
        self._lines: Deque[str] = deque(maxlen=max_lines)
        self._lock = threading.Lock()
        self._listeners: List[Callable[[str], None]] = []

    def append(self, message: object) -> None:
        try:
            text = str(message)
        except Exception:
            return
        stamp = time.strftime("%H:%M:%S")
        line = f"{stamp} {text}"
        with self._lock:
            self._lines.append(line)
            listeners = list(self._listeners)
        for listener in listeners:
            listener(line)

    def get_lines(self, limit: Optional[int] = None) -> List[str]:
        with self._lock:
            lines = list(self._lines)
        if limit is None or limit >= len(lines):
            return lines
        return lines[-limit:]

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()

    def add_listener(self, listener: Callable[[str], None]) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[str], None]) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)


class BufferHandler(logging.Handler):
    def __init__(self, buffer: LogBuffer) -> None:
        super().__init__(level=logging.INFO)
        self.buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.buffer.append(record.getMessage())
        except Exception:  # pragma: no cover - logging must not raise
            self.handleError(record)


LOG_BUFFER = LogBuffer(max_lines=500)
