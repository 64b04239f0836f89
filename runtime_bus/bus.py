from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from diagnostics.logging_setup import get_logger

from .messages import MessageEnvelope

logger = get_logger("runtime_bus")

Handler = Callable[[MessageEnvelope], None]


def _iso_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class RuntimeBus:
    """In-process pub/sub bus.

    Subscriptions hold their handler strongly until ``unsubscribe`` is called,
    the same way a notification center keeps an observer block alive.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._subscribers: Dict[str, tuple[str, Handler]] = {}
        self._topic_index: Dict[str, List[str]] = {}
        self._published = 0

    def subscribe(self, topic: str, handler: Handler) -> str:
        sub_id = str(uuid.uuid4())
        with self._lock:
            self._subscribers[sub_id] = (topic, handler)
            self._topic_index.setdefault(topic, []).append(sub_id)
        return sub_id

    def unsubscribe(self, sub_id: str) -> bool:
        with self._lock:
            topic, _ = self._subscribers.pop(sub_id, (None, None))
            if topic is None:
                return False
            ids = self._topic_index.get(topic)
            if ids is not None:
                if sub_id in ids:
                    ids.remove(sub_id)
                if not ids:
                    self._topic_index.pop(topic, None)
        return True

    def publish(
        self,
        topic: str,
        payload: Optional[Dict[str, object]] = None,
        source: str = "closurelab",
        trace_id: Optional[str] = None,
    ) -> MessageEnvelope:
        with self._lock:
            self._published += 1
            seq = self._published
        envelope = self._build_envelope(topic, seq, payload, source, trace_id)
        handlers = self._copy_handlers(topic)
        for handler in handlers:
            try:
                handler(envelope)
            except Exception as exc:
                if getattr(exc, "fatal", False):
                    raise
                logger.error("runtime_bus publish handler error on %s: %s", topic, exc)
        return envelope

    def subscriber_count(self, topic: Optional[str] = None) -> int:
        with self._lock:
            if topic is None:
                return len(self._subscribers)
            return len(self._topic_index.get(topic, ()))

    def report(self) -> Dict[str, object]:
        with self._lock:
            return {
                "published": self._published,
                "subscriptions": len(self._subscribers),
                "topics": {topic: len(ids) for topic, ids in sorted(self._topic_index.items())},
            }

    def _build_envelope(
        self,
        topic: str,
        seq: int,
        payload: Optional[Dict[str, object]],
        source: str,
        trace_id: Optional[str],
    ) -> MessageEnvelope:
        trace = trace_id or str(uuid.uuid4())
        body = payload if isinstance(payload, dict) else {}
        return MessageEnvelope(
            msg_id=str(uuid.uuid4()),
            topic=topic,
            seq=seq,
            timestamp=_iso_timestamp(),
            source=source,
            payload=dict(body),
            trace_id=trace,
        )

    def _copy_handlers(self, topic: str) -> list[Handler]:
        with self._lock:
            sub_ids = list(self._topic_index.get(topic, ()))
            handlers = [self._subscribers[sid][1] for sid in sub_ids if sid in self._subscribers]
        return handlers
