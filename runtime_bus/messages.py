from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass(frozen=True, slots=True)
class MessageEnvelope:
    """One published notification. ``seq`` orders envelopes within a bus."""

    msg_id: str
    topic: str
    seq: int
    timestamp: str
    source: str
    payload: Dict[str, object] = field(default_factory=dict)
    trace_id: str = ""

    @property
    def label(self) -> Optional[str]:
        value = self.payload.get("label")
        return str(value) if value is not None else None

    def to_dict(self) -> Dict[str, object]:
        return {
            "msg_id": self.msg_id,
            "topic": self.topic,
            "seq": self.seq,
            "timestamp": self.timestamp,
            "source": self.source,
            "payload": dict(self.payload),
            "trace_id": self.trace_id,
        }
