from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from .time_control import TimeController


@dataclass
class LedgerEvent:
    id: int
    topic: str
    payload: Dict[str, Any]
    published_at: datetime


class EventBus:
    """Ordered in-memory event log.

    Events stay queued until consumed; ``history`` keeps everything ever
    published and ``trace`` records publish/deliver activity.
    """
    def __init__(self, time: Optional[TimeController] = None):
        self._time = time or TimeController()
        self._seq = itertools.count(1)
        self._queue: List[LedgerEvent] = []
        self._history: List[LedgerEvent] = []
        self._trace: List[Dict[str, Any]] = []

    def publish(self, topic: str, payload: Dict[str, Any]) -> int:
        event = LedgerEvent(
            id=next(self._seq),
            topic=topic,
            payload=dict(payload),
            published_at=self._time.now(),
        )
        self._queue.append(event)
        self._history.append(event)
        self._trace.append({"event": "published", "id": event.id, "topic": topic, "time": event.published_at.isoformat()})
        return event.id

    def consume_available(self, topic: Optional[str] = None, limit: Optional[int] = None) -> List[LedgerEvent]:
        out: List[LedgerEvent] = []
        for e in list(self._queue):
            if limit is not None and len(out) >= limit:
                break
            if topic is not None and e.topic != topic:
                continue
            self._queue.remove(e)
            self._trace.append({"event": "delivered", "id": e.id, "topic": e.topic, "time": self._time.now().isoformat()})
            out.append(e)
        return out

    def drain(self) -> List[LedgerEvent]:
        return self.consume_available()

    def events(self, topic: Optional[str] = None) -> List[LedgerEvent]:
        """Everything published so far, consumed or not."""
        return [e for e in self._history if topic is None or e.topic == topic]

    def queue_depth(self) -> int:
        return len(self._queue)

    @property
    def trace(self) -> List[Dict[str, Any]]:
        return list(self._trace)
