"""Progress events: enrollments, completions, deletions and failed saves.

Events are delivered synchronously to subscribers and written to the
``lesson_progress.telemetry`` logger as one JSON line each.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Any, Callable, Dict, List

logger = logging.getLogger("lesson_progress.telemetry")

USER_ENROLLED = "user_enrolled"
LESSON_DAY_COMPLETED = "lesson_day_completed"
USER_DELETED = "user_deleted"
PERSISTENCE_FAILED = "persistence_failed"


@dataclass(frozen=True)
class ProgressEvent:
    name: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def as_log_line(self) -> str:
        return json.dumps({"event": self.name, **self.payload}, default=str, sort_keys=True)


Subscriber = Callable[[ProgressEvent], None]

_subscribers: List[Subscriber] = []
_subscribers_lock = Lock()


def subscribe(subscriber: Subscriber) -> Callable[[], None]:
    """Add a subscriber; the returned callable removes it again."""
    with _subscribers_lock:
        _subscribers.append(subscriber)

    def unsubscribe() -> None:
        with _subscribers_lock:
            if subscriber in _subscribers:
                _subscribers.remove(subscriber)

    return unsubscribe


def reset_subscribers() -> None:
    with _subscribers_lock:
        _subscribers.clear()


def emit_event(name: str, **fields: Any) -> ProgressEvent:
    payload = {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in fields.items()
    }
    event = ProgressEvent(name=name, payload=payload)

    with _subscribers_lock:
        targets = tuple(_subscribers)
    for subscriber in targets:
        try:
            subscriber(event)
        except Exception:  # noqa: BLE001
            logger.exception("Subscriber %r failed on %s", subscriber, name)

    logger.info("event %s", event.as_log_line())
    return event


__all__ = [
    "LESSON_DAY_COMPLETED",
    "PERSISTENCE_FAILED",
    "ProgressEvent",
    "USER_DELETED",
    "USER_ENROLLED",
    "emit_event",
    "reset_subscribers",
    "subscribe",
]
