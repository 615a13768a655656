"""In-memory progress state guarded by a single lock.

The store owns every user record and the historical per-day completion tally.
Each mutating operation runs read-check-mutate-persist inside one critical
section, so concurrent completions cannot lose or double an increment.
Persistence is best effort: a failed save is logged and the in-memory change
stands.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from .errors import DayNotYetAvailableError, InvalidInputError, PersistenceError, UserNotFoundError
from .models import CompletionResult, ProgressState, User
from .persistence import PersistenceGateway
from .telemetry import LESSON_DAY_COMPLETED, PERSISTENCE_FAILED, USER_DELETED, USER_ENROLLED, emit_event

logger = logging.getLogger(__name__)

LESSON_UNLOCK_INTERVAL = timedelta(days=1)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def allowed_day(enrolled_at: datetime, now: datetime) -> int:
    """Latest lesson day unlocked at ``now`` for a user enrolled at ``enrolled_at``.

    Counts full 24h periods of elapsed wall-clock time, not calendar days.
    """
    return 1 + (now - enrolled_at) // LESSON_UNLOCK_INTERVAL


class ProgressStore:
    def __init__(self, gateway: PersistenceGateway, clock: Optional[Clock] = None) -> None:
        self._gateway = gateway
        self._clock = clock or _utc_now
        self._lock = threading.RLock()
        self._state = ProgressState()

    @property
    def gateway(self) -> PersistenceGateway:
        return self._gateway

    def initialize(self) -> None:
        """Load the last snapshot and write it back in the current document format."""
        with self._lock:
            self._state = self._gateway.load()
            logger.info(
                "Loaded %d users and %d day counters from %s",
                len(self._state.users),
                len(self._state.global_counts),
                self._gateway.describe(),
            )
            self._persist_unlocked("initialize")

    def enroll_user(self, name: Optional[str]) -> User:
        cleaned = (name or "").strip()
        if not cleaned:
            raise InvalidInputError("Name is required")
        with self._lock:
            user_id = str(uuid.uuid4())
            while user_id in self._state.users:
                user_id = str(uuid.uuid4())
            user = User(id=user_id, name=cleaned, enrolled_at=self._clock(), completed_days=[])
            self._state.users[user_id] = user
            self._persist_unlocked("enroll_user")
            emit_event(USER_ENROLLED, user_id=user_id, enrolled_at=user.enrolled_at)
            return user.model_copy(deep=True)

    def get_user(self, user_id: str) -> User:
        with self._lock:
            return self._require_user_unlocked(user_id).model_copy(deep=True)

    def complete_day(self, user_id: str, day: int) -> CompletionResult:
        if day < 1:
            raise InvalidInputError("Lesson day must be a positive integer")
        with self._lock:
            user = self._require_user_unlocked(user_id)
            unlocked = allowed_day(user.enrolled_at, self._clock())
            if day > unlocked:
                raise DayNotYetAvailableError(day, unlocked)

            if day in user.completed_days:
                result = CompletionResult(
                    already_completed=True,
                    global_count=self._state.global_counts.get(day, 0),
                )
            else:
                user.completed_days.append(day)
                self._state.global_counts[day] = self._state.global_counts.get(day, 0) + 1
                self._persist_unlocked("complete_day")
                result = CompletionResult(
                    already_completed=False,
                    global_count=self._state.global_counts[day],
                )

        emit_event(
            LESSON_DAY_COMPLETED,
            user_id=user_id,
            day=day,
            already_completed=result.already_completed,
            global_count=result.global_count,
        )
        return result

    def get_day_count(self, day: int) -> int:
        with self._lock:
            return self._state.global_counts.get(day, 0)

    def get_all_counts(self) -> Dict[int, int]:
        with self._lock:
            return dict(self._state.global_counts)

    def delete_user(self, user_id: str) -> None:
        with self._lock:
            self._require_user_unlocked(user_id)
            # Global counts are a historical tally and are left untouched.
            del self._state.users[user_id]
            self._persist_unlocked("delete_user")
        emit_event(USER_DELETED, user_id=user_id)

    def snapshot(self) -> ProgressState:
        with self._lock:
            return self._state.model_copy(deep=True)

    def _require_user_unlocked(self, user_id: str) -> User:
        user = self._state.users.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def _persist_unlocked(self, operation: str) -> None:
        try:
            self._gateway.save(self._state)
        except PersistenceError as exc:
            logger.exception("Persisting progress after %s failed", operation)
            emit_event(PERSISTENCE_FAILED, operation=operation, error=str(exc))


__all__ = ["LESSON_UNLOCK_INTERVAL", "ProgressStore", "allowed_day"]
