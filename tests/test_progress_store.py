"""Gating, idempotence and counter behaviour of the progress store."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from lesson_progress.errors import DayNotYetAvailableError, InvalidInputError, UserNotFoundError
from lesson_progress.models import ProgressState
from lesson_progress.store import ProgressStore, allowed_day
from lesson_progress.telemetry import ProgressEvent, subscribe


class _MemoryGateway:
    def __init__(self, delay: float = 0.0) -> None:
        self.saved: List[ProgressState] = []
        self.delay = delay

    def load(self) -> ProgressState:
        return ProgressState()

    def save(self, state: ProgressState) -> None:
        if self.delay:
            time.sleep(self.delay)
        self.saved.append(state.model_copy(deep=True))

    def describe(self) -> str:
        return "memory"


@pytest.mark.parametrize("name", ["", "   ", "\t\n", None])
def test_enroll_rejects_blank_names(store: ProgressStore, name) -> None:
    with pytest.raises(InvalidInputError):
        store.enroll_user(name)


def test_enroll_returns_trimmed_user_with_current_timestamp(store: ProgressStore, clock) -> None:
    user = store.enroll_user("  Alice ")

    assert user.name == "Alice"
    assert user.completed_days == []
    assert user.enrolled_at == clock.now
    assert store.get_user(user.id) == user


def test_enroll_uses_real_clock_by_default() -> None:
    store = ProgressStore(_MemoryGateway())
    user = store.enroll_user("Alice")
    assert abs(datetime.now(timezone.utc) - user.enrolled_at) < timedelta(seconds=5)


def test_enrolled_ids_are_unique(store: ProgressStore) -> None:
    ids = {store.enroll_user(f"user-{index}").id for index in range(50)}
    assert len(ids) == 50


def test_get_unknown_user_raises(store: ProgressStore) -> None:
    with pytest.raises(UserNotFoundError):
        store.get_user("missing")


def test_day_one_available_immediately_and_day_two_after_24_hours(store: ProgressStore, clock) -> None:
    user = store.enroll_user("Alice")

    assert store.complete_day(user.id, 1).global_count == 1
    with pytest.raises(DayNotYetAvailableError) as excinfo:
        store.complete_day(user.id, 2)
    assert excinfo.value.allowed_day == 1

    clock.advance(hours=23, minutes=59, seconds=59)
    with pytest.raises(DayNotYetAvailableError):
        store.complete_day(user.id, 2)

    clock.advance(seconds=1)
    result = store.complete_day(user.id, 2)
    assert result.already_completed is False
    assert result.global_count == 1


def test_gating_uses_elapsed_time_not_calendar_days(clock) -> None:
    clock.now = datetime(2024, 3, 1, 23, 59, tzinfo=timezone.utc)
    store = ProgressStore(_MemoryGateway(), clock=clock)
    user = store.enroll_user("Night Owl")

    clock.advance(minutes=2)  # next calendar day, two minutes elapsed
    with pytest.raises(DayNotYetAvailableError):
        store.complete_day(user.id, 2)


def test_allowed_day_counts_full_days() -> None:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert allowed_day(start, start) == 1
    assert allowed_day(start, start + timedelta(days=1)) == 2
    assert allowed_day(start, start + timedelta(days=6, hours=23)) == 7


def test_completing_twice_is_idempotent(store: ProgressStore) -> None:
    gateway = store.gateway
    user = store.enroll_user("Alice")
    store.complete_day(user.id, 1)
    saved_before = gateway.path.read_text(encoding="utf-8")

    again = store.complete_day(user.id, 1)

    assert again.already_completed is True
    assert again.global_count == 1
    assert store.get_day_count(1) == 1
    assert store.get_user(user.id).completed_days == [1]
    assert gateway.path.read_text(encoding="utf-8") == saved_before


def test_skipping_unlocked_days_is_allowed(store: ProgressStore, clock) -> None:
    user = store.enroll_user("Alice")
    clock.advance(days=3)

    store.complete_day(user.id, 3)
    store.complete_day(user.id, 1)

    assert store.get_user(user.id).completed_days == [3, 1]
    assert store.get_all_counts() == {3: 1, 1: 1}


def test_complete_day_rejects_non_positive_days(store: ProgressStore) -> None:
    user = store.enroll_user("Alice")
    with pytest.raises(InvalidInputError):
        store.complete_day(user.id, 0)
    assert store.get_all_counts() == {}


def test_complete_day_for_unknown_user(store: ProgressStore) -> None:
    with pytest.raises(UserNotFoundError):
        store.complete_day("missing", 1)


def test_day_count_matches_distinct_completions(store: ProgressStore) -> None:
    assert store.get_day_count(1) == 0
    users = [store.enroll_user(f"learner-{index}") for index in range(4)]
    for user in users:
        store.complete_day(user.id, 1)
    store.complete_day(users[0].id, 1)

    assert store.get_day_count(1) == 4
    assert store.get_day_count(2) == 0


def test_all_counts_is_a_copy(store: ProgressStore) -> None:
    user = store.enroll_user("Alice")
    store.complete_day(user.id, 1)

    counts = store.get_all_counts()
    counts[1] = 99

    assert store.get_day_count(1) == 1


def test_returned_users_are_copies(store: ProgressStore) -> None:
    user = store.enroll_user("Alice")
    user.completed_days.append(1)

    assert store.get_user(user.id).completed_days == []


def test_delete_removes_user_but_keeps_counts(store: ProgressStore) -> None:
    user = store.enroll_user("Alice")
    store.complete_day(user.id, 1)

    store.delete_user(user.id)

    with pytest.raises(UserNotFoundError):
        store.get_user(user.id)
    with pytest.raises(UserNotFoundError):
        store.delete_user(user.id)
    with pytest.raises(UserNotFoundError):
        store.complete_day(user.id, 1)
    assert store.get_day_count(1) == 1


def test_counts_include_deleted_users(store: ProgressStore) -> None:
    first = store.enroll_user("First")
    store.complete_day(first.id, 1)
    store.delete_user(first.id)

    second = store.enroll_user("Second")
    result = store.complete_day(second.id, 1)

    assert result.global_count == 2


def test_concurrent_completions_by_two_users_are_not_lost(clock) -> None:
    gateway = _MemoryGateway(delay=0.01)
    store = ProgressStore(gateway, clock=clock)
    users = [store.enroll_user("Alice"), store.enroll_user("Bob")]
    barrier = threading.Barrier(len(users))

    def worker(user_id: str) -> None:
        barrier.wait()
        store.complete_day(user_id, 1)

    threads = [threading.Thread(target=worker, args=(user.id,)) for user in users]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.get_day_count(1) == 2
    assert gateway.saved[-1].global_counts == {1: 2}


def test_concurrent_completions_by_same_user_count_once(clock) -> None:
    store = ProgressStore(_MemoryGateway(delay=0.005), clock=clock)
    user = store.enroll_user("Alice")
    barrier = threading.Barrier(8)
    results = []

    def worker() -> None:
        barrier.wait()
        results.append(store.complete_day(user.id, 1))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.get_day_count(1) == 1
    assert sum(1 for result in results if not result.already_completed) == 1
    assert store.get_user(user.id).completed_days == [1]


def test_failed_save_keeps_in_memory_change(clock) -> None:
    class _BrokenGateway(_MemoryGateway):
        def save(self, state: ProgressState) -> None:
            from lesson_progress.errors import PersistenceError

            raise PersistenceError("disk full")

    events: List[ProgressEvent] = []
    subscribe(events.append)
    store = ProgressStore(_BrokenGateway(), clock=clock)

    user = store.enroll_user("Alice")
    result = store.complete_day(user.id, 1)

    assert result.global_count == 1
    assert store.get_user(user.id).completed_days == [1]
    failures = [event for event in events if event.name == "persistence_failed"]
    assert [event.payload["operation"] for event in failures] == ["enroll_user", "complete_day"]


def test_completion_emits_telemetry(store: ProgressStore) -> None:
    events: List[ProgressEvent] = []
    subscribe(events.append)
    user = store.enroll_user("Alice")

    store.complete_day(user.id, 1)
    store.complete_day(user.id, 1)

    completions = [event.payload for event in events if event.name == "lesson_day_completed"]
    assert [payload["already_completed"] for payload in completions] == [False, True]
    assert all(payload["global_count"] == 1 for payload in completions)
