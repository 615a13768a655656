"""Error taxonomy for lesson progress operations."""

from __future__ import annotations


class ProgressError(Exception):
    """Base class for failures raised by the progress store and gateways."""


class InvalidInputError(ProgressError, ValueError):
    """A required field was missing or blank."""


class UserNotFoundError(ProgressError, LookupError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"User '{user_id}' was not found.")
        self.user_id = user_id


class DayNotYetAvailableError(ProgressError, ValueError):
    def __init__(self, day: int, allowed_day: int) -> None:
        super().__init__(f"Lesson day {day} is locked; latest available day is {allowed_day}.")
        self.day = day
        self.allowed_day = allowed_day


class PersistenceError(ProgressError, RuntimeError):
    """Saving a snapshot failed. Never surfaced to HTTP callers."""


__all__ = [
    "DayNotYetAvailableError",
    "InvalidInputError",
    "PersistenceError",
    "ProgressError",
    "UserNotFoundError",
]
