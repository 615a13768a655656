"""Daily lesson progress tracking service."""

from .errors import (
    DayNotYetAvailableError,
    InvalidInputError,
    PersistenceError,
    ProgressError,
    UserNotFoundError,
)
from .models import CompletionResult, ProgressState, User
from .store import ProgressStore

__all__ = [
    "CompletionResult",
    "DayNotYetAvailableError",
    "InvalidInputError",
    "PersistenceError",
    "ProgressError",
    "ProgressState",
    "ProgressStore",
    "User",
    "UserNotFoundError",
]
