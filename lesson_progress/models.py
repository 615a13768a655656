"""Progress records and the persisted snapshot shape."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


def _now() -> datetime:
    return datetime.now(timezone.utc)


def parse_day(value: Any) -> Optional[int]:
    """Integer lesson day from a stored value, or None for nulls, floats and junk strings."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("+-").isdigit():
        return int(value.strip())
    return None


class User(BaseModel):
    """Enrolled learner. Also reads the legacy `uuid`, `startDate` and `completed` keys."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "uuid"))
    name: str
    enrolled_at: datetime = Field(
        default_factory=_now,
        validation_alias=AliasChoices("enrolledAt", "startDate", "enrolled_at"),
        serialization_alias="enrolledAt",
    )
    completed_days: List[int] = Field(
        default_factory=list,
        validation_alias=AliasChoices("completedDays", "completed", "completed_days"),
        serialization_alias="completedDays",
    )

    @field_validator("enrolled_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @field_validator("completed_days", mode="before")
    @classmethod
    def _unique_positive_days(cls, value: Any) -> List[int]:
        if not isinstance(value, list):
            return value
        seen: set[int] = set()
        days: List[int] = []
        for entry in value:
            day = parse_day(entry)
            if day is None or day < 1 or day in seen:
                continue
            seen.add(day)
            days.append(day)
        return days


class CompletionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    already_completed: bool = Field(alias="alreadyCompleted")
    global_count: int = Field(ge=0, alias="globalCount")


class ProgressState(BaseModel):
    """Full snapshot: every user plus the historical per-day completion tally."""

    model_config = ConfigDict(populate_by_name=True)

    users: Dict[str, User] = Field(default_factory=dict)
    global_counts: Dict[int, Annotated[int, Field(ge=0)]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("globalCounts", "global_counts"),
        serialization_alias="globalCounts",
    )

    @model_validator(mode="after")
    def _key_users_by_id(self) -> "ProgressState":
        if any(key != user.id for key, user in self.users.items()):
            self.users = {user.id: user for user in self.users.values()}
        return self

    def as_document(self) -> Dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)


__all__ = ["CompletionResult", "ProgressState", "User", "parse_day"]
