"""REST endpoints for enrollment, lesson completion and global counts."""

from __future__ import annotations

import logging
import re
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field

from .errors import DayNotYetAvailableError, InvalidInputError, UserNotFoundError
from .models import User
from .store import ProgressStore

router = APIRouter(prefix="/api", tags=["progress"])
logger = logging.getLogger(__name__)

USER_NOT_FOUND = "User not found"
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class EnrollUserRequest(BaseModel):
    name: Optional[str] = None


class CompletionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    global_count: int = Field(alias="globalCount")
    already_completed: bool = Field(alias="alreadyCompleted")


class DayCountPayload(BaseModel):
    day: Optional[int]
    count: int


class MessagePayload(BaseModel):
    message: str


def get_progress_store(request: Request) -> ProgressStore:
    return request.app.state.progress_store


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=USER_NOT_FOUND)


@router.post("/users", response_model=User, status_code=status.HTTP_200_OK)
def enroll_user(
    payload: Optional[EnrollUserRequest] = None,
    store: ProgressStore = Depends(get_progress_store),
) -> User:
    try:
        user = store.enroll_user(payload.name if payload else None)
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    logger.info("Enrolled user %s", user.id)
    return user


@router.get("/users/{user_id}", response_model=User, status_code=status.HTTP_200_OK)
def get_user(user_id: str, store: ProgressStore = Depends(get_progress_store)) -> User:
    try:
        return store.get_user(user_id)
    except UserNotFoundError as exc:
        raise _not_found() from exc


@router.post(
    "/users/{user_id}/complete/{day}",
    response_model=CompletionPayload,
    status_code=status.HTTP_200_OK,
)
def complete_day(
    user_id: str,
    day: int,
    store: ProgressStore = Depends(get_progress_store),
) -> CompletionPayload:
    try:
        result = store.complete_day(user_id, day)
    except UserNotFoundError as exc:
        raise _not_found() from exc
    except DayNotYetAvailableError as exc:
        logger.info("Rejected day %s for %s; latest unlocked is %s", day, user_id, exc.allowed_day)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Lesson not yet available",
        ) from exc
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return CompletionPayload(
        message="Already completed" if result.already_completed else "Lesson completed",
        global_count=result.global_count,
        already_completed=result.already_completed,
    )


@router.get("/global-count/{day}", response_model=DayCountPayload)
def get_day_count(day: str, store: ProgressStore = Depends(get_progress_store)) -> DayCountPayload:
    # Leading digits are the day ("3rd" reads as 3); anything else reports day null, count 0.
    match = _LEADING_INT.match(day)
    if match is None:
        return DayCountPayload(day=None, count=0)
    day_number = int(match.group(1))
    return DayCountPayload(day=day_number, count=store.get_day_count(day_number))


@router.get("/global-counts", response_model=Dict[str, int])
def get_all_counts(store: ProgressStore = Depends(get_progress_store)) -> Dict[str, int]:
    return {str(day): count for day, count in sorted(store.get_all_counts().items())}


@router.delete("/users/{user_id}", response_model=MessagePayload)
def delete_user(user_id: str, store: ProgressStore = Depends(get_progress_store)) -> MessagePayload:
    try:
        store.delete_user(user_id)
    except UserNotFoundError as exc:
        raise _not_found() from exc
    logger.info("Deleted user %s", user_id)
    return MessagePayload(message="User deleted")


__all__ = ["get_progress_store", "router"]
