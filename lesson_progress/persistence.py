"""Snapshot persistence gateways used by the progress store."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from pydantic import ValidationError
from sqlalchemy import Engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .config import Settings
from .db.base import Base
from .db.models import GlobalCountModel, ProgressUserModel
from .db.session import build_engine, get_engine, make_session_factory, session_scope
from .errors import PersistenceError
from .models import ProgressState, User, parse_day

logger = logging.getLogger(__name__)


class PersistenceGateway(Protocol):
    """Load/save contract consumed by the progress store."""

    def load(self) -> ProgressState:  # pragma: no cover - protocol definition
        ...

    def save(self, state: ProgressState) -> None:  # pragma: no cover - protocol definition
        ...

    def describe(self) -> str:  # pragma: no cover - protocol definition
        ...


def state_from_document(raw: Any) -> ProgressState:
    """Build a state from a decoded document, skipping entries that fail validation."""
    if not isinstance(raw, dict):
        raise ValueError("Progress document must be a JSON object.")

    users: Dict[str, User] = {}
    raw_users = raw.get("users") or {}
    if not isinstance(raw_users, dict):
        raise ValueError("'users' must be a mapping of id to user.")
    for key, payload in raw_users.items():
        try:
            user = User.model_validate(payload)
        except ValidationError:
            logger.exception("Failed to parse stored user %s", key)
            continue
        users[user.id] = user

    raw_counts = raw.get("globalCounts", raw.get("global_counts")) or {}
    if not isinstance(raw_counts, dict):
        raise ValueError("'globalCounts' must be a mapping of day to count.")
    counts: Dict[int, int] = {}
    for key, value in raw_counts.items():
        day = parse_day(key)
        count = parse_day(value)
        if day is None or day < 1 or count is None or count < 0:
            logger.warning("Skipping stored count %r=%r; expected a positive day and a non-negative count", key, value)
            continue
        counts[day] = count
    return ProgressState(users=users, global_counts=counts)


class JsonFileGateway:
    """Single human-readable JSON document, replaced atomically on every save."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def describe(self) -> str:
        return f"file:{self._path}"

    def load(self) -> ProgressState:
        if not self._path.exists():
            logger.info("No existing data file found at %s, starting fresh", self._path)
            return ProgressState()
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
            return state_from_document(raw)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("Data file %s is unreadable, starting fresh: %s", self._path, exc)
            return ProgressState()

    def save(self, state: ProgressState) -> None:
        document = state.as_document()
        tmp_name: Optional[str] = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                json.dump(document, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as exc:
            raise PersistenceError(f"Failed to write {self._path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("Could not remove temporary snapshot %s", tmp_name)


class DatabaseGateway:
    """Snapshot stored in two tables and rewritten inside a single transaction."""

    def __init__(self, engine: Optional[Engine] = None) -> None:
        self._engine = engine or get_engine()
        self._session_factory: sessionmaker[Session] = make_session_factory(self._engine)
        Base.metadata.create_all(self._engine)

    def describe(self) -> str:
        return f"database:{self._engine.url.render_as_string(hide_password=True)}"

    def load(self) -> ProgressState:
        try:
            with session_scope(self._session_factory, commit=False) as session:
                user_rows = session.execute(select(ProgressUserModel)).scalars().all()
                count_rows = session.execute(select(GlobalCountModel)).scalars().all()
                users: Dict[str, User] = {}
                for row in user_rows:
                    try:
                        user = User(
                            id=row.id,
                            name=row.name,
                            enrolled_at=row.enrolled_at,
                            completed_days=list(row.completed_days or []),
                        )
                    except ValidationError:
                        logger.exception("Failed to parse stored user %s", row.id)
                        continue
                    users[user.id] = user
                counts = {row.day: row.count for row in count_rows}
            return ProgressState(users=users, global_counts=counts)
        except (SQLAlchemyError, ValidationError) as exc:
            logger.warning("Stored progress could not be read, starting fresh: %s", exc)
            return ProgressState()

    def save(self, state: ProgressState) -> None:
        try:
            with session_scope(self._session_factory) as session:
                session.execute(delete(ProgressUserModel))
                session.execute(delete(GlobalCountModel))
                session.add_all(
                    ProgressUserModel(
                        id=user.id,
                        name=user.name,
                        enrolled_at=user.enrolled_at,
                        completed_days=list(user.completed_days),
                    )
                    for user in state.users.values()
                )
                session.add_all(
                    GlobalCountModel(day=day, count=count)
                    for day, count in state.global_counts.items()
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to save progress snapshot: {exc}") from exc


def build_gateway(settings: Settings) -> PersistenceGateway:
    if settings.persistence_mode == "database":
        return DatabaseGateway(build_engine(settings))
    return JsonFileGateway(settings.data_file)


__all__ = [
    "DatabaseGateway",
    "JsonFileGateway",
    "PersistenceGateway",
    "build_gateway",
    "state_from_document",
]
