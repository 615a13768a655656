"""ORM models backing the database persistence gateway."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin


class ProgressUserModel(TimestampMixin, Base):
    __tablename__ = "progress_users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Ordered as completed; stored as a JSON list to keep insertion order.
    completed_days: Mapped[list[int]] = mapped_column(JSON, default=list, nullable=False)


class GlobalCountModel(TimestampMixin, Base):
    __tablename__ = "progress_global_counts"

    day: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


__all__ = ["GlobalCountModel", "ProgressUserModel"]
