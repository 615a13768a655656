from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from lesson_progress.config import Settings
from lesson_progress.main import create_app
from lesson_progress.persistence import JsonFileGateway
from lesson_progress.store import ProgressStore
from lesson_progress.telemetry import reset_subscribers


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def data_file(tmp_path: Path) -> Path:
    return tmp_path / "data.json"


@pytest.fixture
def store(data_file: Path, clock: FakeClock) -> ProgressStore:
    progress_store = ProgressStore(JsonFileGateway(data_file), clock=clock)
    progress_store.initialize()
    return progress_store


@pytest.fixture
def settings(tmp_path: Path, data_file: Path) -> Settings:
    return Settings(
        LESSON_DATA_FILE=str(data_file),
        LESSON_STATIC_DIR=str(tmp_path / "public"),
    )


@pytest.fixture
def client(settings: Settings, store: ProgressStore) -> Iterator[TestClient]:
    with TestClient(create_app(settings, store=store)) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def _reset_telemetry() -> Iterator[None]:
    reset_subscribers()
    yield
    reset_subscribers()
