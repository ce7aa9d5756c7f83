# tests/conftest.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from tasktrack.config import TaskTrackConfig
from tasktrack.tasks.queries import TaskQueryEngine
from tasktrack.tasks.repository import TaskRepository
from tasktrack.tasks.service import TaskService
from tasktrack.tasks.storage import InMemoryStorage, JsonFileStorage

START = datetime(2024, 12, 1, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def repository(clock: FixedClock) -> TaskRepository:
    return TaskRepository(clock=clock)


@pytest.fixture()
def engine(repository: TaskRepository, clock: FixedClock) -> TaskQueryEngine:
    return TaskQueryEngine(repository, clock=clock, due_soon_days=7)


@pytest.fixture()
def memory_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture()
def json_path(tmp_path: Path) -> Path:
    return tmp_path / "tasks.json"


@pytest.fixture()
def json_storage(json_path: Path) -> JsonFileStorage:
    return JsonFileStorage(json_path)


@pytest.fixture()
def config(json_path: Path) -> TaskTrackConfig:
    return TaskTrackConfig(storage_path=str(json_path), due_soon_days=7)


@pytest.fixture()
def service(memory_storage: InMemoryStorage, config: TaskTrackConfig, clock: FixedClock) -> TaskService:
    return TaskService(storage=memory_storage, config=config, clock=clock)

