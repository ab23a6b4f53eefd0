from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from task_api.app.storage import SqliteTaskStore
from task_api.config.settings import Settings
from task_api.main import create_app


class SteppingClock:
    """Test-only clock: every call returns a time one `step` later than the last."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        now = self.current
        self.current = self.current + self.step
        return now


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock(start=datetime(2026, 1, 15, 9, 0, 0, tzinfo=UTC))


@pytest.fixture
def store(tmp_path, clock: SteppingClock) -> SqliteTaskStore:
    return SqliteTaskStore(tmp_path / "tasks.sqlite", clock=clock)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(database_url=f"sqlite:///{tmp_path / 'unused.sqlite'}")


@pytest.fixture
def client(store: SqliteTaskStore, settings: Settings) -> Iterator[TestClient]:
    app = create_app(store=store, settings_override=settings)
    with TestClient(app) as test_client:
        yield test_client
