from __future__ import annotations

import os
from collections.abc import Iterator

import psycopg
import pytest

from task_api.app.storage import PostgresTaskStore


@pytest.fixture
def postgres_store(clock) -> Iterator[PostgresTaskStore]:
    if os.getenv("RUN_POSTGRES_INTEGRATION_TESTS") != "1":
        pytest.skip("Set RUN_POSTGRES_INTEGRATION_TESTS=1 to run PostgreSQL integration tests.")
    database_url = os.getenv("TASK_API_TEST_DATABASE_URL", "").strip()
    if not database_url:
        pytest.skip("TASK_API_TEST_DATABASE_URL is required for PostgreSQL integration tests.")

    store = PostgresTaskStore(database_url, clock=clock)
    with psycopg.connect(database_url) as conn:
        conn.execute("TRUNCATE tasks RESTART IDENTITY")
        conn.commit()
    yield store
