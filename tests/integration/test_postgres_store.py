from __future__ import annotations

from datetime import timedelta

from task_api.app.results import Invalid, NotFound, Ok
from task_api.app.storage import PostgresTaskStore


def test_postgres_crud_roundtrip(postgres_store: PostgresTaskStore) -> None:
    created = postgres_store.create({"title": "Integration", "description": "pg"})
    assert isinstance(created, Ok)
    task = created.value
    assert task.id == 1
    assert task.status == "pending"
    assert task.created_at == "2026-01-15 09:00:00"

    assert postgres_store.find_by_id(task.id) == Ok(task)
    assert postgres_store.update(task.id, {}) == Ok(task)

    updated = postgres_store.update(task.id, {"status": "completed"})
    assert updated.value.status == "completed"
    assert updated.value.updated_at > task.updated_at

    assert isinstance(postgres_store.update(task.id, {"title": " "}), Invalid)
    assert postgres_store.delete(task.id) == Ok(True)
    assert isinstance(postgres_store.find_by_id(task.id), NotFound)
    assert postgres_store.delete(task.id) == Ok(False)
    assert postgres_store.ping() is True


def test_postgres_ordering_and_filter(postgres_store: PostgresTaskStore, clock) -> None:
    clock.step = timedelta(0)
    for title, status in (("a", "pending"), ("b", "completed"), ("c", "pending")):
        postgres_store.create({"title": title, "status": status})

    everything = postgres_store.find_all()
    assert [task.title for task in everything.value] == ["c", "b", "a"]

    pending = postgres_store.find_all({"status": "pending"})
    assert [task.title for task in pending.value] == ["c", "a"]
