"""Relational storage backends for the `tasks` table.

Terms used in this file:
- Migration: a SQL script under ``task_api/migrations/<dialect>/`` that creates
  the table before normal reads/writes.
- Row: a dict-like record from the driver (``sqlite3.Row`` or psycopg ``dict_row``).
- Result: every public operation returns an ``Ok``/``Invalid``/``NotFound``/
  ``StoreFailure`` value instead of raising.
"""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import psycopg
from psycopg.rows import dict_row

from .models import DEFAULT_STATUS, MAX_TASK_ID, TIMESTAMP_FORMAT, VALID_STATUSES, Task
from .results import Invalid, NotFound, Ok, StoreFailure, StoreResult
from .validator import validate_status_filter, validate_task_data

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"

# Columns a partial update may replace, in SET-clause order.
UPDATABLE_FIELDS = ("title", "description", "status")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class TaskStore(ABC):
    """Validation, formatting, and fault translation shared by every backend.

    Subclasses only provide the SQL primitives (``_insert``, ``_select_one``,
    ``_select_all``, ``_update_row``, ``_delete_row``, ``_ping``) and the
    driver exception types in ``database_errors``.
    """

    dialect = ""
    database_errors: tuple[type[BaseException], ...] = ()

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._clock = clock or utc_now

    def create(self, data: Mapping[str, Any]) -> StoreResult[Task]:
        """Insert a validated task and return the row as stored."""
        errors = validate_task_data(data)
        if errors:
            return Invalid(errors)

        now = self._timestamp()
        try:
            task_id = self._insert(
                title=data["title"],
                description=data.get("description"),
                status=data.get("status") or DEFAULT_STATUS,
                now=now,
            )
            row = self._select_one(task_id)
        except self.database_errors as exc:
            return self._failure("create", exc)
        if row is None:
            return self._failure("create", LookupError("Failed to load created task"))

        logger.info("task_store event=create task_id=%s backend=%s", task_id, self.dialect)
        return Ok(self._row_to_task(row))

    def find_all(self, filters: Mapping[str, Any] | None = None) -> StoreResult[list[Task]]:
        """List tasks newest first, optionally restricted to one status."""
        status = (filters or {}).get("status")
        filter_error = validate_status_filter(status)
        if filter_error:
            return Invalid({"status": filter_error})

        if status is not None and not status.strip():
            status = None
        try:
            rows = self._select_all(status)
        except self.database_errors as exc:
            return self._failure("find_all", exc)
        return Ok([self._row_to_task(row) for row in rows])

    def find_by_id(self, task_id: int) -> StoreResult[Task]:
        if not _storable_id(task_id):
            return NotFound()
        try:
            row = self._select_one(task_id)
        except self.database_errors as exc:
            return self._failure("find_by_id", exc, task_id=task_id)
        if row is None:
            return NotFound()
        return Ok(self._row_to_task(row))

    def update(self, task_id: int, data: Mapping[str, Any]) -> StoreResult[Task]:
        """Replace only the fields present in ``data``.

        Existence is checked before the patch is validated. A patch with no
        recognised fields returns the current record untouched.
        """
        if not _storable_id(task_id):
            return NotFound()
        try:
            row = self._select_one(task_id)
        except self.database_errors as exc:
            return self._failure("update", exc, task_id=task_id)
        if row is None:
            return NotFound()

        errors = validate_task_data(data, is_update=True)
        if errors:
            return Invalid(errors)

        current = self._row_to_task(row)
        changes = _collect_changes(data)
        if not changes:
            return Ok(current)

        # Never move updated_at backwards on clock skew.
        changes["updated_at"] = max(self._timestamp(), current.updated_at)
        try:
            self._update_row(task_id, changes)
            refreshed = self._select_one(task_id)
        except self.database_errors as exc:
            return self._failure("update", exc, task_id=task_id)
        if refreshed is None:
            return NotFound()

        logger.info(
            "task_store event=update task_id=%s fields=%s",
            task_id,
            ",".join(field for field in UPDATABLE_FIELDS if field in changes),
        )
        return Ok(self._row_to_task(refreshed))

    def delete(self, task_id: int) -> StoreResult[bool]:
        """Remove a task; ``Ok(False)`` when the id did not exist."""
        if not _storable_id(task_id):
            return Ok(False)
        try:
            removed = self._delete_row(task_id)
        except self.database_errors as exc:
            return self._failure("delete", exc, task_id=task_id)
        if removed:
            logger.info("task_store event=delete task_id=%s", task_id)
        return Ok(removed > 0)

    def ping(self) -> bool:
        """Return True when a trivial query succeeds."""
        try:
            self._ping()
        except self.database_errors as exc:
            logger.warning("task_store event=ping_failed backend=%s error=%s", self.dialect, exc)
            return False
        return True

    @staticmethod
    def valid_statuses() -> list[str]:
        return list(VALID_STATUSES)

    def migration_scripts(self) -> list[Path]:
        """Schema scripts for this backend in the order they must run."""
        return sorted((MIGRATIONS_DIR / self.dialect).glob("*.sql"))

    def _timestamp(self) -> str:
        return self._clock().strftime(TIMESTAMP_FORMAT)

    def _failure(self, operation: str, exc: BaseException, *, task_id: int | None = None) -> StoreFailure:
        logger.error(
            "task_store event=failure operation=%s task_id=%s backend=%s error=%s",
            operation,
            task_id,
            self.dialect,
            exc,
            exc_info=exc,
        )
        return StoreFailure(operation=operation, cause=exc)

    @staticmethod
    def _format_timestamp(raw: Any) -> str:
        if isinstance(raw, datetime):
            return raw.strftime(TIMESTAMP_FORMAT)
        if isinstance(raw, str):
            return raw
        raise TypeError(f"Unsupported timestamp value: {type(raw)!r}")

    @classmethod
    def _row_to_task(cls, row: Any) -> Task:
        """Map one DB row to the canonical Task model."""
        return Task(
            id=int(row["id"]),
            title=row["title"],
            description=row["description"],
            status=row["status"],
            created_at=cls._format_timestamp(row["created_at"]),
            updated_at=cls._format_timestamp(row["updated_at"]),
        )

    @abstractmethod
    def _insert(self, *, title: str, description: str | None, status: str, now: str) -> int:
        ...

    @abstractmethod
    def _select_one(self, task_id: int) -> Any | None:
        ...

    @abstractmethod
    def _select_all(self, status: str | None) -> list[Any]:
        ...

    @abstractmethod
    def _update_row(self, task_id: int, changes: dict[str, Any]) -> None:
        ...

    @abstractmethod
    def _delete_row(self, task_id: int) -> int:
        ...

    @abstractmethod
    def _ping(self) -> None:
        ...


class SqliteTaskStore(TaskStore):
    """SQLite file store; each operation opens its own connection."""

    dialect = "sqlite"
    # sqlite3 raises OverflowError for ints outside the INTEGER range.
    database_errors = (sqlite3.Error, OverflowError)

    def __init__(self, db_path: str | Path, *, clock: Clock | None = None) -> None:
        super().__init__(clock=clock)
        if str(db_path) == ":memory:":
            raise ValueError("SqliteTaskStore needs a file path; ':memory:' is not shared")
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Ensure schema exists before serving requests.
        self.migrate()

    def migrate(self) -> None:
        with self._session() as conn:
            for script in self.migration_scripts():
                try:
                    conn.executescript(script.read_text(encoding="utf-8"))
                except sqlite3.Error as exc:
                    raise RuntimeError(f"Migration failed for file {script.name}: {exc}") from exc

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            with conn:
                yield conn
        finally:
            conn.close()

    def _insert(self, *, title: str, description: str | None, status: str, now: str) -> int:
        with self._session() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tasks (title, description, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (title, description, status, now, now),
            )
            return int(cursor.lastrowid)

    def _select_one(self, task_id: int) -> sqlite3.Row | None:
        with self._session() as conn:
            return conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()

    def _select_all(self, status: str | None) -> list[sqlite3.Row]:
        sql = "SELECT * FROM tasks"
        params: list[Any] = []
        if status:
            sql += " WHERE status = ?"
            params.append(status)
        sql += " ORDER BY created_at DESC, id DESC"
        with self._session() as conn:
            return conn.execute(sql, params).fetchall()

    def _update_row(self, task_id: int, changes: dict[str, Any]) -> None:
        # Column names come from UPDATABLE_FIELDS, never from the request.
        assignments = ", ".join(f"{column} = ?" for column in changes)
        with self._session() as conn:
            conn.execute(
                f"UPDATE tasks SET {assignments} WHERE id = ?",
                (*changes.values(), task_id),
            )

    def _delete_row(self, task_id: int) -> int:
        with self._session() as conn:
            return conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,)).rowcount

    def _ping(self) -> None:
        with self._session() as conn:
            conn.execute("SELECT 1").fetchone()


class PostgresTaskStore(TaskStore):
    """Thread-safe PostgreSQL-backed store for Task records."""

    dialect = "postgres"
    database_errors = (psycopg.Error,)

    def __init__(self, database_url: str, *, clock: Clock | None = None) -> None:
        if not database_url:
            raise ValueError("database_url is required")
        super().__init__(clock=clock)
        self.database_url = database_url
        # Lock guards DB operations done through this store instance.
        self._lock = threading.Lock()
        self.migrate()

    def migrate(self) -> None:
        with self._lock, self._connect() as conn:
            for script in self.migration_scripts():
                try:
                    conn.execute(script.read_text(encoding="utf-8"))
                except psycopg.Error as exc:
                    raise RuntimeError(f"Migration failed for file {script.name}: {exc}") from exc
            conn.commit()

    def _connect(self) -> psycopg.Connection[Any]:
        """Open a psycopg connection that yields dict-like rows."""
        return psycopg.connect(self.database_url, row_factory=dict_row)

    def _insert(self, *, title: str, description: str | None, status: str, now: str) -> int:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                INSERT INTO tasks (title, description, status, created_at, updated_at)
                VALUES (%s, %s, %s, %s::timestamp, %s::timestamp)
                RETURNING id
                """,
                (title, description, status, now, now),
            ).fetchone()
            conn.commit()
        return int(row["id"])

    def _select_one(self, task_id: int) -> dict[str, Any] | None:
        with self._lock, self._connect() as conn:
            return conn.execute("SELECT * FROM tasks WHERE id = %s", (task_id,)).fetchone()

    def _select_all(self, status: str | None) -> list[dict[str, Any]]:
        sql = "SELECT * FROM tasks"
        params: list[Any] = []
        if status:
            sql += " WHERE status = %s"
            params.append(status)
        sql += " ORDER BY created_at DESC, id DESC"
        with self._lock, self._connect() as conn:
            return conn.execute(sql, params).fetchall()

    def _update_row(self, task_id: int, changes: dict[str, Any]) -> None:
        assignments = ", ".join(
            f"{column} = %s::timestamp" if column == "updated_at" else f"{column} = %s"
            for column in changes
        )
        with self._lock, self._connect() as conn:
            conn.execute(
                f"UPDATE tasks SET {assignments} WHERE id = %s",
                (*changes.values(), task_id),
            )
            conn.commit()

    def _delete_row(self, task_id: int) -> int:
        with self._lock, self._connect() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE id = %s", (task_id,))
            conn.commit()
            return cursor.rowcount

    def _ping(self) -> None:
        with self._lock, self._connect() as conn:
            conn.execute("SELECT 1").fetchone()


def build_store(database_url: str, *, clock: Clock | None = None) -> TaskStore:
    """Pick a backend from the URL scheme."""
    if database_url.startswith("sqlite:///"):
        return SqliteTaskStore(database_url[len("sqlite:///") :], clock=clock)
    if database_url.startswith(("postgresql://", "postgres://")):
        return PostgresTaskStore(database_url, clock=clock)
    raise ValueError(f"Unsupported database URL: {database_url!r}")


def _collect_changes(data: Mapping[str, Any]) -> dict[str, Any]:
    """Pick the updatable keys out of a validated patch.

    A null status counts as absent; a null description clears the field.
    """
    changes: dict[str, Any] = {}
    for field in UPDATABLE_FIELDS:
        if field not in data:
            continue
        if field == "status" and data[field] is None:
            continue
        changes[field] = data[field]
    return changes


def _storable_id(task_id: int) -> bool:
    """Ids outside the 64-bit key range can never match a row."""
    return 1 <= task_id <= MAX_TASK_ID
