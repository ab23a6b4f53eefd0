from __future__ import annotations

import argparse
import sqlite3
from pathlib import Path
from typing import Any

from task_api.app.storage import MIGRATIONS_DIR


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Copy the tasks table from a SQLite DB file to a PostgreSQL database."
    )
    parser.add_argument(
        "--sqlite-path",
        type=Path,
        default=Path("storage/database.sqlite"),
        help="Path to source SQLite database file (default: storage/database.sqlite).",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        required=True,
        help="PostgreSQL connection URL.",
    )
    return parser.parse_args(argv)


def _load_rows(sqlite_path: Path) -> list[sqlite3.Row]:
    if not sqlite_path.exists():
        raise FileNotFoundError(f"SQLite file not found: {sqlite_path}")
    conn = sqlite3.connect(sqlite_path)
    try:
        conn.row_factory = sqlite3.Row
        rows = conn.execute("""
            SELECT id, title, description, status, created_at, updated_at
            FROM tasks
            ORDER BY id
            """).fetchall()
    finally:
        conn.close()
    return rows


def _ensure_postgres_schema(conn: Any) -> None:
    for script in sorted((MIGRATIONS_DIR / "postgres").glob("*.sql")):
        conn.execute(script.read_text(encoding="utf-8"))


def migrate(*, sqlite_path: Path, database_url: str) -> int:
    rows = _load_rows(sqlite_path)

    import psycopg

    with psycopg.connect(database_url) as conn:
        _ensure_postgres_schema(conn)

        for row in rows:
            conn.execute(
                """
                INSERT INTO tasks (id, title, description, status, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s::timestamp, %s::timestamp)
                ON CONFLICT (id) DO UPDATE
                SET title = EXCLUDED.title,
                    description = EXCLUDED.description,
                    status = EXCLUDED.status,
                    created_at = EXCLUDED.created_at,
                    updated_at = EXCLUDED.updated_at
                """,
                (
                    row["id"],
                    row["title"],
                    row["description"],
                    row["status"],
                    row["created_at"],
                    row["updated_at"],
                ),
            )
        # Copied ids bypass the sequence; move it past the highest id.
        conn.execute("""
            SELECT setval(pg_get_serial_sequence('tasks', 'id'), COALESCE(MAX(id), 0) + 1, false)
            FROM tasks
            """)
        conn.commit()

    return len(rows)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    migrated = migrate(sqlite_path=args.sqlite_path, database_url=args.database_url)
    print(f"Migrated {migrated} task row(s) from {args.sqlite_path} to PostgreSQL database.")


if __name__ == "__main__":
    main()
