"""Pydantic models shared across the router, handler, and storage layers.

Terms used in this file:
- TaskStatus: the fixed set of lifecycle values a task may hold.
- Task: the formatted record returned by every store read and by the API.
"""

from __future__ import annotations

from typing import Literal, get_args

from pydantic import BaseModel

# Task lifecycle states enforced by the validator and the store.
TaskStatus = Literal["pending", "in-progress", "completed"]
VALID_STATUSES: tuple[str, ...] = get_args(TaskStatus)
DEFAULT_STATUS: TaskStatus = "pending"

TITLE_MAX_LENGTH = 255
DESCRIPTION_MAX_LENGTH = 1000

# Largest id a signed 64-bit INTEGER / BIGINT primary key can hold.
MAX_TASK_ID = 2**63 - 1

# Second-resolution timestamps, e.g. 2026-01-31 09:15:00.
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class Task(BaseModel):
    """Canonical task record shape returned by API/storage."""

    id: int
    title: str
    description: str | None = None
    status: TaskStatus = DEFAULT_STATUS
    created_at: str
    updated_at: str
