"""Field checks for task payloads, path ids, and query filters.

Every function here is pure: each call builds its own error mapping and
returns it. An empty mapping (or ``None`` for single-value checks) means valid.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from typing import Any

from .models import DESCRIPTION_MAX_LENGTH, MAX_TASK_ID, TITLE_MAX_LENGTH, VALID_STATUSES

_STATUS_CHOICES = ", ".join(VALID_STATUSES)

INVALID_ID_MESSAGE = "Invalid ID format. ID must be a positive integer"
INVALID_STATUS_MESSAGE = f"Invalid status. Must be one of: {_STATUS_CHOICES}"
INVALID_FILTER_MESSAGE = f"Invalid status filter. Must be one of: {_STATUS_CHOICES}"


def validate_task_data(data: Mapping[str, Any], *, is_update: bool = False) -> dict[str, str]:
    """Return field -> message for every violated constraint.

    Creation requires a title. Updates only check the keys that are present,
    and a present-but-blank title gets its own message. A missing status is
    never an error; the store defaults it on create.
    """
    errors: dict[str, str] = {}

    if not is_update or "title" in data:
        title_error = _check_title(data.get("title"), required=not is_update)
        if title_error:
            errors["title"] = title_error

    if "description" in data:
        description_error = _check_description(data["description"])
        if description_error:
            errors["description"] = description_error

    if data.get("status") is not None and data["status"] not in VALID_STATUSES:
        errors["status"] = INVALID_STATUS_MESSAGE

    return errors


def validate_id(value: Any) -> str | None:
    if not is_numeric(value) or not 1 <= to_int(value) <= MAX_TASK_ID:
        return INVALID_ID_MESSAGE
    return None


def validate_status_filter(status: str | None) -> str | None:
    # Absent or blank filter means "no filter".
    if status is None or (isinstance(status, str) and not status.strip()):
        return None
    if status not in VALID_STATUSES:
        return INVALID_FILTER_MESSAGE
    return None


def is_valid_json(text: str | bytes) -> bool:
    """True when ``text`` parses as any well-formed JSON value."""
    try:
        json.loads(text, parse_constant=_reject_constant)
    except (TypeError, ValueError):
        return False
    return True


def sanitize_data(data: Mapping[str, Any]) -> dict[str, Any]:
    """Copy ``data`` with surrounding whitespace stripped from string values."""
    return {key: value.strip() if isinstance(value, str) else value for key, value in data.items()}


def is_numeric(value: Any) -> bool:
    """Accept ints, finite floats, and ASCII strings holding a decimal number."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, str):
        # float() also takes non-ASCII digits and underscores; ids may not.
        if "_" in value or not value.isascii():
            return False
        try:
            number = float(value)
        except ValueError:
            return False
        return math.isfinite(number)
    return False


def to_int(value: Any) -> int:
    """Truncate a value already accepted by :func:`is_numeric`."""
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            return int(float(text))
    return int(value)


def _check_title(title: Any, *, required: bool) -> str | None:
    if required:
        if title is None or (isinstance(title, str) and not title.strip()):
            return "Title is required"
    elif title is None or (isinstance(title, str) and not title.strip()):
        return "Title cannot be empty"

    if not isinstance(title, str):
        return "Title must be a string"
    if len(title) > TITLE_MAX_LENGTH:
        return f"Title must not exceed {TITLE_MAX_LENGTH} characters"
    return None


def _check_description(description: Any) -> str | None:
    if description is None:
        return None
    if not isinstance(description, str):
        return "Description must be a string"
    if len(description) > DESCRIPTION_MAX_LENGTH:
        return f"Description must not exceed {DESCRIPTION_MAX_LENGTH} characters"
    return None


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")
