"""Transport-neutral request/response values passed between router and handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ApiRequest:
    method: str
    path: str
    query: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass(frozen=True)
class ApiResponse:
    status_code: int
    body: Any
    headers: dict[str, str] = field(default_factory=dict)


def json_response(status_code: int, body: Any) -> ApiResponse:
    return ApiResponse(status_code=status_code, body=body)


def error_response(
    status_code: int,
    message: str,
    code: str,
    *,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> ApiResponse:
    """Build the `{error, message, code, ...}` envelope used for every non-2xx reply."""
    body: dict[str, Any] = {"error": True, "message": message, "code": code}
    body.update(extra)
    return ApiResponse(status_code=status_code, body=body, headers=headers or {})
