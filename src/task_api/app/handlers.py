"""HTTP-facing task operations.

Each handler follows the same three steps: parse/validate the request,
delegate to the store, and map the store result to a status code + JSON body.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .responses import ApiRequest, ApiResponse, error_response, json_response
from .results import Invalid, NotFound, Ok, StoreFailure, StoreResult
from .router import Router
from .storage import TaskStore
from .validator import (
    is_valid_json,
    sanitize_data,
    to_int,
    validate_id,
    validate_status_filter,
    validate_task_data,
)

logger = logging.getLogger(__name__)

INVALID_JSON_MESSAGE = "Invalid JSON in request body"


class TaskHandler:
    """Controller for the /tasks endpoints."""

    def __init__(self, store: TaskStore) -> None:
        self.store = store

    def create(self, request: ApiRequest) -> ApiResponse:
        payload = _parse_body(request.body)
        if payload is None:
            return error_response(400, INVALID_JSON_MESSAGE, "INVALID_JSON")

        data = sanitize_data(payload)
        errors = validate_task_data(data)
        if errors:
            return _validation_error(errors)
        return _to_response(self.store.create(data), success_status=201)

    def get_all(self, request: ApiRequest) -> ApiResponse:
        filters: dict[str, str] = {}
        if "status" in request.query:
            status = request.query["status"]
            status_error = validate_status_filter(status)
            if status_error:
                return error_response(400, status_error, "INVALID_FILTER")
            filters["status"] = status
        return _to_response(self.store.find_all(filters))

    def get_by_id(self, request: ApiRequest, task_id: Any) -> ApiResponse:
        id_error = validate_id(task_id)
        if id_error:
            return error_response(400, id_error, "INVALID_ID")
        return _to_response(self.store.find_by_id(to_int(task_id)))

    def update(self, request: ApiRequest, task_id: Any) -> ApiResponse:
        id_error = validate_id(task_id)
        if id_error:
            return error_response(400, id_error, "INVALID_ID")

        payload = _parse_body(request.body)
        if payload is None:
            return error_response(400, INVALID_JSON_MESSAGE, "INVALID_JSON")

        data = sanitize_data(payload)
        errors = validate_task_data(data, is_update=True)
        if errors:
            return _validation_error(errors)
        return _to_response(self.store.update(to_int(task_id), data))


def build_router(handler: TaskHandler) -> Router:
    """Register the /tasks route table on a fresh Router."""
    router = Router()
    router.add_route("POST", "/tasks", handler.create)
    router.add_route("GET", "/tasks", handler.get_all)
    router.add_route("GET", "/tasks/{id}", handler.get_by_id)
    router.add_route("PUT", "/tasks/{id}", handler.update)
    return router


def _parse_body(body: bytes) -> dict[str, Any] | None:
    """Decode a JSON object body; an empty body counts as ``{}``."""
    if not body:
        return {}
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        return None
    if not is_valid_json(text):
        return None
    data = json.loads(text)
    return data if isinstance(data, dict) else None


def _validation_error(errors: dict[str, str]) -> ApiResponse:
    return error_response(400, "Validation failed", "VALIDATION_ERROR", details=errors)


def _to_response(result: StoreResult[Any], *, success_status: int = 200) -> ApiResponse:
    """Map one store result variant to its HTTP reply."""
    if isinstance(result, Ok):
        value = result.value
        if isinstance(value, list):
            return json_response(success_status, [item.model_dump() for item in value])
        return json_response(success_status, value.model_dump())
    if isinstance(result, Invalid):
        return _validation_error(result.errors)
    if isinstance(result, NotFound):
        return error_response(404, "Task not found", "NOT_FOUND")
    if isinstance(result, StoreFailure):
        # Detail was already logged by the store; the client only sees a generic message.
        logger.warning("task_handler event=store_failure operation=%s", result.operation)
        return error_response(500, "Database error occurred", "DATABASE_ERROR")
    raise TypeError(f"Unexpected store result: {result!r}")
