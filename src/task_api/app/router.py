"""Pattern-based request router.

Patterns are literal segments plus ``{name}`` placeholders, e.g. ``/tasks/{id}``.
A request matches a pattern only when the segment counts are equal and every
literal segment is identical. A ``{id}`` placeholder additionally requires a
numeric segment and hands the handler an ``int``; other placeholders hand over
the raw string.

When nothing matches the method + path, the router checks whether the path
exists under another method (405 with ``Allow``) before falling back to 404.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from .responses import ApiRequest, ApiResponse, error_response
from .validator import is_numeric, to_int

logger = logging.getLogger(__name__)

Handler = Callable[..., ApiResponse]

_PLACEHOLDER = re.compile(r"^\{(.+)\}$")


@dataclass(frozen=True)
class Route:
    method: str
    pattern: str
    handler: Handler
    segments: tuple[str, ...]


def split_path(path: str) -> list[str]:
    """Drop the query string and outer slashes, then split into segments."""
    trimmed = urlsplit(path).path.strip("/")
    if not trimmed:
        return []
    return trimmed.split("/")


class Router:
    """Ordered route table; the first registered match wins."""

    def __init__(self) -> None:
        self._routes: list[Route] = []

    @property
    def routes(self) -> tuple[Route, ...]:
        return tuple(self._routes)

    def add_route(self, method: str, pattern: str, handler: Handler) -> None:
        self._routes.append(
            Route(
                method=method.upper(),
                pattern=pattern,
                handler=handler,
                segments=tuple(split_path(pattern)),
            )
        )

    def route(self, method: str, uri: str, *, body: bytes = b"") -> ApiResponse:
        """Dispatch one request and always return a JSON-ready response."""
        method = method.upper()
        parts = urlsplit(uri)
        request = ApiRequest(
            method=method,
            path=parts.path,
            query=dict(parse_qsl(parts.query, keep_blank_values=True)),
            body=body,
        )
        request_segments = split_path(parts.path)

        for route in self._routes:
            if route.method != method:
                continue
            params = _match(route.segments, request_segments)
            if params is not None:
                return self._invoke(route, request, params)

        allowed = self.allowed_methods(parts.path)
        if allowed:
            logger.debug("router event=method_not_allowed method=%s path=%s", method, parts.path)
            return error_response(
                405,
                f"Method {method} not allowed for this endpoint",
                "METHOD_NOT_ALLOWED",
                headers={"Allow": ", ".join(allowed)},
                allowed_methods=allowed,
            )

        logger.debug("router event=not_found method=%s path=%s", method, parts.path)
        return error_response(404, "Route not found", "ROUTE_NOT_FOUND")

    def allowed_methods(self, uri: str) -> list[str]:
        """Methods of every route whose pattern matches ``uri``, first match order."""
        request_segments = split_path(uri)
        allowed: list[str] = []
        for route in self._routes:
            if route.method in allowed:
                continue
            if _match(route.segments, request_segments) is not None:
                allowed.append(route.method)
        return allowed

    @staticmethod
    def _invoke(route: Route, request: ApiRequest, params: list[Any]) -> ApiResponse:
        try:
            return route.handler(request, *params)
        except Exception:  # noqa: BLE001
            logger.exception(
                "router event=handler_error method=%s path=%s pattern=%s",
                request.method,
                request.path,
                route.pattern,
            )
            return error_response(500, "Internal server error", "INTERNAL_SERVER_ERROR")


def _match(pattern_segments: tuple[str, ...], request_segments: list[str]) -> list[Any] | None:
    """Return the extracted placeholder values, or None when the pattern does not fit."""
    if len(pattern_segments) != len(request_segments):
        return None

    params: list[Any] = []
    for pattern_part, request_part in zip(pattern_segments, request_segments):
        placeholder = _PLACEHOLDER.match(pattern_part)
        if placeholder is None:
            if pattern_part != request_part:
                return None
            continue

        if placeholder.group(1) == "id":
            if not is_numeric(request_part):
                return None
            params.append(to_int(request_part))
        else:
            params.append(request_part)
    return params
