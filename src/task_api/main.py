"""FastAPI application wiring for the task service.

Terms used in this file:
- app.state: holds the store, handler, and router shared by every request.
- Catch-all route: one FastAPI route that forwards every non-health request to
  the task Router, which owns the 404/405 decisions.
- Lifespan: startup hook that opens the store (and runs migrations) once.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from .app.handlers import TaskHandler, build_router
from .app.router import Router
from .app.storage import TaskStore, build_store
from .config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

DISPATCH_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    """Install a stderr handler unless logging is already configured."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger("task_api").setLevel(level.upper())


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    store_override: TaskStore | None,
) -> None:
    if not hasattr(app.state, "store"):
        database_url = settings.database_url.strip()
        if store_override is None and not database_url:
            raise RuntimeError("TASK_API_DATABASE_URL is required.")
        app.state.store = store_override or build_store(database_url)
        logger.info("app event=store_ready backend=%s", app.state.store.dialect)

    if not hasattr(app.state, "router"):
        app.state.handler = TaskHandler(app.state.store)
        app.state.router = build_router(app.state.handler)

    if not hasattr(app.state, "settings"):
        app.state.settings = settings


def create_app(
    *,
    store: TaskStore | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    """Application factory.

    Tests pass ``store`` directly; otherwise the store is built from
    ``settings.database_url`` when the app starts.
    """
    settings = settings_override or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure_runtime_state(app, settings=settings, store_override=store)
        yield

    app_lifespan = lifespan if store is None else None
    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=app_lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    # Keep test paths reliable when lifespan is not executed by the client.
    if store is not None:
        _ensure_runtime_state(app, settings=settings, store_override=store)

    def _runtime(request: Request) -> None:
        if not hasattr(request.app.state, "router"):
            _ensure_runtime_state(request.app, settings=settings, store_override=store)

    @app.get("/health")
    def health(request: Request) -> JSONResponse:
        _runtime(request)
        database_ok = request.app.state.store.ping()
        return JSONResponse(
            status_code=200 if database_ok else 503,
            content={
                "status": "ok" if database_ok else "degraded",
                "service": settings.app_name,
                "database": database_ok,
            },
        )

    # Everything else goes through the task router so 404/405 stay in one place.
    @app.api_route("/{path:path}", methods=DISPATCH_METHODS, include_in_schema=False)
    async def dispatch(request: Request) -> Response:
        # Plain OPTIONS (no preflight headers) gets an empty 200 on any path.
        if request.method == "OPTIONS":
            return Response(status_code=200)
        _runtime(request)
        router: Router = request.app.state.router
        uri = request.url.path
        if request.url.query:
            uri = f"{uri}?{request.url.query}"
        body = await request.body()
        # The store blocks on I/O, so route on a worker thread.
        response = await run_in_threadpool(router.route, request.method, uri, body=body)
        return JSONResponse(
            status_code=response.status_code,
            content=response.body,
            headers=response.headers,
        )

    return app


# Module-level app for `uvicorn task_api.main:app`.
app = create_app()
