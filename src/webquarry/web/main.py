"""
FastAPI transport exposing the tool executor over HTTP.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable, Dict, Optional
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST

from webquarry import __version__
from webquarry.container import ServiceContainer
from webquarry.errors import RateLimitedError, ToolValidationError, WebQuarryError
from webquarry.observability import export_prometheus

logger = structlog.get_logger(__name__)

INVALID_REQUEST = -32600


def _error(status_code: int, code: int | str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": {"code": code, "message": message}})


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """Build the app around ``container`` (a default-configured one when omitted)."""
    services = container if container is not None else ServiceContainer()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application lifecycle."""
        async with services.lifecycle():
            app.state.start_time = time.time()
            logger.info("webquarry transport started", version=__version__)
            yield
        logger.info("webquarry transport stopped")

    app = FastAPI(title="webquarry", version=__version__, lifespan=lifespan)
    app.state.container = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=services.config.web.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next: Callable) -> Any:
        """Bind a request id for log correlation and time the request."""
        start_time = time.time()
        request_id = str(uuid4())
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.get("/health")
    async def health_check() -> Dict[str, Any]:
        return {"status": "ok", "version": __version__, **services.get_health_status()}

    @app.get("/tools")
    async def list_tools() -> Dict[str, Any]:
        return {"tools": services.executor.list_tools()}

    if services.config.monitoring.metrics_enabled:

        @app.get("/metrics")
        async def get_prometheus_metrics() -> Response:
            return Response(content=export_prometheus(), media_type=CONTENT_TYPE_LATEST)

    @app.post("/execute")
    async def execute_tool(request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except ValueError:
            return _error(status.HTTP_400_BAD_REQUEST, INVALID_REQUEST, "Request body must be JSON")

        method = body.get("method") if isinstance(body, dict) else None
        if not method or not isinstance(method, str):
            return _error(status.HTTP_400_BAD_REQUEST, INVALID_REQUEST, "method is required")

        try:
            result = await services.executor.execute(method, body.get("params") or {})
        except ToolValidationError as e:
            return _error(status.HTTP_400_BAD_REQUEST, e.code, e.message)
        except RateLimitedError as e:
            return _error(status.HTTP_429_TOO_MANY_REQUESTS, e.code, e.message)
        except WebQuarryError as e:
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, WebQuarryError.code, e.message)

        return JSONResponse(content={"result": result})

    return app


def run_web_server(container: ServiceContainer) -> None:
    """Serve ``create_app(container)`` with uvicorn on the configured host and port."""
    import uvicorn

    web = container.config.web
    logger.info("Starting webquarry transport", host=web.host, port=web.port)
    uvicorn.run(create_app(container), host=web.host, port=web.port, log_config=None)
