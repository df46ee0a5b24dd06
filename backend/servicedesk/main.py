import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Callable, Iterable

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from servicedesk.api.problem_details import (
    PROBLEM_TYPE_DOMAIN,
    PROBLEM_TYPE_SERVER,
    PROBLEM_TYPE_VALIDATION,
    domain_problem,
    problem_details,
)
from servicedesk.api.routes_activity import router as activity_router
from servicedesk.api.routes_bookings import router as bookings_router
from servicedesk.api.routes_brands import router as brands_router
from servicedesk.api.routes_email_hook import router as email_hook_router
from servicedesk.api.routes_events import router as events_router
from servicedesk.api.routes_health import router as health_router
from servicedesk.dependencies import get_optional_requester
from servicedesk.domain.errors import DomainError
from servicedesk.infra.db import dispose_engine, get_session_factory
from servicedesk.infra.logging import clear_log_context, configure_logging, update_log_context
from servicedesk.infra.metrics import configure_metrics
from servicedesk.services import build_app_services
from servicedesk.settings import settings
from servicedesk.shared.background import drain_background

logger = logging.getLogger(__name__)
request_logger = logging.getLogger("servicedesk.request")


def _resolve_log_identity(request: Request) -> dict[str, str]:
    requester = get_optional_requester(request)
    if requester is None:
        return {}
    return {"user_id": requester.user_id, "role": requester.role}


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns the request id and writes one ``request`` log line per call."""

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        update_log_context(request_id=request_id, method=request.method, path=request.url.path)
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            latency_ms = int((time.perf_counter() - start) * 1000)
            update_log_context(status_code=status_code, latency_ms=latency_ms, **_resolve_log_identity(request))
            request_logger.info("request")
            clear_log_context()


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records latency per route template; unhandled errors count as 5xx."""

    def __init__(self, app: FastAPI, metrics_client) -> None:
        super().__init__(app)
        self.metrics = metrics_client

    async def dispatch(self, request: Request, call_next: Callable):
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            route_label = getattr(request.scope.get("route"), "path", "unmatched")
            self.metrics.record_http_latency(request.method, route_label, status_code, time.perf_counter() - start)
            if status_code >= 500:
                self.metrics.record_http_5xx(request.method, route_label)


def _resolve_cors_origins(app_settings) -> Iterable[str]:
    if app_settings.cors_origins:
        return app_settings.cors_origins
    if app_settings.app_env == "dev":
        return ["http://localhost:3000", "http://localhost:8081"]
    return []


def create_app(app_settings) -> FastAPI:
    configure_logging()
    metrics_client = configure_metrics(app_settings.metrics_enabled)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.app_settings = getattr(app.state, "app_settings", app_settings)
        app.state.db_session_factory = getattr(app.state, "db_session_factory", None) or get_session_factory()
        injected = getattr(app.state, "services", None)
        http_client = None
        if injected is None:
            http_client = httpx.AsyncClient(timeout=app_settings.outbound_timeout_seconds)
            app.state.services = build_app_services(
                app_settings,
                session_factory=app.state.db_session_factory,
                http_client=http_client,
                metrics=metrics_client,
            )
        logger.info(
            "startup",
            extra={"extra": {"env": app_settings.app_env, "services_injected": injected is not None}},
        )
        yield
        await drain_background()
        if http_client is not None:
            await http_client.aclose()
            app.state.services = None
        await dispose_engine()

    app = FastAPI(title="Service Desk Notifications", version="1.0.0", lifespan=lifespan)

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(MetricsMiddleware, metrics_client=metrics_client)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(_resolve_cors_origins(app_settings)),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            loc = error.get("loc", [])
            field = ".".join(str(part) for part in loc if part not in {"body", "query", "path"}) or "body"
            errors.append({"field": field, "message": error.get("msg", "Invalid value")})
        return problem_details(
            request,
            status=422,
            title="Validation Error",
            detail="Request validation failed",
            errors=errors,
            type_=PROBLEM_TYPE_VALIDATION,
        )

    @app.exception_handler(DomainError)
    async def domain_exception_handler(request: Request, exc: DomainError):
        if exc.status_code >= 500:
            logger.error(
                "domain_failure",
                extra={"extra": {"path": request.url.path, "error_type": type(exc).__name__}},
            )
        return domain_problem(request, exc)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return problem_details(
            request,
            status=exc.status_code,
            title=exc.detail if isinstance(exc.detail, str) else "HTTP Error",
            detail=exc.detail if isinstance(exc.detail, str) else "Request failed",
            type_=PROBLEM_TYPE_DOMAIN if exc.status_code < 500 else PROBLEM_TYPE_SERVER,
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        identity_context = _resolve_log_identity(request)
        request_id = getattr(request.state, "request_id", None)
        error_type = type(exc).__name__
        update_log_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=500,
            error_type=error_type,
            **identity_context,
        )
        logger.exception(
            "unhandled_exception",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "error_type": error_type,
                **identity_context,
            },
        )
        return problem_details(
            request,
            status=500,
            title="Internal Server Error",
            detail="Unexpected error",
            type_=PROBLEM_TYPE_SERVER,
        )

    app.include_router(health_router)
    app.include_router(bookings_router)
    app.include_router(brands_router)
    app.include_router(email_hook_router)
    app.include_router(activity_router)
    app.include_router(events_router)
    if app_settings.metrics_enabled:
        from servicedesk.api.routes_metrics import router as metrics_router

        app.include_router(metrics_router)
    return app


app = create_app(settings)
