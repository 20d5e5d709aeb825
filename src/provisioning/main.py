"""
Staff Provisioning Service: application entry point.

This module wires together:
- FastAPI application factory
- Structured logging (structlog)
- Request-ID middleware
- Global exception handlers
- Lifespan: DB health check on startup, closing DB and remote clients on shutdown
"""
from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .api.v1 import router as v1_router
from .core.config import get_settings
from .core.exceptions import AppException
from .core.responses import ErrorDetail, ErrorResponse, ResponseMeta
from .db.session import close_db, get_db_manager
from .services.clients import close_service_clients


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

def configure_logging() -> None:
    """Configure structured logging via structlog."""
    settings = get_settings()
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            (
                structlog.dev.ConsoleRenderer()
                if settings.is_development
                else structlog.processors.JSONRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Standard-library loggers (SQLAlchemy, uvicorn, httpx) follow the same level.
    logging.basicConfig(
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        level=log_level,
        stream=sys.stdout,
    )


# ---------------------------------------------------------------------------
# Request-ID middleware
# ---------------------------------------------------------------------------

class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a unique request ID to every request/response pair.

    An incoming ``X-Request-ID`` header is honoured. The ID is stored in
    ``request.state.request_id``, returned in the ``X-Request-ID`` response
    header and bound to the structlog context, so every log line of a batch
    carries it next to ``batch_id``.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
        response.headers["X-Request-ID"] = request_id
        return response


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown.

    Startup:
        1. Configure logging.
        2. Verify database connectivity (schema is managed by Alembic).

    Shutdown:
        1. Close the remote service clients.
        2. Close all database connections.
    """
    settings = get_settings()
    logger = structlog.get_logger()

    configure_logging()

    logger.info(
        "application_starting",
        app_name=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.APP_ENV,
        dependency_failure_policy=settings.BULK_DEPENDENCY_FAILURE_POLICY,
    )

    db_health = await get_db_manager().health_check()
    logger.info("database_health_check", result=db_health)

    yield

    logger.info("application_shutting_down")
    await close_service_clients()
    await close_db()
    logger.info("application_shutdown_complete")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    tags_metadata = [
        {
            "name": "Health",
            "description": "Health checks: liveness, readiness and overall status.",
        },
        {
            "name": "Users",
            "description": (
                "Bulk provisioning of staff and patients (CSV or JSON) "
                "and paginated user listing."
            ),
        },
    ]

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
# Staff Provisioning API

Creates people across the identity store, the authentication service and the
patient / doctor / nurse services from one bulk file.

All endpoints are versioned under `/api/v1/`.
        """,
        # Docs are only available in non-production environments.
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        default_response_class=JSONResponse,
        lifespan=lifespan,
        openapi_tags=tags_metadata,
    )

    app.add_middleware(RequestIDMiddleware)

    _register_exception_handlers(app)

    app.include_router(v1_router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict:
        payload: dict = {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "health": "/api/v1/health",
        }
        if settings.is_development:
            payload["docs"] = "/docs"
        return payload

    return app


def _error_response(
    request: Request,
    status_code: int,
    detail: ErrorDetail,
) -> JSONResponse:
    meta = ResponseMeta(request_id=getattr(request.state, "request_id", None))
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=detail, meta=meta).model_dump(mode="json"),
    )


def _register_exception_handlers(app: FastAPI) -> None:
    """Attach global exception handlers to the application."""
    logger = structlog.get_logger()

    @app.exception_handler(AppException)
    async def _app_exc(request: Request, exc: AppException) -> JSONResponse:
        logger.warning(
            "application_exception",
            error_code=exc.error_code,
            message=exc.message,
            path=str(request.url),
        )
        return _error_response(
            request,
            exc.status_code,
            ErrorDetail(code=exc.error_code, message=exc.message, details=exc.details),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_exc(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("request_validation_failed", errors=exc.errors(), path=str(request.url))
        validation_errors = [
            {
                "field": ".".join(str(loc) for loc in err["loc"]),
                "message": err["msg"],
                "type": err["type"],
            }
            for err in exc.errors()
        ]
        return _error_response(
            request,
            422,
            ErrorDetail(
                code="VALIDATION_ERROR",
                message="Request validation failed",
                details={"validation_errors": validation_errors},
            ),
        )

    @app.exception_handler(Exception)
    async def _generic_exc(request: Request, exc: Exception) -> JSONResponse:
        settings = get_settings()
        logger.exception("unhandled_exception", error=str(exc), path=str(request.url))
        # Never expose internal details in production
        message = str(exc) if settings.DEBUG else "An unexpected error occurred"
        return _error_response(
            request,
            500,
            ErrorDetail(code="INTERNAL_ERROR", message=message),
        )


# ---------------------------------------------------------------------------
# Module-level application instance (consumed by uvicorn / gunicorn)
# ---------------------------------------------------------------------------
app = create_application()
