import hmac
import logging
import re
from typing import Any

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from content_api.api.routes.categories import router as categories_router
from content_api.api.routes.health import router as health_router
from content_api.api.routes.posts import router as posts_router
from content_api.core.config import AppEnvironment, settings
from content_api.core.db import get_async_engine, reset_async_engine
from content_api.core.errors import ContentApiError, get_status_code
from content_api.core.observability import (
    ObservabilityMiddleware,
    configure_structured_logging,
    extract_request_context,
    metrics_endpoint,
)
from content_api.core.telemetry import init_telemetry, instrument_fastapi, shutdown_telemetry

# Configure structured logging before creating logger
if settings.observability_structured_logs:
    configure_structured_logging(settings.app_log_level)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def _sanitize_error_details(details: dict[str, Any]) -> dict[str, Any]:
    """
    Strip internals from error details in production.

    File paths, SQL fragments and schema/table references are replaced
    with "[REDACTED]". Outside production, details are returned unchanged.
    """
    if settings.app_env != AppEnvironment.PROD:
        return details

    sanitized: dict[str, Any] = {}
    sensitive_patterns = [
        r"[/\\][\w/-]+\.py",  # File paths
        r"SELECT.*FROM",
        r"INSERT INTO.*VALUES",
        r"UPDATE.*SET",
        r"DELETE FROM",
        r"schema\s*[:=]\s*\w+",
        r"table\s*[:=]\s*\w+",
    ]

    for key, value in details.items():
        if isinstance(value, str):
            if any(re.search(pattern, value, re.IGNORECASE) for pattern in sensitive_patterns):
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = value
        elif isinstance(value, dict):
            sanitized[key] = _sanitize_error_details(value)
        elif isinstance(value, list):
            sanitized[key] = [
                _sanitize_error_details(item) if isinstance(item, dict) else item for item in value
            ]
        else:
            sanitized[key] = value

    return sanitized


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ContentApiError)
    async def content_api_error_handler(request: Request, exc: ContentApiError) -> JSONResponse:
        """
        Map domain errors to HTTP responses.

        Returns:
            JSON response with error, message and details
        """
        status_code = get_status_code(exc)
        context = {
            "details": exc.details,
            "path": request.url.path,
            **extract_request_context(request),
        }

        if status_code >= 500:
            logger.error(f"{exc.__class__.__name__}: {exc.message}", extra=context)
        else:
            logger.warning(f"{exc.__class__.__name__}: {exc.message}", extra=context)

        return JSONResponse(
            status_code=status_code,
            content={
                "error": exc.__class__.__name__,
                "message": exc.message,
                "details": _sanitize_error_details(exc.details),
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Give HTTP exceptions the same envelope as domain errors."""
        if exc.status_code in (401, 403):
            logger.warning(
                f"Access denied: {exc.detail}",
                extra={
                    "security_event": True,
                    "status_code": exc.status_code,
                    "client_ip": request.client.host if request.client else "unknown",
                    **extract_request_context(request),
                },
            )
        elif exc.status_code >= 500:
            logger.error(
                f"HTTP {exc.status_code}: {exc.detail}",
                extra=extract_request_context(request),
            )

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "HTTPException",
                "message": exc.detail,
                "details": {},
            },
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Catch-all handler for unexpected exceptions.

        Logs the full exception and returns a generic 500 without exposing
        implementation details.
        """
        logger.error(
            f"Unhandled exception: {exc}",
            exc_info=True,
            extra=extract_request_context(request),
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "InternalServerError",
                "message": "An unexpected error occurred",
                "details": {},
            },
        )


async def protected_metrics(request: Request) -> Response:
    """
    Prometheus metrics, guarded by the X-Metrics-Token header.

    The endpoint is closed (500) until METRICS_TOKEN is configured.
    """
    expected_token = settings.metrics_token
    if not expected_token:
        logger.error(
            "Metrics endpoint accessed but METRICS_TOKEN not configured",
            extra={"security_event": True, "event_type": "METRICS_NOT_CONFIGURED"},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Metrics token not configured. Set METRICS_TOKEN environment variable.",
        )

    metrics_token = request.headers.get("X-Metrics-Token")
    if not hmac.compare_digest(metrics_token or "", expected_token):
        logger.warning(
            "Unauthorized metrics access attempt",
            extra={
                "security_event": True,
                "event_type": "METRICS_ACCESS_DENIED",
                "client_ip": request.client.host if request.client else "unknown",
            },
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid metrics token",
        )

    return metrics_endpoint()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Sets up:
    - OpenTelemetry tracing (when OTEL_ENABLED)
    - Observability middleware (request IDs, metrics, request logs)
    - CORS middleware
    - Exception handlers for domain errors
    - API routers under /api/v1
    - Token-protected Prometheus endpoint
    """
    app = FastAPI(
        title="Content API",
        description="Blog posts and nested categories",
        version="0.1.0",
    )

    @app.on_event("startup")
    async def startup_telemetry():
        """Initialize OpenTelemetry tracing and instrumentation."""
        if init_telemetry() is not None:
            instrument_fastapi(app)
            # Creating the engine instruments SQLAlchemy
            get_async_engine()

    @app.on_event("shutdown")
    async def shutdown_app():
        """Flush traces and dispose of the database engine."""
        shutdown_telemetry()
        await reset_async_engine()

    if settings.observability_enabled:
        app.add_middleware(
            ObservabilityMiddleware,
            request_id_header=settings.observability_request_id_header,
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(posts_router, prefix=API_PREFIX)
    app.include_router(categories_router, prefix=API_PREFIX)

    if settings.observability_enabled:
        app.add_route("/metrics", protected_metrics)

    return app


app = create_app()
