"""
Request ids, JSON logs and Prometheus metrics for the Content API.

Every request gets an id (taken from the request id header when the caller
sends one) that is echoed back on the response and attached to every log
line written while the request runs. Metrics live on a private registry
served by `metrics_endpoint`; HTTP series are labelled with the route
template, not the raw path, so `/posts/{post_id}` stays one series.
"""

import json
import logging
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from fastapi import Request, Response
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger("content_api.request")

_request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")

# Attributes every LogRecord has; anything else came in through `extra`
_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}


def generate_request_id() -> str:
    return str(uuid.uuid4())


def get_request_id() -> str:
    return _request_id_ctx.get()


def set_request_id(request_id: str) -> None:
    _request_id_ctx.set(request_id)


def extract_request_context(request: Request) -> dict[str, Any]:
    """Fields that identify a request in error logs."""
    return {
        "request_id": get_request_id(),
        "method": request.method,
        "path": request.url.path,
    }


class StructuredFormatter(logging.Formatter):
    """
    Render each record as one JSON object.

    The payload carries the request id and the active trace/span ids when
    there are any, and nests the caller's `extra` fields under "extra".
    """

    def format(self, record: logging.LogRecord) -> str:
        from content_api.core.telemetry import get_span_id, get_trace_id

        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        if request_id := get_request_id():
            entry["request_id"] = request_id

        if trace_id := get_trace_id():
            entry["trace_id"] = trace_id
            entry["span_id"] = get_span_id()

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }

        extra = {k: v for k, v in record.__dict__.items() if k not in _RECORD_FIELDS}
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)


def configure_structured_logging(level: str = "INFO") -> None:
    """Send all logging through a single JSON handler on stderr."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


class Metrics:
    """Prometheus series for HTTP traffic, database work and content changes."""

    def __init__(self, registry: CollectorRegistry) -> None:
        self.registry = registry

        self.http_requests_total = Counter(
            "http_requests_total",
            "HTTP requests by route template and status code",
            ["method", "route", "status_code"],
            registry=registry,
        )
        self.http_request_duration_seconds = Histogram(
            "http_request_duration_seconds",
            "HTTP request latency in seconds",
            ["method", "route"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
            registry=registry,
        )
        self.http_errors_total = Counter(
            "http_errors_total",
            "Requests that ended in an unhandled exception",
            ["error_type", "method", "route"],
            registry=registry,
        )
        self.db_query_duration_seconds = Histogram(
            "db_query_duration_seconds",
            "Time spent in tracked database operations",
            ["operation"],
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
            registry=registry,
        )
        self.db_queries_total = Counter(
            "db_queries_total",
            "Tracked database operations by outcome",
            ["operation", "status"],
            registry=registry,
        )
        # entity: post | category; action: create | update | delete | trash | restore
        self.content_mutations_total = Counter(
            "content_mutations_total",
            "Posts and categories changed, by kind of change",
            ["entity", "action"],
            registry=registry,
        )

    def record_mutation(self, entity: str, action: str, count: int = 1) -> None:
        """Count `count` mutations of one kind. Zero is a no-op."""
        if count:
            self.content_mutations_total.labels(entity=entity, action=action).inc(count)


_registry = CollectorRegistry()
metrics = Metrics(_registry)


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """
    Assign request ids, log each request and record HTTP metrics.

    Health probes and the metrics scrape are counted but not logged.
    """

    def __init__(
        self,
        app: ASGIApp,
        metrics_instance: Metrics | None = None,
        skip_paths: list[str] | None = None,
        request_id_header: str = "X-Request-ID",
    ) -> None:
        super().__init__(app)
        self.metrics = metrics_instance or metrics
        self.skip_paths = tuple(skip_paths or ["/api/v1/health", "/api/v1/readyz", "/metrics"])
        self.request_id_header = request_id_header

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.request_id_header) or generate_request_id()
        set_request_id(request_id)
        method = request.method
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            route = _route_label(request)
            elapsed = time.perf_counter() - start
            self.metrics.http_requests_total.labels(method, route, 500).inc()
            self.metrics.http_errors_total.labels(type(e).__name__, method, route).inc()
            self.metrics.http_request_duration_seconds.labels(method, route).observe(elapsed)
            logger.error(
                f"{method} {route} failed: {type(e).__name__}",
                extra={
                    "method": method,
                    "route": route,
                    "status_code": 500,
                    "latency_ms": round(elapsed * 1000, 2),
                },
                exc_info=True,
            )
            raise

        route = _route_label(request)
        elapsed = time.perf_counter() - start
        self.metrics.http_requests_total.labels(method, route, response.status_code).inc()
        self.metrics.http_request_duration_seconds.labels(method, route).observe(elapsed)
        response.headers[self.request_id_header] = request_id

        if not request.url.path.startswith(self.skip_paths):
            logger.info(
                f"{method} {route}",
                extra={
                    "method": method,
                    "route": route,
                    "status_code": response.status_code,
                    "latency_ms": round(elapsed * 1000, 2),
                },
            )

        return response


class DBMetricsWrapper:
    """
    Time blocks of database work.

        with db_metrics.track("post_list"):
            result = await db.execute(stmt)
    """

    def __init__(self, metrics_instance: Metrics | None = None) -> None:
        self.metrics = metrics_instance or metrics

    @contextmanager
    def track(self, operation: str) -> Iterator[None]:
        start = time.perf_counter()
        status = "success"
        try:
            yield
        except Exception:
            status = "error"
            raise
        finally:
            self.metrics.db_query_duration_seconds.labels(operation).observe(
                time.perf_counter() - start
            )
            self.metrics.db_queries_total.labels(operation, status).inc()


db_metrics = DBMetricsWrapper()


def metrics_endpoint() -> Response:
    """Prometheus text exposition of the application registry."""
    return Response(
        content=generate_latest(_registry),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
