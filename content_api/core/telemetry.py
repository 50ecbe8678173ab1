"""
OpenTelemetry tracing.

Tracing is off unless OTEL_ENABLED is set. When on, spans for HTTP requests
and SQL statements are batched to an OTLP gRPC collector. The trace and span
ids of the current span are exposed for the JSON log formatter.
"""

import logging
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import (
    ALWAYS_OFF,
    ALWAYS_ON,
    ParentBased,
    Sampler,
    TraceIdRatioBased,
)

from content_api.core.config import settings

logger = logging.getLogger(__name__)

_tracer_provider: TracerProvider | None = None


def parse_headers(headers_string: str | None) -> dict[str, str]:
    """Parse "key1=value1,key2=value2" into a dict; malformed pairs are skipped."""
    headers: dict[str, str] = {}
    for pair in (headers_string or "").split(","):
        key, sep, value = pair.partition("=")
        if sep and key.strip():
            headers[key.strip()] = value.strip()
    return headers


def build_sampler(sampler_name: str, sampler_arg: float) -> Sampler:
    """Sampler for an OTEL_TRACES_SAMPLER name; unknown names follow the parent."""
    match sampler_name:
        case "always_on":
            return ALWAYS_ON
        case "always_off":
            return ALWAYS_OFF
        case "traceidratio":
            return TraceIdRatioBased(sampler_arg)
        case _:
            return ParentBased(root=TraceIdRatioBased(sampler_arg))


def init_telemetry() -> TracerProvider | None:
    """
    Install a global tracer provider exporting to the configured collector.

    Returns:
        The provider, or None when tracing is disabled or setup failed
    """
    global _tracer_provider

    if not settings.otel_enabled:
        logger.info("OpenTelemetry tracing is disabled")
        return None

    try:
        provider = TracerProvider(
            resource=Resource.create(
                {
                    SERVICE_NAME: settings.otel_service_name,
                    DEPLOYMENT_ENVIRONMENT: settings.app_env.value,
                }
            ),
            sampler=build_sampler(settings.otel_traces_sampler, settings.otel_traces_sampler_arg),
        )
        exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            headers=parse_headers(settings.otel_exporter_otlp_headers),
        )
        provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)
    except Exception as e:
        logger.error(f"Failed to initialize OpenTelemetry: {e}", exc_info=True)
        return None

    _tracer_provider = provider
    logger.info(
        "OpenTelemetry initialized",
        extra={
            "service": settings.otel_service_name,
            "endpoint": settings.otel_exporter_otlp_endpoint,
            "sampler": settings.otel_traces_sampler,
        },
    )
    return provider


def instrument_fastapi(app: Any) -> None:
    if not settings.otel_enabled:
        return
    try:
        FastAPIInstrumentor.instrument_app(app)
    except Exception as e:
        logger.error(f"Failed to instrument FastAPI: {e}", exc_info=True)


def instrument_sqlalchemy(engine: Any) -> None:
    """Trace statements on a sync engine (async engines pass `sync_engine`)."""
    if not settings.otel_enabled:
        return
    SQLAlchemyInstrumentor().instrument(engine=engine, enable_commenter=True)


def shutdown_telemetry() -> None:
    """Flush pending spans and drop the provider."""
    global _tracer_provider

    if _tracer_provider is None:
        return
    try:
        _tracer_provider.shutdown()
    except Exception as e:
        logger.error(f"Error during OpenTelemetry shutdown: {e}", exc_info=True)
    finally:
        _tracer_provider = None


def _recording_span_context() -> Any:
    span = trace.get_current_span()
    if not span.is_recording():
        return None
    return span.get_span_context()


def get_trace_id() -> str | None:
    span_context = _recording_span_context()
    return format(span_context.trace_id, "032x") if span_context else None


def get_span_id() -> str | None:
    span_context = _recording_span_context()
    return format(span_context.span_id, "016x") if span_context else None
