"""
OpenTelemetry distributed tracing configuration.

Spans are created for the request, the quick-answer match, each LLM tier
attempt and the search-index call. Traces are exported over OTLP when
OTEL_EXPORTER_OTLP_ENDPOINT is set; otherwise spans are still created so
trace IDs reach the logs, but nothing is exported.

Configuration:
- OTEL_SERVICE_NAME: Service name (default: smart_assistant_api)
- OTEL_EXPORTER_OTLP_ENDPOINT: OTLP gRPC endpoint, e.g. http://localhost:4317
- OTEL_TRACES_SAMPLER_ARG: Sampling rate (default: 1.0)
"""
import os
from typing import Optional, Dict, Any

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.trace import Status, StatusCode, Tracer
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from .logging import get_logger

logger = get_logger(__name__)

_tracer: Optional[Tracer] = None
_tracer_provider: Optional[TracerProvider] = None


def configure_tracing(
    service_name: Optional[str] = None,
    otlp_endpoint: Optional[str] = None,
    sampling_rate: float = 1.0,
) -> None:
    """
    Configure OpenTelemetry tracing.

    Args:
        service_name: Service name (defaults to OTEL_SERVICE_NAME or smart_assistant_api)
        otlp_endpoint: OTLP endpoint URL (defaults to OTEL_EXPORTER_OTLP_ENDPOINT)
        sampling_rate: Sampling rate between 0.0 and 1.0
    """
    global _tracer, _tracer_provider

    service_name = service_name or os.getenv("OTEL_SERVICE_NAME", "smart_assistant_api")
    otlp_endpoint = otlp_endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    sampling_rate = float(os.getenv("OTEL_TRACES_SAMPLER_ARG", str(sampling_rate)))

    resource = Resource.create({
        "service.name": service_name,
        "service.version": "1.0.0",
    })

    if sampling_rate < 1.0:
        _tracer_provider = TracerProvider(resource=resource, sampler=TraceIdRatioBased(sampling_rate))
    else:
        _tracer_provider = TracerProvider(resource=resource)

    if otlp_endpoint:
        try:
            _tracer_provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint))
            )
            logger.info(
                "tracing_otlp_configured",
                endpoint=otlp_endpoint,
                sampling_rate=sampling_rate,
            )
        except Exception as e:
            logger.warning(
                "tracing_otlp_configuration_failed",
                endpoint=otlp_endpoint,
                error=str(e),
                error_type=type(e).__name__,
                message="Tracing will continue without OTLP export",
            )

    trace.set_tracer_provider(_tracer_provider)
    _tracer = trace.get_tracer(__name__)

    logger.info(
        "tracing_configured",
        service_name=service_name,
        sampling_rate=sampling_rate,
        otlp_enabled=bool(otlp_endpoint),
    )


def get_tracer() -> Tracer:
    """
    Get the tracer used for application spans.

    Falls back to the global provider's tracer when configure_tracing has
    not run (tests, scripts), so span creation never fails.
    """
    if _tracer is None:
        return trace.get_tracer(__name__)
    return _tracer


def extract_trace_context(headers: Dict[str, str]) -> Optional[Dict[str, str]]:
    """
    Extract a W3C traceparent context from HTTP headers.

    Returns:
        The re-injected carrier dict, or None when absent
    """
    propagator = TraceContextTextMapPropagator()
    try:
        context = propagator.extract(headers)
        if context:
            carrier: Dict[str, str] = {}
            propagator.inject(carrier, context)
            return carrier or None
    except Exception as e:
        logger.debug(
            "trace_context_extraction_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
    return None


def get_trace_id_from_context() -> Optional[str]:
    """Trace ID of the active span as 32 hex chars, or None."""
    current_span = trace.get_current_span()
    if current_span:
        span_context = current_span.get_span_context()
        if span_context.is_valid:
            return format(span_context.trace_id, "032x")
    return None


def set_span_attribute(key: str, value: Any) -> None:
    current_span = trace.get_current_span()
    if current_span:
        current_span.set_attribute(key, value)


def set_span_status(status_code: StatusCode, description: Optional[str] = None) -> None:
    current_span = trace.get_current_span()
    if current_span:
        current_span.set_status(Status(status_code, description))


def record_exception(exception: Exception) -> None:
    """Record an exception on the current span and mark it as failed."""
    current_span = trace.get_current_span()
    if current_span:
        current_span.record_exception(exception)
        current_span.set_status(Status(StatusCode.ERROR, str(exception)))


def instrument_fastapi(app) -> None:
    """
    Instrument a FastAPI application so every HTTP request gets a server span.

    Args:
        app: FastAPI application instance
    """
    try:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("tracing_fastapi_instrumented")
    except Exception as e:
        logger.warning(
            "tracing_fastapi_instrumentation_failed",
            error=str(e),
            error_type=type(e).__name__,
            message="Tracing will continue without automatic FastAPI instrumentation",
        )


def shutdown_tracing() -> None:
    """Flush pending spans and shut the provider down."""
    global _tracer_provider
    if _tracer_provider:
        try:
            _tracer_provider.shutdown()
            logger.info("tracing_shutdown")
        except Exception as e:
            logger.warning(
                "tracing_shutdown_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
