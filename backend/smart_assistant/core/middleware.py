"""
Request context middleware.

- Takes the trace ID from X-Trace-ID / X-Request-ID, the active
  OpenTelemetry span, or generates one
- Generates a request ID per request
- Binds both to the logging context and echoes them in response headers
- Records RED metrics and start/finish log events

Request logs carry the path and method only. Query strings, bodies and
client addresses are never logged.
"""
import time
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging import (
    set_trace_id,
    set_request_id,
    set_client_id,
    generate_trace_id,
    generate_request_id,
    get_logger,
)
from .metrics import record_http_request
from .tracing import (
    get_trace_id_from_context,
    get_tracer,
    record_exception,
    set_span_attribute,
)

logger = get_logger(__name__)


def _format_otel_trace_id(otel_trace_id: str) -> str:
    """Render a 32-hex OpenTelemetry trace ID in UUID layout."""
    if len(otel_trace_id) != 32:
        return otel_trace_id
    return (
        f"{otel_trace_id[0:8]}-{otel_trace_id[8:12]}-{otel_trace_id[12:16]}"
        f"-{otel_trace_id[16:20]}-{otel_trace_id[20:32]}"
    )


def resolve_trace_id(request: Request) -> str:
    """Header value first, then the active span, then a fresh UUID."""
    header_trace_id: Optional[str] = (
        request.headers.get("X-Trace-ID") or request.headers.get("X-Request-ID")
    )
    if header_trace_id:
        return header_trace_id

    otel_trace_id = get_trace_id_from_context()
    if otel_trace_id:
        return _format_otel_trace_id(otel_trace_id)

    return generate_trace_id()


class TraceIDMiddleware(BaseHTTPMiddleware):
    """Bind trace/request IDs for logging and add them to response headers."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = resolve_trace_id(request)
        request_id = generate_request_id()

        set_trace_id(trace_id)
        set_request_id(request_id)

        tracer = get_tracer()
        with tracer.start_as_current_span("http.request"):
            set_span_attribute("http.method", request.method)
            set_span_attribute("http.route", request.url.path)

            start_time = time.time()
            request.state.start_time = start_time
            logger.info(
                "request_started",
                method=request.method,
                path=request.url.path,
            )

            try:
                response = await call_next(request)

                process_time = time.time() - start_time
                latency_ms = int(process_time * 1000)
                set_span_attribute("http.status_code", response.status_code)
                set_span_attribute("http.response.latency_ms", latency_ms)

                record_http_request(
                    method=request.method,
                    endpoint=request.url.path,
                    status_code=response.status_code,
                    duration_seconds=process_time,
                )
                logger.info(
                    "request_completed",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    latency_ms=latency_ms,
                )

                response.headers["X-Trace-ID"] = trace_id
                response.headers["X-Request-ID"] = request_id
                return response

            except Exception as e:
                process_time = time.time() - start_time
                record_exception(e)
                set_span_attribute("http.status_code", 500)
                record_http_request(
                    method=request.method,
                    endpoint=request.url.path,
                    status_code=500,
                    duration_seconds=process_time,
                )
                logger.error(
                    "request_failed",
                    method=request.method,
                    path=request.url.path,
                    error=str(e),
                    error_type=type(e).__name__,
                    latency_ms=int(process_time * 1000),
                    exc_info=True,
                )
                raise
            finally:
                set_trace_id(None)
                set_request_id(None)
                set_client_id(None)
