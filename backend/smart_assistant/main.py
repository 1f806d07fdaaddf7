"""
Smart assistant API application.

Run with: uvicorn smart_assistant.main:app
"""
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .core.config import Settings, load_settings
from .core.container import build_container
from .core.errors import AssistantError, QueryValidationError
from .core.logging import configure_logging, get_logger, get_trace_id
from .core.middleware import TraceIDMiddleware
from .core.rate_limit import CORS_HEADERS, RateLimitMiddleware
from .core.tracing import (
    StatusCode,
    configure_tracing,
    get_trace_id_from_context,
    instrument_fastapi,
    record_exception,
    set_span_status,
    shutdown_tracing,
)
from .models.responses import ErrorResponse
from .routes import assistant, directory, health, metrics

logger = get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "Something went wrong. Please try again."


def error_response(status_code: int, message: str) -> JSONResponse:
    """Render the JSON error body every endpoint shares."""
    trace_id = get_trace_id() or get_trace_id_from_context()
    response = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message, status_code=status_code, trace_id=trace_id).model_dump(),
        headers=CORS_HEADERS,
    )
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use; read from the environment if omitted
        transport: Optional httpx transport for every outbound client (tests)
    """
    settings = settings or load_settings()

    configure_logging(
        log_level=settings.log_level,
        service_name=settings.service_name,
        json_output=settings.log_json,
    )
    configure_tracing(service_name=settings.service_name, otlp_endpoint=settings.otlp_endpoint)

    app = FastAPI(
        title="Bay Navigator Smart Assistant API",
        description="Tiered query resolution for Bay Area assistance programs",
        version="1.0.0",
    )
    app.state.container = build_container(settings, transport=transport)

    # Starlette runs the last-added middleware first: trace IDs are bound
    # before the rate limiter logs anything.
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(TraceIDMiddleware)

    instrument_fastapi(app)

    @app.on_event("startup")
    async def startup_event():
        logger.info("app_startup_started")
        await app.state.container.startup()
        logger.info("app_startup_completed")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("app_shutdown_started")
        await app.state.container.shutdown()
        shutdown_tracing()
        logger.info("app_shutdown_completed")

    @app.exception_handler(AssistantError)
    async def assistant_error_handler(request: Request, exc: AssistantError):
        if exc.status_code >= 500:
            set_span_status(StatusCode.ERROR, exc.message)
        logger.warning(
            "request_failed",
            status_code=exc.status_code,
            error=exc.message,
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
        return error_response(exc.status_code, exc.public_message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(
            "request_validation_failed",
            path=request.url.path,
            method=request.method,
            error_count=len(exc.errors()),
        )
        message = QueryValidationError.public_message if request.method == "POST" else "Invalid request."
        return error_response(400, message)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        record_exception(exc)
        set_span_status(StatusCode.ERROR, str(exc))
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
            exc_info=True,
        )
        return error_response(500, INTERNAL_ERROR_MESSAGE)

    app.include_router(assistant.router, prefix="/api/smart-assistant", tags=["Assistant"])
    app.include_router(directory.router, prefix="/api/directory", tags=["Directory"])
    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])

    return app


app = create_app()
