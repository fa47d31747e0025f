"""
Chandler API - OpenAI-Compatible Bridge Service.

Exposes the OpenAI chat-completions surface on top of the Chandler AI chat
service, which organises exchanges into persistent conversations and streams
answers in its own ``data:{...}`` line format.

Endpoints:
    Chat Completions API:
        - POST /v1/chat/completions - Create chat completion (streaming/non-streaming)

    Models API:
        - GET /v1/models - List available models
        - GET /v1/models/{model} - Retrieve model info

    Health:
        - GET /health - Health check
        - GET /health/live - Liveness check

Last Grunted: 10/19/2026 03:30:00 PM UTC
"""
import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Callable

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from chandler_api import __version__
from chandler_api.config import get_settings
from chandler_api.routers import chat, models
from chandler_api.services.http_client import close_client


# ============================================================================
# Logging Configuration
# ============================================================================

def configure_logging() -> None:
    """
    Configure structured logging with structlog.

    Sets up structlog with JSON output for production and pretty printing
    for development (when LOG_FORMAT=console).

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    settings = get_settings()
    log_level = settings.log_level.upper()

    # Configure stdlib logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level, logging.INFO),
    )

    # Shared processors
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "console":
        renderers: list[structlog.types.Processor] = [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=shared_processors + renderers,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Initialize logging before creating logger
configure_logging()
logger = structlog.get_logger("chandler-api")


# ============================================================================
# Application Lifespan
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup logs the upstream target; shutdown closes the shared HTTP client.

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    settings = get_settings()
    logger.info(
        "chandler_api.startup",
        upstream_domain=settings.upstream_domain,
        conversation_selection=settings.conversation_selection,
    )

    yield

    logger.info("chandler_api.shutdown")
    await close_client()
    logger.info("chandler_api.shutdown.complete")


# ============================================================================
# Application Instance
# ============================================================================

app = FastAPI(
    title="Chandler API",
    description="OpenAI-compatible API for the Chandler AI chat service",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ============================================================================
# CORS Middleware
# ============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Response-Time"],
)


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors with OpenAI-style responses (400).

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    errors = exc.errors()
    if errors:
        first_error = errors[0]
        loc = first_error.get("loc", [])
        param = ".".join(str(part) for part in loc if part != "body")
        message = first_error.get("msg", "Validation error")
    else:
        param = None
        message = "Request validation failed"

    logger.warning(
        "chandler_api.validation_error",
        path=request.url.path,
        param=param,
        message=message,
    )

    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "message": message,
                "type": "invalid_request_error",
                "param": param,
                "code": "validation_error"
            }
        }
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(
    request: Request,
    exc: HTTPException
) -> JSONResponse:
    """
    Handle HTTPException with OpenAI-style responses.

    Registered on the Starlette base class so routing 404/405 errors get the
    same shape as FastAPI HTTPExceptions. Preserves structured error details
    if provided in exc.detail.

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        return JSONResponse(status_code=exc.status_code, content=exc.detail)

    error_type_map = {
        400: "invalid_request_error",
        401: "authentication_error",
        403: "permission_error",
        404: "not_found_error",
        429: "rate_limit_error",
    }
    error_type = error_type_map.get(exc.status_code, "api_error")

    logger.warning(
        "chandler_api.http_error",
        path=request.url.path,
        status_code=exc.status_code,
        detail=str(exc.detail),
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": str(exc.detail),
                "type": error_type,
                "param": None,
                "code": None
            }
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Log unhandled errors and return a generic 500 without internal details.

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    logger.exception(
        "chandler_api.unhandled_error",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        error=str(exc),
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "message": "An internal server error occurred",
                "type": "api_error",
                "param": None,
                "code": "internal_error"
            }
        }
    )


# ============================================================================
# Request Logging Middleware
# ============================================================================

@app.middleware("http")
async def log_requests(request: Request, call_next: Callable):
    """
    Log every request with timing information.

    Binds request_id/path/method into structlog contextvars so every log
    line of the request carries them.

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    request_id = request.headers.get("X-Request-ID", "-")
    start_time = time.perf_counter()

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        path=request.url.path,
        method=request.method,
        client=request.client.host if request.client else None,
    )

    logger.info("chandler_api.request.start")

    response = await call_next(request)

    duration_ms = (time.perf_counter() - start_time) * 1000

    # For streaming responses this is time to first byte.
    logger.info(
        "chandler_api.request.complete",
        status_code=response.status_code,
        duration_ms=round(duration_ms, 2),
    )

    response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

    return response


# ============================================================================
# Routers
# ============================================================================

app.include_router(chat.router, tags=["chat"])
app.include_router(models.router, tags=["models"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint for service monitoring."""
    return {
        "status": "ok",
        "service": "chandler-api",
        "version": __version__,
    }


@app.get("/health/live")
async def liveness_check():
    """Liveness check endpoint for Kubernetes."""
    return {"status": "alive"}


# ============================================================================
# Entry Point
# ============================================================================

def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    settings = get_settings()
    logger.info("chandler_api.listen", host=settings.host, port=settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
