"""FastAPI application entry point."""
import traceback
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy.exc import SQLAlchemyError

from charmshop.cache import AnalyticsCache
from charmshop.config import settings
from charmshop.database import engine
from charmshop.middleware.logging import LoggingMiddleware, setup_logging
from charmshop.middleware.metrics import MetricsMiddleware
from charmshop.schemas.error import REMEDIATION_HINTS, ErrorCode, ErrorDetail, ErrorResponse

# Setup structured logging
setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: owns the process-wide analytics cache."""
    app.state.analytics_cache = AnalyticsCache()
    logger.info("application_starting", env=settings.app_env)
    yield
    logger.info("application_shutting_down")
    await engine.dispose()


app = FastAPI(
    title="Charmshop Admin API",
    description="Back office analytics for the Charmshop jewelry store",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)

# Mount Prometheus metrics endpoint
app.mount("/metrics", make_asgi_app())

if settings.otel_enabled:
    from charmshop.tracing import setup_tracing

    setup_tracing(app, engine)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get(
        "x-request-id", f"req_{uuid.uuid4().hex[:12]}"
    )


def _error_response(status_code: int, body: ErrorResponse, headers: dict = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return HTTP errors in the `{success: false, error, message}` envelope."""
    code = ErrorCode.AUTHENTICATION_REQUIRED if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    body = ErrorResponse(
        error=type(exc).__name__ if code is None else "AuthenticationError",
        message=str(exc.detail),
        details=[ErrorDetail(code=code, message=str(exc.detail))] if code else None,
        request_id=_request_id(request),
    )
    return _error_response(exc.status_code, body, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle Pydantic validation errors with structured response.

    Returns 422 with field-level validation errors.
    """
    request_id = _request_id(request)

    code_mapping = {
        "enum": ErrorCode.INVALID_ENUM_VALUE,
        "missing": ErrorCode.MISSING_REQUIRED_FIELD,
    }
    details = [
        ErrorDetail(
            code=code_mapping.get(error["type"], "validation_error"),
            message=error["msg"],
            field=".".join(str(loc) for loc in error["loc"]),
            value=error.get("input"),
        )
        for error in exc.errors()
    ]

    logger.warning("validation_error", request_id=request_id, error_count=len(details))

    body = ErrorResponse(
        error="ValidationError",
        message="Request validation failed",
        details=details,
        remediation="Check the API documentation for correct request format at /docs",
        request_id=request_id,
    )
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, body)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """
    Handle database errors.

    Returns 503 Service Unavailable.
    """
    request_id = _request_id(request)

    logger.error(
        "database_error",
        request_id=request_id,
        error_type=type(exc).__name__,
        error_message=str(exc),
    )

    # Don't expose internal database details in production
    error_message = "Database temporarily unavailable" if settings.app_env == "production" else str(exc)

    body = ErrorResponse(
        error="DatabaseError",
        message="A database error occurred",
        details=[ErrorDetail(code=ErrorCode.DATABASE_ERROR, message=error_message)],
        remediation=REMEDIATION_HINTS.get(ErrorCode.DATABASE_ERROR),
        request_id=request_id,
    )
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, body, headers={"Retry-After": "30"})


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle all other uncaught exceptions.

    Logs the stack trace and returns a safe message.
    """
    request_id = _request_id(request)

    logger.exception(
        "unhandled_exception",
        request_id=request_id,
        exception_type=type(exc).__name__,
        stack_trace=traceback.format_exc(),
    )

    body = ErrorResponse(
        error="InternalServerError",
        message="An unexpected error occurred",
        details=[
            ErrorDetail(
                code=ErrorCode.INTERNAL_ERROR,
                message=str(exc) if settings.debug else "Internal server error",
            )
        ],
        remediation="Please contact support with the request ID",
        request_id=request_id,
        timestamp=datetime.utcnow(),
    )
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, body)


@app.get("/", tags=["Root"])
async def root() -> dict:
    """Root endpoint with API information."""
    return {
        "service": "Charmshop Admin API",
        "version": "0.1.0",
        "status": "operational",
        "docs": "/docs",
    }


# Include routers
from charmshop.api.v1 import analytics, dashboard, health  # noqa: E402

app.include_router(health.router, tags=["Health"])
app.include_router(analytics.router, prefix="/api/admin", tags=["Analytics"])
app.include_router(dashboard.router, prefix="/api/admin", tags=["Dashboard"])
