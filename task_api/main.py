"""FastAPI application initialization."""

import asyncio
from contextlib import asynccontextmanager
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from task_api import __version__
from task_api.api.auth import router as auth_router
from task_api.api.auth_middleware import AuthenticationMiddleware
from task_api.api.health import router as health_router
from task_api.api.middleware import CorrelationIdMiddleware, RequestTimingMiddleware
from task_api.api.rate_limit_admin import router as rate_limit_admin_router
from task_api.api.rate_limit_middleware import RateLimitMiddleware
from task_api.config import get_settings
from task_api.database import close_database, init_database, run_migrations
from task_api.exceptions import TaskApiError
from task_api.models.response import ErrorResponse
from task_api.services.cleanup_service import cleanup_loop
from task_api.services.logging_service import configure_logging, get_logger
from task_api.services.rate_limit_service import RateLimitService
from task_api.services.refresh_token_service import RefreshTokenService
from task_api.startup_checks import run_startup_checks


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    run_startup_checks(settings)

    app.state.rate_limit_service = RateLimitService(settings)

    try:
        await init_database()
        await run_migrations()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            note="Continuing without database - authentication will be unavailable",
        )

    cleanup_task = asyncio.create_task(
        cleanup_loop(RefreshTokenService(settings), app.state.rate_limit_service, settings)
    )
    logger.info(
        "cleanup_loop_started",
        interval_seconds=settings.refresh_token_cleanup_interval_seconds,
    )

    logger.info(
        "application_started",
        environment=settings.environment,
        log_level=settings.log_level,
    )

    yield

    # Shutdown
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass

    await close_database()
    logger.info("application_shutdown")


app = FastAPI(
    title="Task Management API",
    description="Task management API with token bucket rate limiting and JWT authentication",
    version=__version__,
    lifespan=lifespan,
)


def _error_body(status_code: int, message: str, request: Request) -> dict:
    return ErrorResponse.for_status(status_code, message, request.url.path).model_dump(
        mode="json", by_alias=True
    )


@app.exception_handler(TaskApiError)
async def task_api_exception_handler(request: Request, exc: TaskApiError) -> JSONResponse:
    """Render application errors as ``{timestamp, status, error, message, path}``."""
    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.status_code, exc.message, request),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with user-friendly messages.

    Returns 400 Bad Request naming the first offending field.
    """
    # Use correlation ID from middleware if available, otherwise generate
    correlation_id = getattr(request.state, "correlation_id", None) or str(uuid4())
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    logger.warning(
        "validation_error",
        correlation_id=correlation_id,
        detail=detail,
    )

    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation error",
            "detail": detail,
            "correlation_id": correlation_id,
        },
        headers={"X-Correlation-Id": correlation_id},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Storage and other unexpected faults become a generic 500."""
    structlog.get_logger().error(
        "unhandled_exception",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred", request
        ),
    )


# Added innermost first: CorrelationId -> Timing -> RateLimit -> Authentication
app.add_middleware(AuthenticationMiddleware)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(CorrelationIdMiddleware)

# Include API routes
app.include_router(auth_router)
app.include_router(rate_limit_admin_router)
app.include_router(health_router)
