"""Main application module.

This module initializes the FastAPI application, includes routes,
and configures middleware and exception handlers.
"""

from typing import Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shortlink.api import api_router
from shortlink.core.access_log import close_access_logging, setup_access_logging
from shortlink.core.config import settings
from shortlink.core.logging import setup_logging
from shortlink.core.rate_limit import close_rate_limiting, initialize_rate_limiting, setup_rate_limiting
from shortlink.core.redis import redis_manager
from shortlink.core.telemetry import instrument_app, setup_telemetry
from shortlink.db.base import engine, init_models
from shortlink.middleware.logging import RequestLoggingMiddleware, get_request_id
from shortlink.middleware.tracing import TracingMiddleware
from shortlink.scheduler.scheduler import scheduler_service
from shortlink.services.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    ResourceExhaustedError,
    ServiceError,
    UnauthorizedError,
    UnavailableError,
)

logger = setup_logging()

# Most specific first; the first isinstance match wins
SERVICE_ERROR_STATUS = (
    (InvalidInputError, 400),
    (UnauthorizedError, 401),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (ResourceExhaustedError, 503),
    (UnavailableError, 503),
)

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ORIGINS != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

rate_limit_backend = None
if settings.RATE_LIMIT_ENABLED:
    rate_limit_backend = setup_rate_limiting(app)
else:
    logger.info("Rate limiting is disabled in settings")

if settings.OTEL_ENABLED:
    setup_telemetry()
    app.add_middleware(TracingMiddleware)
    instrument_app(app, engine)

if settings.REQUEST_LOGGING_ENABLED:
    app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


def error_response(
    request: Request,
    status_code: int,
    message: str,
    errors: Optional[Dict[str, List[str]]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Build the error envelope: request id, path, status and message."""
    content = {
        "id": get_request_id(),
        "url": request.url.path,
        "status": status_code,
        "message": message,
    }
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def status_for(exc: ServiceError) -> int:
    for error_type, status_code in SERVICE_ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


@app.exception_handler(ServiceError)
async def service_exception_handler(request: Request, exc: ServiceError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    return error_response(
        request,
        status_code,
        exc.message,
        errors=getattr(exc, "errors", None),
        headers=headers,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "request failed"
    return error_response(request, exc.status_code, message.lower(), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request validation failures as 400 with messages per field."""
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(location) or "body"
        errors.setdefault(field, []).append(error.get("msg", "invalid value"))
    logger.debug(f"Request validation error on {request.url.path}: {errors}")
    return error_response(request, 400, "invalid request", errors=errors)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unhandled exceptions and answer 500 without internal detail."""
    error_id = get_request_id()
    logger.opt(exception=exc).error(
        f"Unhandled exception in {request.method} {request.url.path}",
        error_id=error_id,
        query_params=dict(request.query_params),
        client_host=request.client.host if request.client else None,
    )
    message = str(exc) if settings.DEBUG else "internal server error"
    return error_response(request, 500, message)


@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT.value}")

    if settings.ACCESS_LOG_ENABLED:
        setup_access_logging()

    if settings.DB_AUTO_CREATE_TABLES:
        await init_models()

    if rate_limit_backend is not None:
        await initialize_rate_limiting()

    if settings.SCHEDULER_ENABLED:
        try:
            scheduler_service.start()
        except Exception as e:
            # The service can run without maintenance jobs
            logger.opt(exception=e).critical("Scheduler could not be started")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.APP_NAME}")
    await close_rate_limiting()
    scheduler_service.shutdown()
    await redis_manager.close()
    await engine.dispose()
    close_access_logging()
