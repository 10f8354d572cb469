"""courseflow API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from courseflow.certificates.service import LoggingCertificateIssuer
from courseflow.config import Settings, get_settings
from courseflow.core.context import get_request_id
from courseflow.core.database import init_async_cassandra, shutdown_async_cassandra
from courseflow.core.logging import configure_structlog, get_logger
from courseflow.core.middleware import RequestContextMiddleware
from courseflow.core.redis import init_redis, shutdown_redis
from courseflow.courses.catalog import InMemoryContentCatalog
from courseflow.courses.enrollment import EnrollmentRegistry, InMemoryEnrollmentService
from courseflow.health import router as health_router
from courseflow.notifications.service import LoggingProgressSink, RedisProgressPublisher
from courseflow.progress.router import enrollments_router
from courseflow.progress.router import router as progress_router
from courseflow.progress.service import ProgressionService
from courseflow.progress.store import (
    CassandraProgressStore,
    InMemoryProgressStore,
    ProgressBackedEnrollmentService,
    ProgressStore,
)


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


def build_progression_service(
    settings: Settings,
    cassandra_session: Any = None,
    redis_client: Any = None,
    catalog: InMemoryContentCatalog | None = None,
    enrollments: EnrollmentRegistry | None = None,
) -> ProgressionService:
    """Wire the progression service from whatever backends are available.

    Without an explicit enrollment service, a persistent (Cassandra) store
    answers enrollment from its own documents; the in-memory store uses the
    in-memory stand-in.
    """
    if catalog is None:
        catalog = (
            InMemoryContentCatalog.from_directory(settings.catalog_dir)
            if settings.catalog_dir
            else InMemoryContentCatalog()
        )

    store: ProgressStore
    if cassandra_session is not None:
        store = CassandraProgressStore(
            session=cassandra_session,
            keyspace=settings.cassandra_keyspace,
            max_retries=settings.progress_cas_max_retries,
        )
    else:
        store = InMemoryProgressStore()

    if enrollments is None:
        enrollments = (
            ProgressBackedEnrollmentService(store)
            if cassandra_session is not None
            else InMemoryEnrollmentService()
        )

    notifier = (
        RedisProgressPublisher(redis_client) if redis_client is not None else LoggingProgressSink()
    )

    return ProgressionService(
        store=store,
        catalog=catalog,
        enrollments=enrollments,
        notifier=notifier,
        certificate_issuer=LoggingCertificateIssuer(),
        video_completion_threshold=settings.video_completion_threshold,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Initialize Redis (non-critical - app works without it)
    redis_client = None
    if settings.redis_enabled:
        try:
            redis_client = await init_redis()
            logger.info("redis_initialized")
        except Exception as e:
            logger.warning(
                "redis_init_skipped",
                error=str(e),
                message="Running without Redis - progress events are only logged",
            )

    # Initialize Cassandra when configured as the progress store
    cassandra_session = None
    if settings.uses_cassandra:
        try:
            cassandra_session = await init_async_cassandra()
            logger.info("cassandra_initialized")
        except Exception as e:
            logger.warning(
                "database_init_skipped",
                error=str(e),
                message="Running with the in-memory progress store",
            )

    progression_service = build_progression_service(
        settings,
        cassandra_session=cassandra_session,
        redis_client=redis_client,
    )
    app.state.progression_service = progression_service
    app.state.enrollment_service = progression_service.enrollments
    app.state.progress_store_backend = "cassandra" if cassandra_session is not None else "memory"
    logger.info(
        "progression_service_initialized",
        store=app.state.progress_store_backend,
        redis_enabled=redis_client is not None,
    )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def _error_body(request: Request, status_code: int, message: str, **extra: Any) -> dict[str, Any]:
    request_id = getattr(request.state, "request_id", None) or get_request_id()
    return {
        "error": True,
        "message": message,
        "status_code": status_code,
        "request_id": request_id,
        **extra,
    }


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> ORJSONResponse:
    """Envelope for HTTPException; 5xx details are hidden."""
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=str(exc.detail),
        path=request.url.path,
        method=request.method,
    )
    message = (
        str(exc.detail)
        if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
        else "Internal server error"
    )
    return ORJSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, message),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    errors = exc.errors()
    logger.warning("validation_error", errors=errors, path=request.url.path, method=request.method)
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg", "Invalid value"),
        }
        for err in errors
    ]
    return ORJSONResponse(
        status_code=422,
        content=_error_body(request, 422, "Validation error", details=details),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    logger.exception(
        "unhandled_exception",
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred. Please try again later.",
        ),
    )


def create_app() -> FastAPI:
    """Build the FastAPI application.

    Services are attached to `app.state` by the lifespan, so tests may call
    this and set the state themselves without starting any backend.
    """
    settings = get_settings()
    docs_enabled = settings.is_development

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Course progression and assessment API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )
    # Added last so it wraps everything, including CORS
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    for router in (health_router, progress_router, enrollments_router):
        app.include_router(router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        return {
            "message": "courseflow API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


def run() -> None:
    """Serve the app with uvicorn using the API settings."""
    settings = get_settings()
    uvicorn.run(
        "courseflow.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.api_reload and settings.is_development,
        log_config=None,
    )


app = create_app()
