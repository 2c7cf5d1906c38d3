"""learnpath API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from learnpath.config import Settings, get_settings
from learnpath.core.context import get_request_id
from learnpath.core.database import init_async_cassandra, shutdown_async_cassandra
from learnpath.core.logging import configure_structlog, get_logger
from learnpath.core.middleware import RequestContextMiddleware
from learnpath.core.redis import init_redis, shutdown_redis
from learnpath.courses.service import CourseService
from learnpath.enrollments.service import EnrollmentService
from learnpath.health import router as health_router
from learnpath.progress.router import router as progress_router
from learnpath.progress.service import ProgressService
from learnpath.purchases.gateway import RazorpayGateway
from learnpath.purchases.router import router as purchases_router
from learnpath.purchases.service import PurchaseService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


# Application state for dependency injection
class AppState:
    """Application state container."""

    cassandra_session: Any = None
    course_service: CourseService | None = None
    enrollment_service: EnrollmentService | None = None
    progress_service: ProgressService | None = None
    purchase_service: PurchaseService | None = None


app_state = AppState()


def init_services(
    app: FastAPI,
    session: Any,
    settings: Settings,
    redis_client: Any = None,
) -> None:
    """Build the services on top of a Cassandra session and expose them on app.state."""
    keyspace = settings.cassandra_keyspace

    app_state.cassandra_session = session
    app_state.course_service = CourseService(session=session, keyspace=keyspace)
    app_state.enrollment_service = EnrollmentService(session=session, keyspace=keyspace)
    app_state.progress_service = ProgressService(
        session=session,
        keyspace=keyspace,
        course_service=app_state.course_service,
        max_write_attempts=settings.progress_write_max_attempts,
    )
    app_state.purchase_service = PurchaseService(
        session=session,
        keyspace=keyspace,
        gateway=RazorpayGateway(settings),
        course_service=app_state.course_service,
        enrollment_service=app_state.enrollment_service,
        redis=redis_client,
        currency=settings.payment_currency,
        status_cache_seconds=settings.purchase_status_cache_seconds,
    )

    app.state.course_service = app_state.course_service
    app.state.progress_service = app_state.progress_service
    app.state.purchase_service = app_state.purchase_service


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

    if not settings.razorpay_configured:
        logger.warning(
            "payment_gateway_not_configured",
            message="Order creation and payment verification will answer 503",
        )

    # Initialize Redis (non-critical - app works without it)
    redis_client = None
    try:
        redis_client = await init_redis()
        logger.info("redis_initialized")
    except Exception as e:
        logger.warning(
            "redis_init_skipped",
            error=str(e),
            message="Running without Redis - purchase status cache disabled",
        )

    # Initialize Cassandra (async)
    try:
        session = await init_async_cassandra()
        logger.info("cassandra_initialized")

        init_services(app, session, settings, redis_client)
        logger.info("services_initialized", redis_enabled=redis_client is not None)
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def _error_content(
    request_id: str | None, status_code: int, message: str
) -> dict[str, Any]:
    return {
        "success": False,
        "error": True,
        "message": message,
        "status_code": status_code,
        "request_id": request_id,
    }


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # SECURITY: Always set debug=False to prevent Starlette's ServerErrorMiddleware
    # from exposing stack traces in responses.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Course progress and purchase API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    # Global exception handlers (security: never expose stack traces)
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
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
            content=_error_content(
                _get_request_id_safe(request), exc.status_code, message
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        content = _error_content(
            _get_request_id_safe(request),
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Validation error",
        )
        content["details"] = [
            {
                "field": ".".join(str(loc) for loc in err.get("loc", [])),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=content
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        SECURITY: Never expose stack traces or internal error details to users.
        """
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_content(
                _get_request_id_safe(request),
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "An unexpected error occurred. Please try again later.",
            ),
        )

    app.include_router(health_router)
    app.include_router(progress_router)
    app.include_router(purchases_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "learnpath API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
