"""Main FastAPI application"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError
from pathlib import Path
from typing import Optional
import logging
import time
import uuid

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from app.config import Settings, get_settings
from app.core import responses
from app.core.business_codes import (
    AuthErrorCode,
    ResourceErrorCode,
    SystemErrorCode,
    ValidationErrorCode,
)
from app.core.clock import Clock, isoformat, utcnow
from app.core.database import Database, init_db
from app.core.exceptions import BusinessError
from app.core.passwords import PasswordHasher
from app.core.security import JWTManager
from app.api.v1 import auth, system
from app.schemas.response import HealthResponse
from app.services.auth_service import AuthService
from app.services.login_log_service import LoginLogService
from app.services.rate_limiter import InMemoryRateLimiter
from app.services.token_cleanup_service import TokenCleanupService
from app.services.token_store import TokenStore
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

REQUEST_COUNT = Counter(
    "yishan_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "yishan_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

_HTTP_STATUS_CODES = {
    401: AuthErrorCode.UNAUTHORIZED,
    403: AuthErrorCode.FORBIDDEN,
    404: ResourceErrorCode.RESOURCE_NOT_FOUND,
    429: ValidationErrorCode.TOO_MANY_REQUESTS,
}


def configure_logging(settings: Settings) -> None:
    """Log to the configured file and to stderr."""
    log_file = settings.get_log_file()
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration, check the database and bootstrap the admin account."""
    settings: Settings = app.state.settings
    database: Database = app.state.database

    settings.validate_security_settings()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    # Database failure at startup is fatal
    try:
        init_db(database, settings.DB_INIT_MODE, settings.DB_REQUIRE_HEAD)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    # Create admin user if it doesn't exist
    try:
        with database.session() as db:
            app.state.user_service.ensure_admin(
                db,
                settings.ADMIN_USERNAME,
                settings.ADMIN_PASSWORD,
                email=settings.ADMIN_EMAIL,
            )
    except (BusinessError, SQLAlchemyError) as e:
        logger.error(f"Failed to create admin user: {e}")

    yield

    database.dispose()
    logger.info(f"Shutting down {settings.APP_NAME}")


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(BusinessError)
    async def business_exception_handler(request: Request, exc: BusinessError):
        """Typed errors carry their business code"""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"Business error {exc.code}: {exc.message}",
            extra={"path": request.url.path, "method": request.method},
        )
        envelope = responses.error(
            exc.code,
            exc.message,
            detail=exc.details or None,
            sub_code=exc.sub_code,
            request_id=_request_id(request),
        )
        return responses.to_response(envelope)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors"""
        errors = []
        for error in exc.errors():
            errors.append({
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"]
            })

        logger.warning(
            f"Validation error: {errors}",
            extra={"path": request.url.path, "method": request.method}
        )

        envelope = responses.error(
            ValidationErrorCode.VALIDATION_ERROR,
            detail=errors,
            sub_message="; ".join(f"{e['field']}: {e['message']}" for e in errors),
            request_id=_request_id(request),
        )
        return responses.to_response(envelope)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Unknown routes, wrong methods and other framework-level HTTP errors"""
        if exc.status_code >= 500:
            code = SystemErrorCode.SYSTEM_ERROR
        else:
            code = _HTTP_STATUS_CODES.get(exc.status_code, ValidationErrorCode.INVALID_PARAMETER)
        envelope = responses.error(
            code,
            exc.detail if isinstance(exc.detail, str) else None,
            request_id=_request_id(request),
        )
        return responses.to_response(envelope, headers=getattr(exc, "headers", None),
                                     status_code=exc.status_code)

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        """Handle database errors"""
        logger.exception(
            f"Database error: {str(exc)}",
            extra={"path": request.url.path, "method": request.method},
        )
        envelope = responses.error(
            SystemErrorCode.DATABASE_ERROR,
            "A database error occurred. Please try again later.",
            sub_message=str(exc) if settings.DEBUG else None,
            request_id=_request_id(request),
        )
        return responses.to_response(envelope)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions"""
        logger.critical(
            f"Unhandled exception: {str(exc)}",
            exc_info=exc,
            extra={"path": request.url.path, "method": request.method},
        )
        envelope = responses.error(
            SystemErrorCode.SYSTEM_ERROR,
            "An unexpected error occurred.",
            sub_message=str(exc) if settings.DEBUG else None,
            request_id=_request_id(request),
        )
        return responses.to_response(envelope)


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    clock: Clock = utcnow,
    password_hasher: Optional[PasswordHasher] = None,
) -> FastAPI:
    """
    Build the application and wire its services.

    Args:
        settings: Defaults to the cached environment settings
        database: Defaults to a ``Database`` built from ``settings``
        clock: Source of "now" for every expiry decision
        password_hasher: Defaults to scrypt with the configured cost

    Returns:
        FastAPI: Configured application; nothing connects until startup
    """
    settings = settings or get_settings()
    database = database or Database.from_settings(settings)
    hasher = password_hasher or PasswordHasher.from_settings(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    token_store = TokenStore(clock)
    user_service = UserService(
        token_store,
        hasher,
        clock=clock,
        max_failed_attempts=settings.MAX_LOGIN_FAILED_ATTEMPTS,
        lockout_seconds=settings.LOGIN_LOCKOUT_SECONDS,
    )
    login_log_service = LoginLogService(clock)

    app.state.settings = settings
    app.state.database = database
    app.state.clock = clock
    app.state.user_service = user_service
    app.state.login_log_service = login_log_service
    app.state.auth_service = AuthService(
        token_store,
        hasher,
        JWTManager.from_settings(settings, clock=clock),
        user_service,
        login_log_service,
        settings,
        clock=clock,
    )
    app.state.cleanup_service = TokenCleanupService(
        database,
        token_store,
        retention_days=settings.TOKEN_RETENTION_DAYS,
        clock=clock,
    )
    app.state.rate_limiter = InMemoryRateLimiter()

    # GZip compression for large responses
    app.add_middleware(GZipMiddleware, minimum_size=500)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers + request timing middleware
    @app.middleware("http")
    async def add_headers_and_timing(request: Request, call_next):
        """Add security headers and log slow requests"""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.time()
        response = await call_next(request)
        duration = time.time() - start

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        response.headers["X-Request-ID"] = request_id

        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        REQUEST_COUNT.labels(request.method, path, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(request.method, path).observe(duration)

        if duration > 1.0:
            logger.warning(
                "Slow request: %s %s took %.2fs request_id=%s",
                request.method,
                request.url.path,
                duration,
                request_id,
            )

        return response

    _register_exception_handlers(app, settings)

    @app.get("/health", response_model=HealthResponse)
    def health_check():
        """Health check endpoint"""
        try:
            database.ping()
            db_status = "ok"
        except SQLAlchemyError as exc:
            logger.error(f"Health check database ping failed: {exc}")
            db_status = "unreachable"

        return HealthResponse(
            status="healthy" if db_status == "ok" else "degraded",
            version=settings.APP_VERSION,
            timestamp=isoformat(clock()),
            database=db_status,
        )

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running",
            "docs": "/api/docs" if settings.DEBUG else "disabled"
        }

    # Include routers
    app.include_router(auth.router, prefix="/api/v1", tags=["Authentication"])
    app.include_router(system.router, prefix="/api/v1/system", tags=["System"])

    return app


configure_logging(get_settings())
app = create_app()


if __name__ == "__main__":
    import uvicorn
    _settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=_settings.HOST,
        port=_settings.PORT,
        reload=_settings.DEBUG,
        workers=1 if _settings.DEBUG else _settings.WORKERS
    )
