# Essential imports
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Request, status, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from routers import auth

# Logging imports
from core.logging_config import setup_logging
from middleware import RequestIDMiddleware, get_request_id
from utils.logger import get_logger, sanitize_log_data

# Configuration / persistence imports
from core.config import Settings, load_settings
from core.database import build_engine, build_session_factory, init_db
from core.exceptions import AuthError, CredentialError
from models.mixins import utc_now

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None,
               clock: Callable[[], datetime] = utc_now) -> FastAPI:
    """
    Build the application around one explicit Settings object.

    Run with: uvicorn main:create_app --factory

    Raises:
        ConfigurationMissing: JWT_SECRET is not configured
    """
    if settings is None:
        settings = load_settings()

    setup_logging(
        log_level=settings.LOG_LEVEL,
        log_dir=settings.LOG_DIR
    )

    engine = build_engine(settings)

    # Lifecycle events logging
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(engine)
        logger.info("Application startup complete", extra={"event": "startup"})
        yield
        engine.dispose()
        logger.info("Application shutting down", extra={"event": "shutdown"})

    app = FastAPI(
        title="Session Service API",
        description="Issues, rotates, verifies and revokes authentication tokens",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.clock = clock
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)


    # HTTP Request Logging Middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Log all HTTP requests with method, path, status code, and duration.
        """
        start_time = time.time()

        response = await call_next(request)

        duration = (time.time() - start_time) * 1000  # milliseconds
        client_ip = request.client.host if request.client else "unknown"

        logger.info(
            f'{client_ip} - "{request.method} {request.url.path} HTTP/1.1" {response.status_code}',
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration, 2),
                "client_ip": client_ip
            }
        )

        return response

    # Outermost, so the request ID is set for everything below
    app.add_middleware(RequestIDMiddleware)


    # Health check
    @app.get("/health")
    async def health_check():
        logger.debug("Health check requested")
        return {"status": "Healthy"}


    @app.exception_handler(CredentialError)
    async def credential_exception_handler(request: Request, exc: CredentialError):
        """
        Every access-credential failure looks the same to the client.
        """
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": "Unauthorized"},
            headers={"WWW-Authenticate": 'Bearer realm="api"'}
        )


    @app.exception_handler(AuthError)
    async def auth_exception_handler(request: Request, exc: AuthError):
        if exc.status_code >= 500:
            logger.error(
                f"Session operation failed: {exc.error_code}",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "error_code": exc.error_code,
                    "request_id": get_request_id(request)
                }
            )
        else:
            logger.warning(
                f"Session operation rejected: {exc.error_code}",
                extra={"path": request.url.path, "error_code": exc.error_code}
            )

        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.public_message}
        )


    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch all unhandled exceptions, log them with context and return a
        generic error without exposing internals.
        """
        if isinstance(exc, (HTTPException, RequestValidationError)):
            raise exc

        logger.error(
            f"Unhandled exception: {type(exc).__name__}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error_type": type(exc).__name__,
                "query": sanitize_log_data(dict(request.query_params)),
                "request_id": get_request_id(request)
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"}
        )


    # Including routers
    app.include_router(auth.router)

    return app
