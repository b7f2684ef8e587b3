"""QueueGuard Backend - Main FastAPI Application

Privacy-governed temporary storage for RabbitMQ dashboard telemetry.

This module creates and configures the main FastAPI application, including:
- Privacy, cache administration and audit routers
- Middleware (request ID correlation, CORS)
- Exception handlers
- Health endpoints
- Privacy engine startup/shutdown (periodic cache sweeper)
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

from config import Settings, get_settings
from privacy.engine import PrivacyEngine, build_privacy_engine
from privacy.errors import DecryptionFailed, StorageModeNotAvailable, TenantNotFound

# Observability
from observability.logging_config import configure_logging
from observability.middleware import RequestIDMiddleware
from observability.router import router as observability_router

# Domain Routers
from privacy.router import router as privacy_router
from retention.router import router as retention_router
from audit.router import router as audit_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    privacy_engine: Optional[PrivacyEngine] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Defaults to get_settings()
        privacy_engine: Pre-built engine; built from settings at startup when None
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler.

        - Startup: Build the privacy engine, start the periodic cache sweeper
        - Shutdown: Stop the sweeper, release pools and connections
        """
        logger.info("QueueGuard API starting up...")
        logger.info(f"Environment: {settings.ENVIRONMENT}")

        engine = privacy_engine or build_privacy_engine(settings)
        app.state.privacy_engine = engine
        engine.start()

        yield

        logger.info("QueueGuard API shutting down...")
        engine.shutdown()
        app.state.privacy_engine = None

    app = FastAPI(
        title="QueueGuard API",
        description="Privacy-governed temporary storage for RabbitMQ dashboard telemetry",
        version="0.1.0",
        docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
        openapi_url="/openapi.json" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # =========================================================================
    # MIDDLEWARE CONFIGURATION
    # =========================================================================

    # Request ID Middleware (must be first for proper correlation)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    register_exception_handlers(app)

    # =========================================================================
    # ROUTER REGISTRATION
    # =========================================================================

    # Observability (health, ready)
    app.include_router(observability_router)

    app.include_router(privacy_router, prefix="/api/v1")
    app.include_router(retention_router, prefix="/api/v1")
    app.include_router(audit_router, prefix="/api/v1")

    return app


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors with field-level details."""
        logger.warning(
            f"Validation error on {request.method} {request.url.path}",
            extra={"errors": exc.errors()}
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": "validation_error",
                "message": "Request validation failed",
                "details": jsonable_errors(exc),
            },
        )

    @app.exception_handler(StorageModeNotAvailable)
    async def storage_mode_exception_handler(
        request: Request,
        exc: StorageModeNotAvailable
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": "storage_mode_not_available",
                "message": str(exc),
                "plan_tier": exc.plan_tier,
                "storage_mode": exc.storage_mode,
            },
        )

    @app.exception_handler(TenantNotFound)
    async def tenant_not_found_handler(
        request: Request,
        exc: TenantNotFound
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "tenant_not_found", "message": str(exc)},
        )

    @app.exception_handler(DecryptionFailed)
    async def decryption_exception_handler(
        request: Request,
        exc: DecryptionFailed
    ) -> JSONResponse:
        """Stored data failed authentication.

        Reported as corruption, never as a missing entry.
        """
        logger.error(
            f"Stored data failed authentication on {request.method} {request.url.path}",
            exc_info=exc
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "DATA_CORRUPTED",
                "message": "Stored data could not be decrypted and may have been tampered with.",
            },
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(
        request: Request,
        exc: SQLAlchemyError
    ) -> JSONResponse:
        """Handle storage backend errors.

        Logs the full error but returns a generic message to prevent
        information leakage.
        """
        logger.error(
            f"Database error on {request.method} {request.url.path}",
            exc_info=exc
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "error": "database_error",
                "message": "A database error occurred. Please try again later.",
            },
        )

    @app.exception_handler(TimeoutError)
    async def timeout_exception_handler(
        request: Request,
        exc: TimeoutError
    ) -> JSONResponse:
        logger.error(f"Timeout on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "error": "store_timeout",
                "message": "A storage backend did not respond in time. Please try again later.",
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """Catches all unhandled exceptions and returns a generic error response."""
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}",
            exc_info=exc
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "internal_error",
                "message": "An unexpected error occurred. Please try again later.",
            },
        )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors without the raw input/context objects."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


# Configure logging
_settings = get_settings()
configure_logging(level=_settings.LOG_LEVEL, json_format=_settings.LOG_JSON)

app = create_app(_settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=_settings.DEBUG,
        log_level=_settings.LOG_LEVEL.lower(),
    )
