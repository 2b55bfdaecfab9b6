"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Can create multiple app instances if needed (e.g., for testing)

For local development:
    uvicorn poolcare.main:app --reload

For production:
    gunicorn poolcare.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import (
    clients,
    google_auth,
    health,
    payments,
    products,
    recommendations,
    reports,
    visits,
    watch,
)
from .config.settings import get_settings
from .core.pools.models import InvalidTransitionError
from .core.scheduling.sync import BackReferenceError, RecordNotFoundError
from .core.validation import RecordValidationError
from .infrastructure.snowflake.repositories.documents import StoreError

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Runs once on startup and once on shutdown.
    """
    settings = get_settings()

    logger.info(
        "PoolCare API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {"store": settings.store_mock_mode},
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        # Log and keep going: the affected features report themselves as unavailable
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("PoolCare API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Back office for pool-maintenance businesses.

        ## Features

        - Clients and their pools, with automatic volume calculation
        - Water chemistry status per pool
        - Visit scheduling mirrored into Google Calendar
        - Product catalog, payments and reports
        - AI product recommendations

        ## Authentication

        Endpoints require an API key in the `X-API-Key` header and the
        signed-in user's id in `X-User-Id`. Health checks and the Google
        OAuth endpoints are open.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Configure allowed origins via CORS_ORIGINS environment variable
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(clients.router, prefix="/api/v1/clients", tags=["Clients"])
    app.include_router(visits.router, prefix="/api/v1/visits", tags=["Visits"])
    app.include_router(products.router, prefix="/api/v1/products", tags=["Products"])
    app.include_router(payments.router, prefix="/api/v1/payments", tags=["Payments"])
    app.include_router(reports.router, prefix="/api/v1/reports", tags=["Reports"])
    app.include_router(
        recommendations.router,
        prefix="/api/v1/recommendations",
        tags=["Recommendations"],
    )
    app.include_router(google_auth.router, prefix="/api/v1/auth/google", tags=["Google"])
    app.include_router(watch.router, prefix="/api/v1/watch", tags=["Watch"])

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "PoolCare API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    _register_exception_handlers(app)

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    """Translate domain exceptions into HTTP responses."""

    @app.exception_handler(RecordNotFoundError)
    async def not_found_handler(request: Request, exc: RecordNotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(InvalidTransitionError)
    async def transition_handler(request: Request, exc: InvalidTransitionError):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

    @app.exception_handler(RecordValidationError)
    async def validation_handler(request: Request, exc: RecordValidationError):
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation failed", "errors": exc.errors},
        )

    @app.exception_handler(BackReferenceError)
    async def back_reference_handler(request: Request, exc: BackReferenceError):
        logger.error(
            "Pool not linked to client",
            extra={"client_id": exc.client_id, "error": str(exc)},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "The pool could not be linked to its client and was not saved.",
                "clientId": exc.client_id,
            },
        )

    @app.exception_handler(StoreError)
    async def store_handler(request: Request, exc: StoreError):
        logger.error(
            "Record store unavailable",
            extra={"path": request.url.path, "error": str(exc)},
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Record store is unavailable. Please try again later."},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Prevents stack traces from leaking to clients; the full error is
        logged server-side.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error. Please contact support if this persists."
            }
        )


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "poolcare.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
