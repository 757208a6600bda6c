"""FastAPI application entry point.

This module defines the main FastAPI application with CORS middleware,
lifespan management, error handlers and API routing configuration.

Logging:
    Initializes structured logging on import.
    Startup and shutdown are logged with configuration details.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bhamail import __version__
from bhamail.api import router as api_router
from bhamail.api.errors import register_exception_handlers
from bhamail.core.config import settings
from bhamail.core.jwt import TokenIssuer
from bhamail.core.logging import get_logger, setup_logging
from bhamail.db.session import engine
from bhamail.models import Base
from bhamail.services.reset_tickets import close_reset_ticket_store

# Initialize logging system
setup_logging(
    log_level=settings.LOG_LEVEL,
    log_file=settings.LOG_FILE,
    service_name=settings.PROJECT_NAME,
    enable_json=settings.LOG_JSON_FORMAT,
)

# Get application logger
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:  # noqa: ARG001 - Required by FastAPI lifespan interface
    """Application lifespan context manager.

    Startup:
        - With ``AUTH_FAIL_FAST`` the token secrets are checked and a missing
          secret aborts startup with ``ConfigurationError``
        - With ``DATABASE_AUTO_CREATE`` tables are created (development)

    Shutdown:
        - Closes the reset-ticket store and disposes the database engine
    """
    logger.info(
        f"Starting {settings.PROJECT_NAME}",
        extra={
            "context": {
                "action": "application_startup",
                "version": __version__,
                "debug": settings.DEBUG,
                "log_level": settings.LOG_LEVEL,
            }
        },
    )

    if settings.AUTH_FAIL_FAST:
        TokenIssuer.from_settings().ensure_configured()

    if settings.DATABASE_AUTO_CREATE:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(
            "Database tables ensured",
            extra={"context": {"action": "application_startup", "step": "create_all"}},
        )

    logger.info(
        "Application startup completed",
        extra={"context": {"action": "application_startup", "status": "success"}},
    )

    yield

    logger.info(
        f"Shutting down {settings.PROJECT_NAME}",
        extra={"context": {"action": "application_shutdown"}},
    )

    await close_reset_ticket_store()
    await engine.dispose()

    logger.info(
        "Application shutdown completed",
        extra={"context": {"action": "application_shutdown", "status": "success"}},
    )


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="BhaMail authentication and account API",
    version=__version__,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API router
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns a simple status indicating the service is running.
    """
    return {"status": "healthy"}


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    return {
        "name": settings.PROJECT_NAME,
        "version": __version__,
        "docs": "/docs",
    }
