"""FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from safevalley.config import settings, generate_api_key
from safevalley.api.v1.router import api_router
from safevalley.core.exceptions import register_exception_handlers
from safevalley.middleware import RequestLoggingMiddleware, setup_logging


# Setup logging early
setup_logging()
logger = logging.getLogger(__name__)


def validate_startup_security() -> None:
    """
    Validate security configuration at startup.
    Exits with error in production if security requirements not met.
    """
    errors = settings.validate_production_settings()

    if errors:
        logger.error("=" * 60)
        logger.error("SECURITY CONFIGURATION ERRORS")
        logger.error("=" * 60)
        for error in errors:
            logger.error(f"  - {error}")
        logger.error("=" * 60)

        if settings.is_production():
            logger.critical("Refusing to start in production with insecure configuration!")
            sys.exit(1)
        else:
            logger.warning(
                "Running in development mode with insecure defaults. "
                "DO NOT use this configuration in production!"
            )

    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Report store: {settings.report_store}")
    logger.info(f"API Key Required: {settings.api_key_required}")
    logger.info(f"Submission rate limiting: {'enabled' if settings.rate_limit_enabled else 'disabled'}")

    if not settings.is_production() and not settings.api_keys:
        example_key = generate_api_key()
        logger.info("-" * 60)
        logger.info("No admin API keys configured. To protect moderation endpoints:")
        logger.info(f"  1. Add to .env: API_KEYS={example_key}")
        logger.info("  2. Set: API_KEY_REQUIRED=true")
        logger.info("-" * 60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    logger.info(f"Starting {settings.app_name}...")
    validate_startup_security()

    engine = None
    if settings.report_store == "postgres":
        from safevalley.db.session import create_tables, engine

        try:
            await create_tables()
            logger.info("Database connection established")
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database connection failed: {e}")
            if settings.is_production():
                sys.exit(1)

    logger.info(f"{settings.app_name} started successfully")

    yield

    logger.info("Shutting down...")
    if engine is not None:
        await engine.dispose()
        logger.info("Database connections closed")


app = FastAPI(
    title=settings.app_name,
    description="""
Community hazard reports for the neighbourhood map.

Residents submit reports (crime, load shedding, potholes, dumping, leaks,
flooding). Reports stay hidden until a moderator approves them and drop off
the map once their duration runs out.

## Authentication

Moderation endpoints under `/api/v1/admin` require an admin API key in the
`X-API-Key` header. Public endpoints need no key.

## Error Responses

All errors follow a consistent format:
```json
{
  "error": {
    "code": "ERROR_CODE",
    "message": "Human-readable message",
    "request_id": "abc123"
  }
}
```
Validation failures add `details.errors`, listing every violated field rule.
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production() else None,
    redoc_url="/redoc" if not settings.is_production() else None,
    openapi_url="/openapi.json" if not settings.is_production() else None,
)

register_exception_handlers(app)

# Middleware order: first added = innermost
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=["X-Request-ID", "Retry-After"],
    max_age=600,
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    response = {
        "name": settings.app_name,
        "version": "1.0.0",
        "health": "/health",
    }

    if not settings.is_production():
        response["docs"] = "/docs"
        response["redoc"] = "/redoc"

    return response
