"""Health check endpoints."""

from fastapi import APIRouter, Response

from safevalley.config import settings

router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "healthy"}


@router.get("/db")
async def database_health(response: Response):
    """Check the report store's database connection.

    Returns HTTP 503 if the database is unavailable.
    """
    if settings.report_store == "memory":
        return {"status": "healthy", "database": "in-memory"}

    from safevalley.db.session import ping_database

    ok, error = await ping_database()
    if not ok:
        response.status_code = 503
        return {"status": "unhealthy", "database": "disconnected", "error": error}
    return {"status": "healthy", "database": "connected"}
