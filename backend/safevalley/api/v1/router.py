"""API v1 router aggregation."""

from fastapi import APIRouter

from safevalley.api.v1.routes import admin, health, reports

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(reports.router, prefix="/reports", tags=["Reports"])
api_router.include_router(admin.router, prefix="/admin/reports", tags=["Moderation"])
