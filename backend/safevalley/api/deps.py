"""Shared FastAPI dependencies for report routes."""

import logging
from functools import lru_cache

from fastapi import Depends

from safevalley.config import settings
from safevalley.services.lifecycle import Clock, utcnow
from safevalley.services.moderation_service import ModerationService, ReportSubmissionService
from safevalley.services.report_store import (
    InMemoryReportStore,
    ReportStore,
    SqlAlchemyReportStore,
)

logger = logging.getLogger(__name__)


def get_clock() -> Clock:
    """Source of the current instant. Overridden in tests."""
    return utcnow


@lru_cache()
def get_report_store() -> ReportStore:
    """Process-wide report store selected by ``REPORT_STORE``."""
    if settings.report_store == "memory":
        logger.warning("Using in-memory report store; reports are lost on restart")
        return InMemoryReportStore()

    from safevalley.db.session import async_session_maker

    return SqlAlchemyReportStore(async_session_maker)


def get_moderation_service(
    store: ReportStore = Depends(get_report_store),
    clock: Clock = Depends(get_clock),
) -> ModerationService:
    return ModerationService(store, clock=clock, settings=settings)


def get_submission_service(
    store: ReportStore = Depends(get_report_store),
) -> ReportSubmissionService:
    return ReportSubmissionService.from_settings(store, settings)
