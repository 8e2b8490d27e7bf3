"""Public hazard report endpoints: submission and the live map."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status

from safevalley.api.deps import get_moderation_service, get_submission_service
from safevalley.core.auth import get_client_ip
from safevalley.core.rbac import public_context
from safevalley.middleware.rate_limit import submission_rate_limiter
from safevalley.schemas.hazard_report import (
    CatalogResponse,
    PublicReportView,
    SubmissionResponse,
)
from safevalley.services.catalog import hazard_type_entries, travel_mode_entries
from safevalley.services.moderation_service import ModerationService, ReportSubmissionService

router = APIRouter()


@router.post(
    "",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(submission_rate_limiter)],
)
async def submit_hazard_report(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    service: ReportSubmissionService = Depends(get_submission_service),
) -> SubmissionResponse:
    """
    Submit a new hazard report.

    Reports start out pending and only appear on the map once a moderator
    approves them. Every violated field rule is returned in one response.
    """
    context = public_context(
        request_id=getattr(request.state, "request_id", "unknown"),
        client_ip=get_client_ip(request),
    )
    record = await service.submit(payload, context)
    return SubmissionResponse(id=record.id, status=record.status, created_at=record.created_at)


@router.get("/map", response_model=List[PublicReportView])
async def get_map_reports(
    travel_mode: Optional[str] = Query(
        None, description="walking, cycling, car, taxi or all"
    ),
    service: ModerationService = Depends(get_moderation_service),
) -> List[PublicReportView]:
    """Approved, unexpired reports for the public map."""
    return await service.public_map(travel_mode)


@router.get("/travel-modes", response_model=CatalogResponse)
async def get_travel_modes() -> CatalogResponse:
    """Hazard type styling and the hazard types shown per travel mode."""
    return CatalogResponse(
        hazard_types=hazard_type_entries(),
        travel_modes=travel_mode_entries(),
    )
