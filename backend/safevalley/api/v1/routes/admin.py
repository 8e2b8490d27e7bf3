"""Moderation endpoints for administrators."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status

from safevalley.api.deps import get_moderation_service
from safevalley.core.auth import require_admin
from safevalley.core.rbac import AuthContext
from safevalley.schemas.hazard_report import (
    AdminReportView,
    BucketCounts,
    BucketPageResponse,
    SoftDeleteRequest,
)
from safevalley.services.moderation_service import ModerationService

router = APIRouter()


@router.get("/counts", response_model=BucketCounts)
async def count_by_bucket(
    context: AuthContext = Depends(require_admin),
    service: ModerationService = Depends(get_moderation_service),
) -> BucketCounts:
    """Number of reports in each moderation bucket."""
    return await service.count_by_bucket(context)


@router.get("/buckets/{bucket}", response_model=BucketPageResponse)
async def get_bucket(
    bucket: str,
    page_size: Optional[int] = Query(None, description="Reports per page"),
    cursor: Optional[str] = Query(None, description="next_cursor from the previous page"),
    context: AuthContext = Depends(require_admin),
    service: ModerationService = Depends(get_moderation_service),
) -> BucketPageResponse:
    """One page of a bucket, newest first."""
    page = await service.get_bucket(context, bucket, page_size, cursor)
    return BucketPageResponse(
        bucket=page.bucket.value,
        reports=[AdminReportView.from_record(r) for r in page.reports],
        next_cursor=page.next_cursor,
    )


@router.get("/{report_id}", response_model=AdminReportView)
async def get_report(
    report_id: str,
    context: AuthContext = Depends(require_admin),
    service: ModerationService = Depends(get_moderation_service),
) -> AdminReportView:
    report = await service.get_report(report_id, context)
    return AdminReportView.from_record(report)


@router.post("/{report_id}/approve", response_model=AdminReportView)
async def approve_report(
    report_id: str,
    context: AuthContext = Depends(require_admin),
    service: ModerationService = Depends(get_moderation_service),
) -> AdminReportView:
    return AdminReportView.from_record(await service.approve(report_id, context))


@router.post("/{report_id}/reject", response_model=AdminReportView)
async def reject_report(
    report_id: str,
    context: AuthContext = Depends(require_admin),
    service: ModerationService = Depends(get_moderation_service),
) -> AdminReportView:
    return AdminReportView.from_record(await service.reject(report_id, context))


@router.post("/{report_id}/restore", response_model=AdminReportView)
async def restore_report(
    report_id: str,
    context: AuthContext = Depends(require_admin),
    service: ModerationService = Depends(get_moderation_service),
) -> AdminReportView:
    """Return a deleted or decided report to the pending queue."""
    return AdminReportView.from_record(await service.restore(report_id, context))


@router.post("/{report_id}/delete", response_model=AdminReportView)
async def soft_delete_report(
    report_id: str,
    body: Optional[SoftDeleteRequest] = None,
    context: AuthContext = Depends(require_admin),
    service: ModerationService = Depends(get_moderation_service),
) -> AdminReportView:
    """Move a report to the deleted bucket. Requires ``{"confirm": true}``."""
    report = await service.soft_delete(report_id, context, confirm=bool(body and body.confirm))
    return AdminReportView.from_record(report)


@router.patch("/{report_id}", response_model=AdminReportView)
async def edit_report(
    report_id: str,
    changes: Dict[str, Any] = Body(...),
    context: AuthContext = Depends(require_admin),
    service: ModerationService = Depends(get_moderation_service),
) -> AdminReportView:
    """Edit type, description, duration or radius without touching status."""
    return AdminReportView.from_record(await service.edit(report_id, context, changes))


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def permanently_delete_report(
    report_id: str,
    context: AuthContext = Depends(require_admin),
    service: ModerationService = Depends(get_moderation_service),
) -> Response:
    """Remove a soft-deleted report for good."""
    await service.permanent_delete(report_id, context)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
