"""Moderation and submission workflows over the report store."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from safevalley.config import Settings, settings as default_settings
from safevalley.core.audit import AuditAction, audit_log
from safevalley.core.exceptions import (
    AuthorizationException,
    ResourceNotFoundException,
    StoreUnavailableException,
)
from safevalley.core.rbac import AuthContext, Permission, require_permission
from safevalley.models.hazard_report import ReportStatus
from safevalley.schemas.hazard_report import HazardReportRecord, PublicReportView
from safevalley.services.lifecycle import Clock, FieldDelta, ReportLifecycle, utcnow
from safevalley.services.moderation_query import BucketPage, ModerationBucket, ModerationQuery
from safevalley.services.report_store import ReportStore
from safevalley.services.submission_validator import SubmissionValidator
from safevalley.services.visibility import public_views

logger = logging.getLogger(__name__)


class ModerationService:
    """
    Applies lifecycle transitions to stored reports.

    Each operation reads the current snapshot, computes the full delta, and
    writes it with a single ``update_report`` call. Concurrent decisions on
    the same report resolve last-write-wins in the store.
    """

    def __init__(
        self,
        store: ReportStore,
        lifecycle: Optional[ReportLifecycle] = None,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.settings = settings or default_settings
        self.clock = clock or utcnow
        self.lifecycle = lifecycle or ReportLifecycle(
            self.clock,
            SubmissionValidator.from_settings(self.settings),
            retain_history_on_delete=self.settings.soft_delete_retains_history,
            purge_requires_soft_delete=self.settings.permanent_delete_requires_soft_delete,
        )

    async def _load(self, report_id: str) -> HazardReportRecord:
        report = await self.store.get_report(report_id)
        if report is None:
            raise ResourceNotFoundException("Report", report_id)
        return report

    async def _apply(
        self,
        action: AuditAction,
        report_id: str,
        context: AuthContext,
        transition: Callable[[HazardReportRecord], FieldDelta],
    ) -> HazardReportRecord:
        report = await self._load(report_id)
        delta = transition(report)
        updated = await self.store.update_report(report_id, delta)

        audit_log.log_moderation(
            action,
            report_id,
            actor=context.subject_id,
            request_id=context.request_id,
            client_ip=context.client_ip,
            details={
                "from_status": report.status.value,
                "to_status": updated.status.value,
                "fields": sorted(delta),
            },
        )
        logger.info(
            f"Report {report_id} {action.value} by {context.subject_id}: "
            f"{report.status.value} -> {updated.status.value}"
        )
        return updated

    async def approve(self, report_id: str, context: AuthContext) -> HazardReportRecord:
        return await self._apply(
            AuditAction.REPORT_APPROVE, report_id, context,
            lambda report: self.lifecycle.approve(report, context),
        )

    async def reject(self, report_id: str, context: AuthContext) -> HazardReportRecord:
        return await self._apply(
            AuditAction.REPORT_REJECT, report_id, context,
            lambda report: self.lifecycle.reject(report, context),
        )

    async def soft_delete(
        self, report_id: str, context: AuthContext, *, confirm: bool
    ) -> HazardReportRecord:
        return await self._apply(
            AuditAction.REPORT_DELETE, report_id, context,
            lambda report: self.lifecycle.soft_delete(report, context, confirm=confirm),
        )

    async def restore(self, report_id: str, context: AuthContext) -> HazardReportRecord:
        return await self._apply(
            AuditAction.REPORT_RESTORE, report_id, context,
            lambda report: self.lifecycle.restore(report, context),
        )

    async def edit(
        self, report_id: str, context: AuthContext, changes: Mapping[str, Any]
    ) -> HazardReportRecord:
        return await self._apply(
            AuditAction.REPORT_EDIT, report_id, context,
            lambda report: self.lifecycle.edit(report, context, changes),
        )

    async def permanent_delete(self, report_id: str, context: AuthContext) -> None:
        """Remove a soft-deleted report from the store. Irreversible."""
        report = await self._load(report_id)
        self.lifecycle.check_permanent_delete(report, context)
        # Re-checked by the store so a concurrent restore is never purged
        required_status = (
            ReportStatus.DELETED if self.lifecycle.purge_requires_soft_delete else None
        )
        await self.store.delete_report(report_id, required_status=required_status)

        audit_log.log_moderation(
            AuditAction.REPORT_PURGE,
            report_id,
            actor=context.subject_id,
            request_id=context.request_id,
            client_ip=context.client_ip,
            details={"hazard_type": report.hazard_type.value},
        )
        logger.warning(f"Report {report_id} permanently deleted by {context.subject_id}")

    async def get_report(self, report_id: str, context: AuthContext) -> HazardReportRecord:
        require_permission(context, Permission.REPORT_VIEW)
        return await self._load(report_id)

    async def moderation_query(
        self, context: AuthContext, now: Optional[datetime] = None
    ) -> ModerationQuery:
        """Partition the current snapshot for the admin view."""
        require_permission(context, Permission.REPORT_VIEW)
        reports = await self.store.list_reports()
        return ModerationQuery(
            reports,
            now=now or self.clock(),
            exclude_expired_approved=self.settings.approved_bucket_excludes_expired,
            default_page_size=self.settings.moderation_page_size,
            max_page_size=self.settings.moderation_max_page_size,
        )

    async def count_by_bucket(self, context: AuthContext) -> Dict[str, int]:
        query = await self.moderation_query(context)
        return query.count_by_bucket()

    async def get_bucket(
        self,
        context: AuthContext,
        bucket: ModerationBucket,
        page_size: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> BucketPage:
        query = await self.moderation_query(context)
        return query.get_bucket(bucket, page_size, cursor)

    async def public_map(
        self, travel_mode: Optional[str] = None, now: Optional[datetime] = None
    ) -> List[PublicReportView]:
        """Reports shown on the public map right now."""
        reports = await self.store.list_reports(statuses=[ReportStatus.APPROVED])
        return public_views(
            reports,
            now or self.clock(),
            travel_mode,
            default_radius=self.settings.default_display_radius_meters,
            max_radius=self.settings.radius_max_meters,
        )


class ReportSubmissionService:
    """
    Validates public submissions and writes them with bounded retries.

    Validation happens once, before any write; a payload that fails
    validation is never retried. Store outages are retried up to
    ``max_attempts`` times with a fixed backoff, after which the
    ``StoreUnavailableException`` reaches the caller.
    """

    def __init__(
        self,
        store: ReportStore,
        validator: Optional[SubmissionValidator] = None,
        *,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.validator = validator or SubmissionValidator.from_settings()
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls, store: ReportStore, settings: Optional[Settings] = None
    ) -> "ReportSubmissionService":
        settings = settings or default_settings
        return cls(
            store,
            SubmissionValidator.from_settings(settings),
            max_attempts=settings.submission_max_attempts,
            backoff_seconds=settings.submission_retry_backoff_seconds,
        )

    async def submit(
        self, payload: Mapping[str, Any], context: Optional[AuthContext] = None
    ) -> HazardReportRecord:
        """
        Submit a new report.

        Raises:
            AuthorizationException: the caller may not submit reports
            ValidationFailedException: payload breaks one or more field rules
            StoreUnavailableException: every write attempt failed
        """
        if context is not None and not context.has_permission(Permission.REPORT_SUBMIT):
            logger.warning(f"Submission refused for {context.subject_id or context.client_ip}")
            raise AuthorizationException("Insufficient permissions")

        new_report = self.validator.build_report(payload)

        last_error: Optional[StoreUnavailableException] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                record = await self.store.create_report(new_report)
            except StoreUnavailableException as e:
                last_error = e
                logger.warning(
                    f"Submission attempt {attempt}/{self.max_attempts} failed: "
                    f"{e.internal_message or e.detail}"
                )
                if attempt < self.max_attempts:
                    await self._sleep(self.backoff_seconds)
                continue

            audit_log.log(
                AuditAction.REPORT_SUBMIT,
                actor=context.subject_id if context else None,
                request_id=context.request_id if context else None,
                client_ip=context.client_ip if context else None,
                resource_type="hazard_report",
                resource_id=record.id,
                details={"hazard_type": record.hazard_type.value, "attempts": attempt},
            )
            return record

        logger.error(f"Submission failed after {self.max_attempts} attempts")
        raise last_error
