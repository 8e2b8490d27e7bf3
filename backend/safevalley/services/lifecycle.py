"""Moderation state machine for hazard reports.

Every transition takes the report snapshot and the acting principal and
returns the complete field delta to persist. Nothing here touches the store;
the caller writes the delta in a single update so readers never observe a
status without its matching timestamps.

    pending ──approve──▶ approved ◀─┐
       │  ╲                 │       │ approve / reject are always
       │   reject──▶ rejected       │ revisable, from any state
       │                    │       │
       └──── soft delete ───┴──▶ deleted ──restore──▶ pending
                                    │
                             permanent delete (store removal)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from safevalley.core.exceptions import PreconditionFailedException
from safevalley.core.rbac import AuthContext, Permission, require_permission
from safevalley.models.hazard_report import ReportStatus
from safevalley.schemas.hazard_report import HazardReportRecord
from safevalley.services.submission_validator import SubmissionValidator

logger = logging.getLogger(__name__)

FieldDelta = Dict[str, Any]
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def status_from_legacy_flags(document: Mapping[str, Any]) -> ReportStatus:
    """Canonical status for a record stored with the old boolean flags.

    Deleted wins over rejected, which wins over approved, so a document that
    drifted into several flags at once still lands in exactly one state.
    """
    if document.get("isDeleted"):
        return ReportStatus.DELETED
    if document.get("isRejected"):
        return ReportStatus.REJECTED
    if document.get("isApproved"):
        return ReportStatus.APPROVED
    return ReportStatus.PENDING


class ReportLifecycle:
    """
    Computes transitions of the moderation state machine.

    Args:
        clock: Source of the current instant (UTC)
        validator: Field rules applied to admin edits
        retain_history_on_delete: Keep approved_at/rejected_at on soft delete
        purge_requires_soft_delete: Only allow permanent deletion of deleted reports
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        validator: Optional[SubmissionValidator] = None,
        *,
        retain_history_on_delete: bool = True,
        purge_requires_soft_delete: bool = True,
    ):
        self.clock = clock or utcnow
        self.validator = validator or SubmissionValidator.from_settings()
        self.retain_history_on_delete = retain_history_on_delete
        self.purge_requires_soft_delete = purge_requires_soft_delete

    def _now(self, report: HazardReportRecord) -> datetime:
        # Decision timestamps never precede creation, even with a skewed clock
        return max(self.clock(), report.created_at)

    def approve(self, report: HazardReportRecord, context: AuthContext) -> FieldDelta:
        """Approve from any state. Re-approving refreshes ``approved_at``."""
        require_permission(context, Permission.REPORT_MODERATE)
        return {
            "status": ReportStatus.APPROVED,
            "approved_at": self._now(report),
            "rejected_at": None,
            "deleted_at": None,
        }

    def reject(self, report: HazardReportRecord, context: AuthContext) -> FieldDelta:
        """Reject from any state."""
        require_permission(context, Permission.REPORT_MODERATE)
        return {
            "status": ReportStatus.REJECTED,
            "approved_at": None,
            "rejected_at": self._now(report),
            "deleted_at": None,
        }

    def soft_delete(
        self, report: HazardReportRecord, context: AuthContext, *, confirm: bool
    ) -> FieldDelta:
        """Move a report to the deleted bucket. The caller must confirm."""
        require_permission(context, Permission.REPORT_MODERATE)
        if not confirm:
            raise PreconditionFailedException("Deletion must be confirmed")

        delta: FieldDelta = {
            "status": ReportStatus.DELETED,
            "deleted_at": self._now(report),
        }
        if not self.retain_history_on_delete:
            delta["approved_at"] = None
            delta["rejected_at"] = None
        return delta

    def restore(self, report: HazardReportRecord, context: AuthContext) -> FieldDelta:
        """Return a report to the moderation queue, whatever its prior decision."""
        require_permission(context, Permission.REPORT_MODERATE)
        return {
            "status": ReportStatus.PENDING,
            "approved_at": None,
            "rejected_at": None,
            "deleted_at": None,
        }

    def edit(
        self,
        report: HazardReportRecord,
        context: AuthContext,
        changes: Mapping[str, Any],
    ) -> FieldDelta:
        """Change type, description, duration or radius; status is untouched.

        Raises:
            ValidationFailedException: if any changed field breaks a rule
        """
        require_permission(context, Permission.REPORT_EDIT)
        delta = self.validator.build_edit(changes)
        delta["updated_at"] = self._now(report)
        return delta

    def check_permanent_delete(
        self, report: HazardReportRecord, context: AuthContext
    ) -> None:
        """Raise unless the report may be removed from the store for good."""
        require_permission(context, Permission.REPORT_PURGE)
        if self.purge_requires_soft_delete and report.status != ReportStatus.DELETED:
            raise PreconditionFailedException(
                "Only deleted reports can be permanently deleted"
            )
