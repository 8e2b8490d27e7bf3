"""Audit logging for moderation and submission events."""

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel

logger = logging.getLogger("api.audit")


class AuditAction(str, Enum):
    """Audit action types."""

    # Authentication
    AUTH_SUCCESS = "auth.success"
    AUTH_FAILURE = "auth.failure"

    # Public submissions
    REPORT_SUBMIT = "report.submit"

    # Moderation
    REPORT_APPROVE = "report.approve"
    REPORT_REJECT = "report.reject"
    REPORT_DELETE = "report.delete"
    REPORT_RESTORE = "report.restore"
    REPORT_EDIT = "report.edit"
    REPORT_PURGE = "report.purge"


class AuditSeverity(str, Enum):
    """Audit event severity levels."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEntry(BaseModel):
    """Audit log entry structure."""

    timestamp: datetime
    action: AuditAction
    severity: AuditSeverity
    actor: Optional[str] = None
    request_id: Optional[str] = None
    client_ip: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    success: bool = True
    error_message: Optional[str] = None


class AuditLogger:
    """Structured (JSON) audit trail written through the ``api.audit`` logger."""

    def __init__(self):
        self._logger = logging.getLogger("api.audit")

    def _format_entry(self, entry: AuditEntry) -> str:
        return json.dumps(entry.model_dump(mode="json"), default=str)

    def log(
        self,
        action: AuditAction,
        *,
        severity: AuditSeverity = AuditSeverity.INFO,
        actor: Optional[str] = None,
        request_id: Optional[str] = None,
        client_ip: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        success: bool = True,
        error_message: Optional[str] = None,
    ) -> AuditEntry:
        """
        Log an audit event.

        Args:
            action: The action being audited
            severity: Event severity level
            actor: Masked identifier of the acting principal
            request_id: Unique request identifier
            client_ip: Client IP address
            resource_type: Type of resource touched
            resource_id: ID of resource touched
            details: Additional context
            success: Whether the action succeeded
            error_message: Error message if failed
        """
        entry = AuditEntry(
            timestamp=datetime.now(timezone.utc),
            action=action,
            severity=severity,
            actor=actor,
            request_id=request_id,
            client_ip=client_ip,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details,
            success=success,
            error_message=error_message,
        )

        log_message = self._format_entry(entry)

        if severity == AuditSeverity.ERROR:
            self._logger.error(f"AUDIT: {log_message}")
        elif severity == AuditSeverity.WARNING:
            self._logger.warning(f"AUDIT: {log_message}")
        else:
            self._logger.info(f"AUDIT: {log_message}")

        return entry

    def log_auth_success(self, request_id: str, client_ip: str, actor: str) -> None:
        """Log successful authentication."""
        self.log(
            AuditAction.AUTH_SUCCESS,
            actor=actor,
            request_id=request_id,
            client_ip=client_ip,
        )

    def log_auth_failure(self, request_id: str, client_ip: str, reason: str) -> None:
        """Log failed authentication attempt."""
        self.log(
            AuditAction.AUTH_FAILURE,
            severity=AuditSeverity.WARNING,
            request_id=request_id,
            client_ip=client_ip,
            success=False,
            error_message=reason,
        )

    def log_moderation(
        self,
        action: AuditAction,
        report_id: str,
        *,
        actor: Optional[str],
        request_id: Optional[str] = None,
        client_ip: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log a moderation decision on a report."""
        self.log(
            action,
            # Irreversible removals stand out in the trail
            severity=AuditSeverity.WARNING if action == AuditAction.REPORT_PURGE else AuditSeverity.INFO,
            actor=actor,
            request_id=request_id,
            client_ip=client_ip,
            resource_type="hazard_report",
            resource_id=report_id,
            details=details,
        )


# Global audit logger instance
audit_log = AuditLogger()
