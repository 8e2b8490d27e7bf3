"""Tests for the moderation state machine."""

from datetime import timedelta

import pytest

from conftest import NOW, make_report
from safevalley.core.exceptions import (
    AuthenticationException,
    AuthorizationException,
    PreconditionFailedException,
    ValidationFailedException,
)
from safevalley.models.hazard_report import HazardType, ReportStatus
from safevalley.services.lifecycle import ReportLifecycle, status_from_legacy_flags


TIMESTAMPS = ("approved_at", "rejected_at", "deleted_at")
STATUS_TIMESTAMP = {
    ReportStatus.APPROVED: "approved_at",
    ReportStatus.REJECTED: "rejected_at",
    ReportStatus.DELETED: "deleted_at",
}


class _Clock:
    """Clock that advances one minute per call."""

    def __init__(self, start=NOW):
        self.current = start

    def __call__(self):
        value = self.current
        self.current = self.current + timedelta(minutes=1)
        return value


@pytest.fixture
def lifecycle(clock, validator):
    return ReportLifecycle(clock, validator)


@pytest.fixture
def strict_lifecycle(clock, validator):
    """Lifecycle that clears decision history on soft delete."""
    return ReportLifecycle(clock, validator, retain_history_on_delete=False)


def _assert_single_timestamp(report):
    expected = STATUS_TIMESTAMP.get(report.status)
    for field in TIMESTAMPS:
        if field == expected:
            assert getattr(report, field) is not None, field
        else:
            assert getattr(report, field) is None, field


# =============================================================================
# Transitions
# =============================================================================

class TestTransitions:
    """Tests for approve, reject, soft delete and restore."""

    def test_approve_pending_report(self, lifecycle, admin_context):
        report = make_report()
        delta = lifecycle.approve(report, admin_context)

        assert delta == {
            "status": ReportStatus.APPROVED,
            "approved_at": NOW,
            "rejected_at": None,
            "deleted_at": None,
        }

    def test_reject_clears_previous_approval(self, lifecycle, admin_context):
        report = make_report(status=ReportStatus.APPROVED, approved_at=NOW - timedelta(hours=2))
        updated = report.with_delta(lifecycle.reject(report, admin_context))

        assert updated.status == ReportStatus.REJECTED
        assert updated.rejected_at == NOW
        assert updated.approved_at is None

    def test_approve_after_reject_is_allowed(self, lifecycle, admin_context):
        report = make_report(status=ReportStatus.REJECTED, rejected_at=NOW - timedelta(hours=1))
        updated = report.with_delta(lifecycle.approve(report, admin_context))

        assert updated.status == ReportStatus.APPROVED
        assert updated.rejected_at is None

    def test_approve_is_idempotent(self, validator, admin_context):
        """Approving twice leaves the same state, stamped with the latest call."""
        lifecycle = ReportLifecycle(_Clock(), validator)
        report = make_report()

        once = report.with_delta(lifecycle.approve(report, admin_context))
        twice = once.with_delta(lifecycle.approve(once, admin_context))

        assert twice.status == ReportStatus.APPROVED
        assert twice.rejected_at is None
        assert twice.deleted_at is None
        assert twice.approved_at == NOW + timedelta(minutes=1)
        assert twice.approved_at > once.approved_at

    def test_soft_delete_requires_confirmation(self, lifecycle, admin_context):
        report = make_report()

        with pytest.raises(PreconditionFailedException, match="confirmed"):
            lifecycle.soft_delete(report, admin_context, confirm=False)

    def test_soft_delete_keeps_decision_history_by_default(self, lifecycle, admin_context):
        approved_at = NOW - timedelta(hours=3)
        report = make_report(status=ReportStatus.APPROVED, approved_at=approved_at)

        delta = lifecycle.soft_delete(report, admin_context, confirm=True)
        updated = report.with_delta(delta)

        assert updated.status == ReportStatus.DELETED
        assert updated.deleted_at == NOW
        assert updated.approved_at == approved_at
        assert "approved_at" not in delta

    def test_soft_delete_can_clear_decision_history(self, strict_lifecycle, admin_context):
        report = make_report(status=ReportStatus.APPROVED, approved_at=NOW - timedelta(hours=3))
        updated = report.with_delta(strict_lifecycle.soft_delete(report, admin_context, confirm=True))

        _assert_single_timestamp(updated)

    def test_restore_resets_to_queue(self, lifecycle, admin_context):
        report = make_report(
            status=ReportStatus.DELETED,
            approved_at=NOW - timedelta(hours=5),
            rejected_at=NOW - timedelta(hours=4),
            deleted_at=NOW - timedelta(hours=3),
        )
        updated = report.with_delta(lifecycle.restore(report, admin_context))

        assert updated.status == ReportStatus.PENDING
        assert updated.approved_at is None
        assert updated.rejected_at is None
        assert updated.deleted_at is None

    def test_restore_from_rejected(self, lifecycle, admin_context):
        report = make_report(status=ReportStatus.REJECTED, rejected_at=NOW)
        updated = report.with_delta(lifecycle.restore(report, admin_context))

        assert updated.status == ReportStatus.PENDING

    @pytest.mark.parametrize("steps", [
        ["approve", "reject", "delete", "restore", "approve"],
        ["reject", "approve", "delete"],
        ["delete", "restore", "reject", "delete", "restore"],
    ])
    def test_only_matching_timestamp_is_set(self, strict_lifecycle, admin_context, steps):
        report = make_report()
        for step in steps:
            if step == "approve":
                delta = strict_lifecycle.approve(report, admin_context)
            elif step == "reject":
                delta = strict_lifecycle.reject(report, admin_context)
            elif step == "delete":
                delta = strict_lifecycle.soft_delete(report, admin_context, confirm=True)
            else:
                delta = strict_lifecycle.restore(report, admin_context)
            report = report.with_delta(delta)
            _assert_single_timestamp(report)

    def test_decision_never_precedes_creation(self, validator, admin_context):
        """A clock running behind the creation time is clamped."""
        lifecycle = ReportLifecycle(lambda: NOW - timedelta(days=10), validator)
        report = make_report(created_at=NOW)

        delta = lifecycle.approve(report, admin_context)
        assert delta["approved_at"] == NOW

    def test_transitions_do_not_mutate_snapshot(self, lifecycle, admin_context):
        report = make_report()
        lifecycle.approve(report, admin_context)

        assert report.status == ReportStatus.PENDING
        assert report.approved_at is None


# =============================================================================
# Edit
# =============================================================================

class TestEdit:
    """Tests for admin edits."""

    def test_edit_updates_fields_and_keeps_status(self, lifecycle, admin_context):
        report = make_report(status=ReportStatus.APPROVED, approved_at=NOW)
        delta = lifecycle.edit(report, admin_context, {
            "type": "flooding",
            "description": "Street is flooded after the storm",
            "duration": 3,
        })

        assert delta["hazard_type"] == HazardType.FLOODING
        assert delta["description"] == "Street is flooded after the storm"
        assert delta["duration"] == 3
        assert delta["updated_at"] == NOW
        assert "status" not in delta
        assert "approved_at" not in delta

    def test_edit_sanitizes_new_raw_text(self, lifecycle, admin_context):
        report = make_report(description="Fish &amp; chips shop")
        delta = lifecycle.edit(report, admin_context, {"description": "Fish & chips <shop>"})

        assert delta["description"] == "Fish &amp; chips &lt;shop&gt;"

    def test_edit_rejects_invalid_values(self, lifecycle, admin_context):
        report = make_report()

        with pytest.raises(ValidationFailedException) as exc_info:
            lifecycle.edit(report, admin_context, {"duration": 31, "type": "meteor"})

        assert "invalid hazard type" in exc_info.value.messages
        assert any("invalid duration" in m for m in exc_info.value.messages)

    def test_edit_rejects_non_editable_fields(self, lifecycle, admin_context):
        report = make_report()

        with pytest.raises(ValidationFailedException) as exc_info:
            lifecycle.edit(report, admin_context, {"status": "approved"})

        assert "status cannot be edited" in exc_info.value.messages


# =============================================================================
# Permanent delete
# =============================================================================

class TestPermanentDelete:
    """Tests for the permanent delete precondition."""

    def test_pending_report_cannot_be_purged(self, lifecycle, admin_context):
        report = make_report()

        with pytest.raises(PreconditionFailedException, match="Only deleted reports"):
            lifecycle.check_permanent_delete(report, admin_context)

    def test_deleted_report_can_be_purged(self, lifecycle, admin_context):
        report = make_report(status=ReportStatus.DELETED, deleted_at=NOW)
        lifecycle.check_permanent_delete(report, admin_context)

    def test_precondition_can_be_relaxed(self, clock, validator, admin_context):
        lifecycle = ReportLifecycle(clock, validator, purge_requires_soft_delete=False)
        lifecycle.check_permanent_delete(make_report(), admin_context)


# =============================================================================
# Authorization
# =============================================================================

class TestAuthorization:
    """Tests for the explicit principal on every operation."""

    def test_anonymous_cannot_approve(self, lifecycle, anonymous_context):
        with pytest.raises(AuthenticationException):
            lifecycle.approve(make_report(), anonymous_context)

    def test_missing_context_is_rejected(self, lifecycle):
        with pytest.raises(AuthenticationException):
            lifecycle.reject(make_report(), None)

    def test_moderator_can_moderate(self, lifecycle, moderator_context):
        delta = lifecycle.approve(make_report(), moderator_context)
        assert delta["status"] == ReportStatus.APPROVED

    def test_moderator_cannot_purge(self, lifecycle, moderator_context):
        report = make_report(status=ReportStatus.DELETED, deleted_at=NOW)

        with pytest.raises(AuthorizationException):
            lifecycle.check_permanent_delete(report, moderator_context)


# =============================================================================
# Legacy flags
# =============================================================================

class TestLegacyFlags:
    """Tests for converting boolean-flag documents to a status."""

    @pytest.mark.parametrize("document,expected", [
        ({}, ReportStatus.PENDING),
        ({"isApproved": True}, ReportStatus.APPROVED),
        ({"isRejected": True}, ReportStatus.REJECTED),
        ({"isApproved": True, "isRejected": True}, ReportStatus.REJECTED),
        ({"isApproved": True, "isDeleted": True}, ReportStatus.DELETED),
        ({"isApproved": False, "isRejected": False, "isDeleted": False}, ReportStatus.PENDING),
    ])
    def test_status_from_legacy_flags(self, document, expected):
        assert status_from_legacy_flags(document) == expected
