"""Tests for importing flag-based legacy report documents."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from scripts.import_legacy_reports import (
    convert_document,
    import_documents,
    load_documents,
    parse_timestamp,
)
from safevalley.config import Settings
from safevalley.core.exceptions import ValidationFailedException
from safevalley.models.hazard_report import HazardType, ReportStatus
from safevalley.services.report_store import InMemoryReportStore

CREATED = datetime.fromtimestamp(1700000000, tz=timezone.utc)
APPROVED = datetime.fromtimestamp(1700000500, tz=timezone.utc)
REJECTED = datetime.fromtimestamp(1700000600, tz=timezone.utc)


def _document(**overrides):
    document = {
        "type": "water_leak",
        "description": "Burst pipe flooding the pavement",
        "location": {"lat": -26.19, "lng": 28.07},
        "duration": 3,
        "createdAt": {"seconds": 1700000000},
        "isApproved": False,
        "isRejected": False,
        "isDeleted": False,
    }
    document.update(overrides)
    return document


# =============================================================================
# Timestamp parsing
# =============================================================================

class TestParseTimestamp:
    """Tests for the accepted timestamp shapes."""

    def test_seconds_object(self):
        assert parse_timestamp({"seconds": 1700000000}) == CREATED

    def test_epoch_number(self):
        assert parse_timestamp(1700000000) == CREATED

    def test_iso_string_without_zone_is_utc(self):
        assert parse_timestamp("2023-11-14T22:13:20") == CREATED
        assert parse_timestamp("2023-11-14T22:13:20Z") == CREATED

    def test_missing(self):
        assert parse_timestamp(None) is None


# =============================================================================
# Document conversion
# =============================================================================

class TestConvertDocument:
    """Tests for validating and normalizing a single legacy document."""

    def test_pending_document_drops_decision_timestamps(self, validator):
        converted = convert_document(
            _document(approvedAt={"seconds": 1700000500}, rejectedAt={"seconds": 1700000600}),
            validator,
        )

        assert converted["state"] == {
            "status": ReportStatus.PENDING,
            "approved_at": None,
            "rejected_at": None,
            "deleted_at": None,
        }
        assert converted["created_at"] == CREATED

    def test_drifted_flags_keep_only_matching_timestamp(self, validator):
        converted = convert_document(
            _document(
                isApproved=True,
                isRejected=True,
                approvedAt={"seconds": 1700000500},
                rejectedAt={"seconds": 1700000600},
            ),
            validator,
        )

        assert converted["state"]["status"] == ReportStatus.REJECTED
        assert converted["state"]["rejected_at"] == REJECTED
        assert converted["state"]["approved_at"] is None

    def test_approved_without_timestamp_backfills_creation(self, validator):
        converted = convert_document(_document(isApproved=True), validator)

        assert converted["state"]["approved_at"] == CREATED

    def test_decision_never_precedes_creation(self, validator):
        converted = convert_document(
            _document(isApproved=True, approvedAt={"seconds": 1600000000}), validator
        )

        assert converted["state"]["approved_at"] == CREATED

    def test_deleted_keeps_prior_decision_when_history_retained(self, validator):
        document = _document(
            isApproved=True,
            isDeleted=True,
            approvedAt={"seconds": 1700000500},
            rejectedAt={"seconds": 1700000600},
        )

        kept = convert_document(document, validator, retain_history_on_delete=True)
        cleared = convert_document(document, validator, retain_history_on_delete=False)

        assert kept["state"]["status"] == ReportStatus.DELETED
        assert kept["state"]["deleted_at"] == CREATED
        assert kept["state"]["approved_at"] == APPROVED
        assert kept["state"]["rejected_at"] is None
        assert cleared["state"]["approved_at"] is None
        assert cleared["state"]["rejected_at"] is None

    def test_description_is_sanitized(self, validator):
        converted = convert_document(
            _document(description="<script>alert(1)</script> near the school"), validator
        )

        assert converted["report"].description.startswith("&lt;script&gt;alert(1)")
        assert converted["report"].hazard_type == HazardType.WATER_LEAK

    def test_field_rules_apply(self, validator):
        with pytest.raises(ValidationFailedException) as exc_info:
            convert_document(
                _document(type="graffiti", duration=99, location={"lat": 0, "lng": 0}),
                validator,
            )

        fields = [e["field"] for e in exc_info.value.errors]
        assert fields == ["type", "location", "duration"]

    def test_blank_radius_is_ignored(self, validator):
        converted = convert_document(_document(radius=""), validator)

        assert converted["report"].radius is None


# =============================================================================
# Import
# =============================================================================

class TestImportDocuments:
    """Tests for writing converted documents through the store."""

    @pytest.mark.asyncio
    async def test_each_document_is_one_write(self):
        store = InMemoryReportStore()
        store.create_report = AsyncMock(wraps=store.create_report)
        store.update_report = AsyncMock(wraps=store.update_report)

        counts = await import_documents(
            [_document(isApproved=True), _document()], store, Settings()
        )

        assert counts == {"skipped": 0, "approved": 1, "pending": 1}
        assert store.create_report.await_count == 2
        store.update_report.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_imported_records_keep_history(self):
        store = InMemoryReportStore()

        await import_documents(
            [_document(isRejected=True, rejectedAt={"seconds": 1700000600})], store, Settings()
        )

        [record] = await store.list_reports()
        assert record.status == ReportStatus.REJECTED
        assert record.created_at == CREATED
        assert record.rejected_at == REJECTED
        assert record.approved_at is None

    @pytest.mark.asyncio
    async def test_invalid_documents_are_skipped(self, capsys):
        store = InMemoryReportStore()

        counts = await import_documents(
            [_document(duration=99), _document(createdAt="yesterday"), _document()],
            store,
            Settings(),
        )

        assert counts == {"skipped": 2, "pending": 1}
        assert len(await store.list_reports()) == 1
        assert "skipped document 0" in capsys.readouterr().out

    def test_load_documents_accepts_keyed_object(self, tmp_path):
        path = tmp_path / "hazards.json"
        path.write_text(json.dumps({"abc": _document(), "def": _document()}))

        assert len(load_documents(str(path))) == 2
