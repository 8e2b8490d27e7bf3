"""Tests for the public map visibility filter and travel-mode catalogue."""

from datetime import timedelta

import pytest

from conftest import NOW, make_report
from safevalley.models.hazard_report import HazardType, ReportStatus
from safevalley.services.catalog import (
    ALL_HAZARD_TYPES,
    allowed_hazard_types,
    hazard_type_entries,
    travel_mode_entries,
)
from safevalley.services.visibility import (
    display_radius,
    is_expired,
    public_views,
    visible_reports,
)


def _approved(**overrides):
    fields = {"status": ReportStatus.APPROVED, "approved_at": NOW}
    fields.update(overrides)
    return make_report(**fields)


class TestExpiry:
    """Tests for expiry at created_at + duration days."""

    def test_visible_before_expiry(self):
        report = _approved(created_at=NOW, duration=5)
        assert visible_reports([report], NOW + timedelta(days=4)) == [report]

    def test_hidden_at_exact_expiry(self):
        report = _approved(created_at=NOW, duration=5)
        assert visible_reports([report], NOW + timedelta(days=5)) == []

    def test_visible_one_microsecond_before_expiry(self):
        report = _approved(created_at=NOW, duration=5)
        now = NOW + timedelta(days=5) - timedelta(microseconds=1)

        assert not is_expired(report, now)
        assert visible_reports([report], now) == [report]


class TestStatusFilter:
    """Only approved reports reach the map."""

    @pytest.mark.parametrize("status", [
        ReportStatus.PENDING,
        ReportStatus.REJECTED,
        ReportStatus.DELETED,
    ])
    def test_non_approved_hidden(self, status):
        report = make_report(status=status)
        assert visible_reports([report], NOW) == []

    def test_deleted_report_with_old_approval_hidden(self):
        report = make_report(status=ReportStatus.DELETED, approved_at=NOW, deleted_at=NOW)
        assert visible_reports([report], NOW) == []


class TestTravelModeFilter:
    """Tests for the category filter."""

    def test_pothole_shown_for_cycling(self):
        report = _approved(hazard_type=HazardType.POTHOLE)
        assert visible_reports([report], NOW, "cycling") == [report]

    def test_pothole_hidden_for_taxi(self):
        report = _approved(hazard_type=HazardType.POTHOLE)
        assert visible_reports([report], NOW, "taxi") == []

    @pytest.mark.parametrize("mode", [None, "all", "helicopter", ""])
    def test_unknown_mode_allows_every_type(self, mode):
        assert allowed_hazard_types(mode) == ALL_HAZARD_TYPES

    def test_mode_lookup_ignores_case(self):
        assert HazardType.POTHOLE in allowed_hazard_types("Cycling")

    def test_custom_table(self):
        table = {"scooter": frozenset({HazardType.FLOODING})}
        flood = _approved(hazard_type=HazardType.FLOODING)
        crime = _approved(hazard_type=HazardType.CRIME)

        assert visible_reports([flood, crime], NOW, "scooter", table) == [flood]

    def test_walking_excludes_potholes(self):
        assert HazardType.POTHOLE not in allowed_hazard_types("walking")
        assert HazardType.SEWERAGE_LEAK in allowed_hazard_types("walking")


class TestDeterminism:
    """The filter is pure."""

    def test_result_ordered_by_id(self):
        reports = [_approved(id="c"), _approved(id="a"), _approved(id="b")]
        result = visible_reports(reports, NOW)

        assert [r.id for r in result] == ["a", "b", "c"]

    def test_same_input_same_output(self):
        reports = [_approved(id="x"), make_report(id="y"), _approved(id="z")]

        assert visible_reports(reports, NOW, "car") == visible_reports(list(reports), NOW, "car")


class TestDisplay:
    """Tests for the public view shape."""

    def test_display_radius_caps_legacy_value(self):
        assert display_radius(_approved(radius=900), 100, 500) == 500

    def test_display_radius_uses_stored_value(self):
        assert display_radius(_approved(radius=250), 100, 500) == 250

    def test_display_radius_defaults_when_missing(self):
        assert display_radius(_approved(), 100, 500) == 100

    def test_public_view_hides_moderation_fields(self):
        report = _approved(created_at=NOW - timedelta(days=2), duration=7)
        views = public_views([report], NOW, None, default_radius=100, max_radius=500)

        assert len(views) == 1
        data = views[0].model_dump()
        assert data["type"] == HazardType.POTHOLE
        assert data["expires_at"] == NOW + timedelta(days=5)
        assert data["radius"] == 100
        assert "status" not in data
        assert "approved_at" not in data


class TestCatalogue:
    """Tests for hazard styling and the travel-mode table."""

    def test_every_type_has_style(self):
        entries = hazard_type_entries()

        assert {e["type"] for e in entries} == set(HazardType)
        assert all(e["icon"] and e["color"].startswith("rgba(") for e in entries)

    def test_travel_modes_listed(self):
        modes = {e["key"]: e["hazard_types"] for e in travel_mode_entries()}

        assert set(modes) == {"walking", "cycling", "car", "taxi"}
        assert modes["taxi"] == [HazardType.CRIME, HazardType.LOAD_SHEDDING]
