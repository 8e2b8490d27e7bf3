"""Shared fixtures for report tests."""

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from safevalley.core.rbac import Role, principal_context, public_context
from safevalley.models.hazard_report import HazardType, ReportStatus
from safevalley.schemas.common import BoundingBox, Coordinate
from safevalley.schemas.hazard_report import HazardReportRecord
from safevalley.services.submission_validator import SubmissionValidator

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

# Inside the neighborhood map bounds
INSIDE = {"latitude": -26.19, "longitude": 28.07}

_ids = count(1)


def make_report(**overrides) -> HazardReportRecord:
    """Build a report snapshot; defaults to a pending pothole created a day ago."""
    fields = {
        "id": f"report-{next(_ids):04d}",
        "hazard_type": HazardType.POTHOLE,
        "description": "Deep pothole on the corner",
        "location": Coordinate(**INSIDE),
        "duration": 7,
        "status": ReportStatus.PENDING,
        "created_at": NOW - timedelta(days=1),
    }
    fields.update(overrides)
    return HazardReportRecord(**fields)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def admin_context():
    return principal_context(
        "sk_test********", [Role.ADMIN], request_id="req-1", client_ip="10.0.0.1"
    )


@pytest.fixture
def moderator_context():
    return principal_context("moderator-1", [Role.MODERATOR], request_id="req-2")


@pytest.fixture
def anonymous_context():
    return public_context(request_id="req-3", client_ip="10.0.0.9")


@pytest.fixture
def validator():
    return SubmissionValidator(
        BoundingBox(min_lon=28.064, min_lat=-26.197, max_lon=28.085, max_lat=-26.181),
    )


@pytest.fixture
def valid_payload():
    return {
        "type": "pothole",
        "description": "Deep pothole on the corner of Main Road",
        "location": dict(INSIDE),
        "duration": 7,
    }
