"""Public map visibility: which reports the map shows at a given instant."""

import logging
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Optional

from safevalley.models.hazard_report import HazardType, ReportStatus
from safevalley.schemas.hazard_report import HazardReportRecord, PublicReportView
from safevalley.services.catalog import allowed_hazard_types

logger = logging.getLogger(__name__)


def is_expired(report: HazardReportRecord, now: datetime) -> bool:
    """A report expires at ``created_at + duration`` days, that instant included."""
    return now >= report.expires_at


def is_publicly_visible(
    report: HazardReportRecord,
    now: datetime,
    allowed_types: Optional[FrozenSet[HazardType]] = None,
) -> bool:
    """Approved, not yet expired and of an allowed hazard type."""
    if report.status != ReportStatus.APPROVED:
        return False
    if is_expired(report, now):
        return False
    if allowed_types is not None and report.hazard_type not in allowed_types:
        return False
    return True


def visible_reports(
    reports: Iterable[HazardReportRecord],
    now: datetime,
    travel_mode: Optional[str] = None,
    table: Optional[Dict[str, FrozenSet[HazardType]]] = None,
) -> List[HazardReportRecord]:
    """
    Filter a snapshot down to the reports eligible for the public map.

    Pure: the same snapshot, instant and travel mode always produce the same
    list, ordered by report id.

    Args:
        reports: Full snapshot of reports
        now: Instant to evaluate expiry against (timezone-aware)
        travel_mode: Category key; unknown keys allow all hazard types
        table: Optional override of the travel-mode category table
    """
    allowed = allowed_hazard_types(travel_mode, table)
    visible = [r for r in reports if is_publicly_visible(r, now, allowed)]
    visible.sort(key=lambda r: r.id)
    return visible


def display_radius(
    report: HazardReportRecord, default_radius: float, max_radius: float
) -> float:
    """Radius drawn on the map: the legacy radius capped at ``max_radius``."""
    if report.radius is None or report.radius <= 0:
        return default_radius
    return min(float(report.radius), max_radius)


def public_views(
    reports: Iterable[HazardReportRecord],
    now: datetime,
    travel_mode: Optional[str],
    *,
    default_radius: float,
    max_radius: float,
) -> List[PublicReportView]:
    """Visibility filter output shaped for the map widget."""
    views = [
        PublicReportView.from_record(r, display_radius(r, default_radius, max_radius))
        for r in visible_reports(reports, now, travel_mode)
    ]
    logger.debug(f"{len(views)} reports visible for travel mode {travel_mode!r}")
    return views
