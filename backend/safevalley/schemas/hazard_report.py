"""Hazard report schemas."""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from safevalley.models.hazard_report import HazardType, ReportStatus
from safevalley.schemas.common import Coordinate


class NewReport(BaseModel):
    """Validated, sanitized submission ready to be written to the store."""

    hazard_type: HazardType
    description: str
    location: Coordinate
    duration: int
    radius: Optional[float] = None
    photo_url: Optional[str] = None


class HazardReportRecord(BaseModel):
    """Immutable snapshot of a stored hazard report.

    Lifecycle transitions never modify a record; they produce a field delta
    that the store applies, and ``with_delta`` builds the resulting snapshot.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    hazard_type: HazardType
    description: str
    location: Coordinate
    duration: int
    radius: Optional[float] = None
    status: ReportStatus = ReportStatus.PENDING
    created_at: datetime
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    photo_url: Optional[str] = None

    @property
    def expires_at(self) -> datetime:
        """Instant from which the report is no longer publicly visible."""
        return self.created_at + timedelta(days=self.duration)

    @property
    def is_approved(self) -> bool:
        return self.status == ReportStatus.APPROVED

    @property
    def is_rejected(self) -> bool:
        return self.status == ReportStatus.REJECTED

    @property
    def is_deleted(self) -> bool:
        return self.status == ReportStatus.DELETED

    def with_delta(self, delta: Mapping[str, Any]) -> "HazardReportRecord":
        return self.model_copy(update=dict(delta))


class PublicReportView(BaseModel):
    """Report as rendered on the public map. Carries no moderation metadata."""

    id: str
    type: HazardType
    description: str
    duration: int
    created_at: datetime
    expires_at: datetime
    location: Coordinate
    radius: float = Field(..., description="Display radius in meters")
    photo_url: Optional[str] = None

    @classmethod
    def from_record(
        cls, record: HazardReportRecord, display_radius: float
    ) -> "PublicReportView":
        return cls(
            id=record.id,
            type=record.hazard_type,
            description=record.description,
            duration=record.duration,
            created_at=record.created_at,
            expires_at=record.expires_at,
            location=record.location,
            radius=display_radius,
            photo_url=record.photo_url,
        )


class AdminReportView(BaseModel):
    """Full report for the moderation UI, including derived legacy flags."""

    id: str
    type: HazardType
    description: str
    location: Coordinate
    duration: int
    radius: Optional[float] = None
    status: ReportStatus
    created_at: datetime
    expires_at: datetime
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    photo_url: Optional[str] = None
    is_approved: bool
    is_rejected: bool
    is_deleted: bool

    @classmethod
    def from_record(cls, record: HazardReportRecord) -> "AdminReportView":
        return cls(
            id=record.id,
            type=record.hazard_type,
            description=record.description,
            location=record.location,
            duration=record.duration,
            radius=record.radius,
            status=record.status,
            created_at=record.created_at,
            expires_at=record.expires_at,
            approved_at=record.approved_at,
            rejected_at=record.rejected_at,
            deleted_at=record.deleted_at,
            updated_at=record.updated_at,
            photo_url=record.photo_url,
            is_approved=record.is_approved,
            is_rejected=record.is_rejected,
            is_deleted=record.is_deleted,
        )


class SubmissionResponse(BaseModel):
    """Response returned after a report submission."""

    id: str
    status: ReportStatus
    created_at: datetime
    message: str = "Report submitted and awaiting moderation"


class SoftDeleteRequest(BaseModel):
    """Body for the soft delete endpoint; the caller must confirm."""

    confirm: bool = False


class BucketPageResponse(BaseModel):
    """One page of a moderation bucket."""

    bucket: str
    reports: List[AdminReportView]
    next_cursor: Optional[str] = None


class TravelModeEntry(BaseModel):
    """Travel mode and the hazard types shown for it."""

    key: str
    hazard_types: List[HazardType]


class HazardTypeEntry(BaseModel):
    """Display metadata for a hazard type."""

    type: HazardType
    icon: str
    color: str


class CatalogResponse(BaseModel):
    """Hazard types and travel modes for the public map filters."""

    hazard_types: List[HazardTypeEntry]
    travel_modes: List[TravelModeEntry]


BucketCounts = Dict[str, int]
