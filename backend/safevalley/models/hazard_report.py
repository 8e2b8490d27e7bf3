"""Hazard Report database model for user-submitted reports."""

import enum
import uuid
from datetime import datetime
from typing import Optional

from geoalchemy2 import Geometry
from sqlalchemy import (
    Enum,
    Float,
    Index,
    Integer,
    String,
    Text,
    DateTime,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from safevalley.models.base import Base


class HazardType(str, enum.Enum):
    """Types of hazards that can be reported."""

    CRIME = "crime"
    LOAD_SHEDDING = "load_shedding"
    POTHOLE = "pothole"
    DUMPING = "dumping"
    WATER_LEAK = "water_leak"
    SEWERAGE_LEAK = "sewerage_leak"
    FLOODING = "flooding"


class ReportStatus(str, enum.Enum):
    """Moderation status of a hazard report."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DELETED = "deleted"


class HazardReport(Base):
    """User-submitted hazard report.

    Only ``status`` records the moderation state. The legacy
    ``isApproved``/``isRejected``/``isDeleted`` flags are derived from it and
    never stored.
    """

    __tablename__ = "hazard_reports"
    __table_args__ = (
        Index("ix_hazard_reports_status_created", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    # Classification
    hazard_type: Mapped[HazardType] = mapped_column(
        Enum(HazardType, name="hazard_type"),
        nullable=False,
    )

    # User input (description is stored HTML-escaped)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(
        Geometry(geometry_type="POINT", srid=4326),
        nullable=False,
    )
    radius: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    photo_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    # Moderation
    status: Mapped[ReportStatus] = mapped_column(
        Enum(ReportStatus, name="report_status"),
        default=ReportStatus.PENDING,
        nullable=False,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rejected_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
