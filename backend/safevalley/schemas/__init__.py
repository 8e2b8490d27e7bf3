# Pydantic schemas
from safevalley.schemas.common import Coordinate, BoundingBox
from safevalley.schemas.hazard_report import (
    NewReport,
    HazardReportRecord,
    PublicReportView,
    AdminReportView,
    SubmissionResponse,
    SoftDeleteRequest,
    BucketPageResponse,
    CatalogResponse,
)

__all__ = [
    "Coordinate",
    "BoundingBox",
    "NewReport",
    "HazardReportRecord",
    "PublicReportView",
    "AdminReportView",
    "SubmissionResponse",
    "SoftDeleteRequest",
    "BucketPageResponse",
    "CatalogResponse",
]
