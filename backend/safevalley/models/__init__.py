# Database models
from safevalley.models.base import Base
from safevalley.models.hazard_report import HazardReport, HazardType, ReportStatus

__all__ = ["Base", "HazardReport", "HazardType", "ReportStatus"]
