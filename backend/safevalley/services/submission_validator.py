"""Validation and sanitization gate for report submissions and admin edits."""

import logging
import math
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel

from safevalley.config import Settings, settings as default_settings
from safevalley.core.exceptions import ValidationFailedException
from safevalley.models.hazard_report import HazardType
from safevalley.schemas.common import BoundingBox, Coordinate
from safevalley.schemas.hazard_report import NewReport

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("type", "description", "duration", "radius")

_HTML_ESCAPES = str.maketrans({
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#039;",
})


def sanitize(text: str) -> str:
    """Escape the five HTML metacharacters.

    Not idempotent: escaping already-escaped text compounds the entities, so
    callers apply it once, to raw user input only.
    """
    return text.translate(_HTML_ESCAPES)


class FieldError(BaseModel):
    field: str
    message: str


class ValidationResult(BaseModel):
    """Outcome of validating a payload; ``errors`` lists every violation."""

    ok: bool
    errors: List[FieldError] = []

    @property
    def messages(self) -> List[str]:
        return [e.message for e in self.errors]

    def raise_for_errors(self) -> None:
        if not self.ok:
            raise ValidationFailedException([e.model_dump() for e in self.errors])


def _as_number(value: Any) -> Optional[float]:
    """Numeric value of ``value`` or None. Booleans and NaN are not numbers."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _as_whole_number(value: Any) -> Optional[int]:
    number = _as_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


class SubmissionValidator:
    """
    Field rules for hazard reports.

    ``validate`` checks, in order, the hazard type, description, location,
    duration and (when the legacy schema is active) radius, collecting every
    violation instead of stopping at the first.
    """

    def __init__(
        self,
        bounds: BoundingBox,
        *,
        description_min_length: int = 10,
        description_max_length: int = 500,
        duration_min_days: int = 1,
        duration_max_days: int = 30,
        radius_max_meters: float = 500,
        radius_enabled: bool = True,
    ):
        self.bounds = bounds
        self.description_min_length = description_min_length
        self.description_max_length = description_max_length
        self.duration_min_days = duration_min_days
        self.duration_max_days = duration_max_days
        self.radius_max_meters = radius_max_meters
        self.radius_enabled = radius_enabled

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SubmissionValidator":
        settings = settings or default_settings
        return cls(
            BoundingBox(
                min_lon=settings.map_min_lon,
                min_lat=settings.map_min_lat,
                max_lon=settings.map_max_lon,
                max_lat=settings.map_max_lat,
            ),
            description_min_length=settings.description_min_length,
            description_max_length=settings.description_max_length,
            duration_min_days=settings.duration_min_days,
            duration_max_days=settings.duration_max_days,
            radius_max_meters=settings.radius_max_meters,
            radius_enabled=settings.legacy_radius_enabled,
        )

    # ------------------------------------------------------------------
    # Individual field rules; each returns an error message or None
    # ------------------------------------------------------------------

    def _check_type(self, value: Any) -> Optional[str]:
        try:
            HazardType(value)
        except ValueError:
            return "invalid hazard type"
        return None

    def _check_description(self, value: Any) -> Optional[str]:
        text = value.strip() if isinstance(value, str) else ""
        if len(text) < self.description_min_length:
            return f"description must be at least {self.description_min_length} characters"
        if len(text) > self.description_max_length:
            return f"description must be at most {self.description_max_length} characters"
        return None

    def _parse_location(self, value: Any) -> Optional[Coordinate]:
        if not isinstance(value, Mapping):
            return None
        lat = _as_number(value.get("latitude", value.get("lat")))
        lon = _as_number(value.get("longitude", value.get("lng")))
        if lat is None or lon is None:
            return None
        if not self.bounds.contains(lat, lon):
            return None
        return Coordinate(latitude=lat, longitude=lon)

    def _check_location(self, value: Any) -> Optional[str]:
        if self._parse_location(value) is None:
            return "invalid location"
        return None

    def _check_duration(self, value: Any) -> Optional[str]:
        days = _as_whole_number(value)
        if days is None or not self.duration_min_days <= days <= self.duration_max_days:
            return (
                f"invalid duration: must be a whole number of days between "
                f"{self.duration_min_days} and {self.duration_max_days}"
            )
        return None

    def _check_radius(self, value: Any) -> Optional[str]:
        meters = _as_number(value)
        if meters is None or not 0 < meters <= self.radius_max_meters:
            return (
                f"invalid radius: must be greater than 0 and at most "
                f"{self.radius_max_meters:g} meters"
            )
        return None

    def _check_photo_url(self, value: Any) -> Optional[str]:
        if value is not None and not isinstance(value, str):
            return "invalid photo reference"
        return None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self, payload: Any) -> ValidationResult:
        """Validate a new report payload."""
        data: Mapping[str, Any] = payload if isinstance(payload, Mapping) else {}
        checks = [
            ("type", self._check_type(data.get("type"))),
            ("description", self._check_description(data.get("description"))),
            ("location", self._check_location(data.get("location"))),
            ("duration", self._check_duration(data.get("duration"))),
        ]
        if self.radius_enabled and data.get("radius") is not None:
            checks.append(("radius", self._check_radius(data.get("radius"))))
        checks.append(("photo_url", self._check_photo_url(data.get("photo_url"))))

        errors = [FieldError(field=f, message=m) for f, m in checks if m]
        return ValidationResult(ok=not errors, errors=errors)

    def validate_edit(self, changes: Any) -> ValidationResult:
        """Validate an admin edit. Only type, description, duration and radius may change."""
        data: Mapping[str, Any] = changes if isinstance(changes, Mapping) else {}
        errors: List[FieldError] = []

        editable = [f for f in EDITABLE_FIELDS if f != "radius" or self.radius_enabled]
        for key in data:
            if key not in editable:
                errors.append(FieldError(field=key, message=f"{key} cannot be edited"))

        if not any(key in data for key in editable):
            errors.append(FieldError(field="__all__", message="no editable fields supplied"))

        rules = {
            "type": self._check_type,
            "description": self._check_description,
            "duration": self._check_duration,
            "radius": self._check_radius,
        }
        for key in editable:
            if key in data:
                message = rules[key](data[key])
                if message:
                    errors.append(FieldError(field=key, message=message))

        return ValidationResult(ok=not errors, errors=errors)

    def build_report(self, payload: Any) -> NewReport:
        """Validate and sanitize a submission into a store-ready report.

        Raises:
            ValidationFailedException: carrying every violated rule
        """
        result = self.validate(payload)
        if not result.ok:
            logger.info(f"Submission rejected: {len(result.errors)} violation(s)")
        result.raise_for_errors()

        radius = None
        if self.radius_enabled and payload.get("radius") is not None:
            radius = _as_number(payload["radius"])

        return NewReport(
            hazard_type=HazardType(payload["type"]),
            description=sanitize(payload["description"].strip()),
            location=self._parse_location(payload["location"]),
            duration=_as_whole_number(payload["duration"]),
            radius=radius,
            photo_url=payload.get("photo_url"),
        )

    def build_edit(self, changes: Any) -> Dict[str, Any]:
        """Validate an edit and return the store field values it sets.

        The new description is sanitized from the raw text supplied here,
        never from the already-escaped stored text.
        """
        self.validate_edit(changes).raise_for_errors()

        fields: Dict[str, Any] = {}
        if "type" in changes:
            fields["hazard_type"] = HazardType(changes["type"])
        if "description" in changes:
            fields["description"] = sanitize(changes["description"].strip())
        if "duration" in changes:
            fields["duration"] = _as_whole_number(changes["duration"])
        if "radius" in changes:
            fields["radius"] = _as_number(changes["radius"])
        return fields
