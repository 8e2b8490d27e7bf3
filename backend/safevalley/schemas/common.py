"""Common schemas used across the application."""

from pydantic import BaseModel, Field
from shapely.geometry import Point, box


class Coordinate(BaseModel):
    """Geographic coordinate."""

    latitude: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in degrees")


class BoundingBox(BaseModel):
    """Rectangular geographic area, e.g. the extent of the neighborhood map."""

    min_lon: float = Field(..., ge=-180, le=180)
    min_lat: float = Field(..., ge=-90, le=90)
    max_lon: float = Field(..., ge=-180, le=180)
    max_lat: float = Field(..., ge=-90, le=90)

    def contains(self, latitude: float, longitude: float) -> bool:
        """Whether the point lies inside the box, edges included."""
        area = box(self.min_lon, self.min_lat, self.max_lon, self.max_lat)
        return area.covers(Point(longitude, latitude))
