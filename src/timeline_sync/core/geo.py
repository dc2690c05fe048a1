"""Geographic coordinates and great-circle distance."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from timeline_sync.errors import ValidationError

EARTH_RADIUS_METERS = 6_371_000.0


@dataclass(frozen=True)
class GeoLocation:
    """A WGS84 coordinate in decimal degrees.

    Attributes:
        latitude: Degrees north, in [-90, 90]
        longitude: Degrees east, in [-180, 180]
        altitude: Optional altitude in meters (carried, never used for distance)
        location_name: Optional human-readable place name
    """

    latitude: float
    longitude: float
    altitude: float | None = None
    location_name: str | None = None

    def __post_init__(self) -> None:
        lat = self.latitude
        lon = self.longitude
        if not (isinstance(lat, int | float) and isinstance(lon, int | float)):
            raise ValidationError(f"Coordinates must be numeric, got ({lat!r}, {lon!r})")
        if math.isnan(lat) or math.isnan(lon):
            raise ValidationError("Coordinates must not be NaN")
        if not -90.0 <= lat <= 90.0:
            raise ValidationError(f"Latitude out of range [-90, 90]: {lat}")
        if not -180.0 <= lon <= 180.0:
            raise ValidationError(f"Longitude out of range [-180, 180]: {lon}")

    def distance_to(self, other: GeoLocation) -> float:
        """Great-circle distance to another location in meters."""
        return haversine_distance(self, other)

    def to_dict(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude": self.altitude,
            "location_name": self.location_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GeoLocation:
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            altitude=float(data["altitude"]) if data.get("altitude") is not None else None,
            location_name=data.get("location_name"),
        )


def haversine_distance(a: GeoLocation, b: GeoLocation) -> float:
    """Distance in meters between two coordinates on a spherical earth.

    Commutative, zero for identical points and never negative.
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    # Rounding can push h a hair outside [0, 1] for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def centroid(locations: Iterable[GeoLocation]) -> GeoLocation | None:
    """Arithmetic mean of latitude/longitude, or None for no locations."""
    points = list(locations)
    if not points:
        return None
    if len(points) == 1:
        only = points[0]
        return GeoLocation(latitude=only.latitude, longitude=only.longitude)
    lat = sum(p.latitude for p in points) / len(points)
    lon = sum(p.longitude for p in points) / len(points)
    return GeoLocation(latitude=lat, longitude=lon)
