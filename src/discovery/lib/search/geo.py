"""Great-circle distance helpers for location-filtered search."""

import math

from ...errors import ValidationError
from ...models import GeoPoint

EARTH_RADIUS_KM = 6371.0


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Distance in kilometres between two points on the earth's surface."""
    d_lat = math.radians(b.lat - a.lat)
    d_lon = math.radians(b.lon - a.lon)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def parse_location(raw: str | None) -> GeoPoint | None:
    """Parse a ``"lat,lon"`` string.  Raises ``ValidationError`` when malformed."""
    if raw is None or not raw.strip():
        return None
    parts = raw.split(",")
    if len(parts) != 2:
        raise ValidationError("location must be formatted as 'lat,lon'")
    try:
        return GeoPoint(lat=float(parts[0]), lon=float(parts[1]))
    except ValueError as exc:
        raise ValidationError(f"Invalid location '{raw}'") from exc
