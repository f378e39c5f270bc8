"""Geodesic helpers for waypoint placement and map fitting.

Provides:
- Distance calculation (Haversine formula)
- Coordinate validation (WGS84 ranges)
- Duplicate-pin detection (per-axis degree tolerance)
- View fitting (center and zoom covering a set of points)

All calculations use WGS84 spherical Earth approximation (R = 6,371 km).
"""

from math import atan2, cos, isfinite, log2, radians, sin, sqrt

import numpy as np

from waypoint_survey.constants import MapConfig

# Earth's radius in meters (WGS84 spherical approximation)
EARTH_RADIUS_M = 6_371_000


class GeoCalculator:
    """Static methods for geodesic calculations on Earth's surface.

    Coordinates are in decimal degrees (WGS84). Distances are in meters.
    """

    EARTH_RADIUS_M = EARTH_RADIUS_M

    @staticmethod
    def haversine_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """Calculate great-circle distance between two points using Haversine formula.

        Args:
            lat1: Latitude of first point (decimal degrees)
            lon1: Longitude of first point (decimal degrees)
            lat2: Latitude of second point (decimal degrees)
            lon2: Longitude of second point (decimal degrees)

        Returns:
            Distance in meters.
        """
        dlat = radians(lat2 - lat1)
        dlon = radians(lon2 - lon1)
        a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2) ** 2
        return EARTH_RADIUS_M * 2 * atan2(sqrt(a), sqrt(1 - a))

    @staticmethod
    def is_valid_coordinate(lat: float, lon: float) -> bool:
        """True if lat is in [-90, 90] and lon in [-180, 180] (and both finite)."""
        if not (isfinite(lat) and isfinite(lon)):
            return False
        return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0

    @staticmethod
    def is_same_spot(
        lat1: float,
        lon1: float,
        lat2: float,
        lon2: float,
        tolerance_deg: float = MapConfig.DUPLICATE_TOLERANCE_DEG,
    ) -> bool:
        """True if two points differ by less than the tolerance on both axes."""
        return abs(lat1 - lat2) < tolerance_deg and abs(lon1 - lon2) < tolerance_deg

    @staticmethod
    def fit_view(points: list[tuple[float, float]]) -> tuple[float, float, int]:
        """Center and zoom that show all (lat, lon) points.

        A single point gets MapConfig.SINGLE_POINT_ZOOM. For several points the
        zoom is derived from the larger of the two bounding-box spans, clamped
        to [MIN_FIT_ZOOM, MAX_FIT_ZOOM].

        Returns:
            Tuple (center_lat, center_lon, zoom).

        Raises:
            ValueError: If points is empty.
        """
        if not points:
            raise ValueError("fit_view needs at least one point")

        coords = np.asarray(points, dtype=float)
        lat_min, lon_min = coords.min(axis=0)
        lat_max, lon_max = coords.max(axis=0)
        center_lat = float((lat_min + lat_max) / 2)
        center_lon = float((lon_min + lon_max) / 2)

        if len(points) == 1:
            return center_lat, center_lon, MapConfig.SINGLE_POINT_ZOOM

        span = float(max(lat_max - lat_min, lon_max - lon_min))
        if span <= 0:
            return center_lat, center_lon, MapConfig.SINGLE_POINT_ZOOM

        # Zoom 0 shows 360 degrees; each level halves the visible span
        zoom = int(log2(360.0 / span))
        zoom = max(MapConfig.MIN_FIT_ZOOM, min(MapConfig.MAX_FIT_ZOOM, zoom))
        return center_lat, center_lon, zoom
