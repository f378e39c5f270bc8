"""Driving directions between two waypoints via OpenRouteService.

The routing API is treated as an opaque function from two coordinates to a
polyline plus distance and duration. A missing API key is a configuration
error raised before any request and never retried.

Reference: https://openrouteservice.org/dev/#/api-docs/v2/directions
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from waypoint_survey.constants import RoutingConfig
from waypoint_survey.core.geo_calculator import GeoCalculator
from waypoint_survey.errors import (
    ConfigurationError,
    RouteNotFound,
    TransportFailure,
    ValidationRejected,
)

logger = logging.getLogger(__name__)

LatLon = tuple[float, float]


@dataclass(frozen=True)
class Route:
    """A computed route.

    Attributes:
        geometry: Route polyline as (lat, lon) pairs
        distance_m: Total distance in meters
        duration_s: Estimated duration in seconds
    """

    geometry: list[LatLon]
    distance_m: float | None
    duration_s: float | None

    @property
    def summary(self) -> str:
        """Human-readable "Distance: X km, Duration: N min"."""
        distance = f"{self.distance_m / 1000:.2f} km" if self.distance_m is not None else "N/A"
        duration = f"{round(self.duration_s / 60)} min" if self.duration_s is not None else "N/A"
        return f"Distance: {distance}, Duration: {duration}"


def decode_polyline(encoded: str, precision: int = RoutingConfig.POLYLINE_PRECISION) -> list[LatLon]:
    """Decode a Google encoded polyline into (lat, lon) pairs.

    Each coordinate delta is zig-zag encoded in 5-bit chunks offset by 63.
    """
    factor = 10**precision
    coordinates: list[LatLon] = []
    index = 0
    lat = 0
    lon = 0

    while index < len(encoded):
        deltas = []
        for _ in range(2):
            shift = 0
            result = 0
            while True:
                if index >= len(encoded):
                    raise ValueError("Truncated polyline")
                b = ord(encoded[index]) - 63
                index += 1
                result |= (b & 0x1F) << shift
                shift += 5
                if b < 0x20:
                    break
            deltas.append(~(result >> 1) if result & 1 else result >> 1)
        lat += deltas[0]
        lon += deltas[1]
        coordinates.append((lat / factor, lon / factor))

    return coordinates


class RoutingClient:
    """OpenRouteService driving-car client.

    Example:
        router = RoutingClient(api_key=key)
        route = await router.route(start=(26.51, 80.23), end=(26.45, 80.33))
        print(route.summary)
    """

    def __init__(
        self,
        api_key: str | None = RoutingConfig.API_KEY,
        client: httpx.AsyncClient | None = None,
        url: str = RoutingConfig.DIRECTIONS_URL,
    ) -> None:
        self.api_key = api_key or ""
        self.url = url
        self._client = client
        self._owns_client = client is None

    @property
    def is_configured(self) -> bool:
        return self.api_key not in RoutingConfig.PLACEHOLDER_KEYS

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=RoutingConfig.TIMEOUT_S)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def route(self, start: LatLon, end: LatLon) -> Route:
        """Compute a driving route from start to end, both (lat, lon).

        Raises:
            ConfigurationError: No API key configured (no request sent)
            ValidationRejected: Invalid coordinates or request rejected by the API
            TransportFailure: Network or server failure
            RouteNotFound: API answered without a route
        """
        if not self.is_configured:
            raise ConfigurationError(message="Please configure the OpenRouteService API key (OPENROUTESERVICE_API_KEY)")

        for lat, lon in (start, end):
            if not GeoCalculator.is_valid_coordinate(lat=lat, lon=lon):
                raise ValidationRejected(
                    message="Invalid coordinates. Please check waypoint locations.",
                    field="coordinates",
                    context={"lat": lat, "lon": lon},
                )

        # ORS expects [lon, lat]
        body = {"coordinates": [[start[1], start[0]], [end[1], end[0]]]}
        headers = {"Authorization": self.api_key}

        try:
            response = await self.client.post(self.url, json=body, headers=headers)
        except httpx.TransportError as e:
            logger.warning(f"[ROUTE] Request failed: {e}")
            raise TransportFailure(message="Failed to reach the routing service") from e

        if response.status_code >= 400:
            message = _ors_error_message(response=response) or "Failed to fetch route"
            if response.status_code >= 500:
                raise TransportFailure(message=message, status_code=response.status_code)
            raise ValidationRejected(message=message, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise TransportFailure(message="Routing service returned an unreadable response") from e

        route = parse_route(data=data, start=start, end=end)
        logger.info(f"[ROUTE] {start} -> {end}: {route.summary}")
        return route


def parse_route(data: dict[str, Any], start: LatLon, end: LatLon) -> Route:
    """Build a Route from an ORS JSON response.

    Geometry may be an encoded polyline string or a GeoJSON LineString. When it
    cannot be read, the straight start-end segment is used.
    """
    routes = data.get("routes") or []
    if not routes:
        raise RouteNotFound()

    first = routes[0]
    summary = first.get("summary") or {}
    geometry = first.get("geometry")

    points: list[LatLon]
    try:
        if isinstance(geometry, str):
            points = decode_polyline(encoded=geometry)
        elif isinstance(geometry, dict) and geometry.get("coordinates"):
            points = [(float(c[1]), float(c[0])) for c in geometry["coordinates"]]
        else:
            points = [start, end]
    except (ValueError, TypeError, IndexError) as e:
        logger.warning(f"[ROUTE] Unreadable geometry, falling back to straight line: {e}")
        points = [start, end]

    return Route(
        geometry=points or [start, end],
        distance_m=summary.get("distance"),
        duration_s=summary.get("duration"),
    )


def _ors_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message", ""))
    return str(error) if error else ""
