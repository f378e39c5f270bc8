"""Core services for talking to the outside world.

This module provides the integration layer of the survey client:
- GeoCalculator: Distances, coordinate validation, view fitting
- RemoteStore: Async REST client for persisted waypoints
- ImageHost: Validated image uploads with one automatic retry
- RoutingClient: Driving directions between two coordinates
- GeocodingClient: Place search for moving the map
- LocationWatch: Cancellable live-location subscription
"""

from waypoint_survey.core.geo_calculator import GeoCalculator
from waypoint_survey.core.geocoding import GeocodeResult, GeocodingClient
from waypoint_survey.core.image_host import ImageHost, validate_image
from waypoint_survey.core.location_watch import LocationWatch, PositionFix
from waypoint_survey.core.remote_store import RemoteStore, RemoteWaypoint, build_payload
from waypoint_survey.core.routing import Route, RoutingClient, decode_polyline

__all__ = [
    # Geo calculator
    "GeoCalculator",
    # Remote store
    "RemoteStore",
    "RemoteWaypoint",
    "build_payload",
    # Image host
    "ImageHost",
    "validate_image",
    # Routing
    "RoutingClient",
    "Route",
    "decode_polyline",
    # Place search
    "GeocodingClient",
    "GeocodeResult",
    # Live location
    "LocationWatch",
    "PositionFix",
]
