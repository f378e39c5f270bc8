"""Configuration constants for Waypoint Survey.

All configurable parameters are centralized here for easy tuning.
Deployment-specific values (API base URL, routing key, log level) are read
from the environment once at import time.

Classes:
    AppConfig: UI application settings
    EntityPrefixes: Local identifier prefixes
    MapConfig: Default map view parameters
    NamingConfig: Positional labels and the sentinel default location
    RemoteConfig: Remote Store endpoints and timeouts
    ImageConfig: Image upload limits and retry policy
    RoutingConfig: OpenRouteService directions API
    LocationConfig: Live-location watch parameters
    ImportConfig: Accepted import file types
    ExportConfig: Export formats and file naming
    MarkerConfig: Map marker styling
    StyleConfig: Colors for markers and route overlay
"""

import os
import re
from pathlib import Path

# Package root directory (where waypoint_survey/ lives)
PACKAGE_DIR = Path(__file__).parent

# Project root directory (parent of waypoint_survey/)
PROJECT_ROOT = PACKAGE_DIR.parent


class AppConfig:
    """UI application settings."""

    TITLE = "Waypoint Survey"
    ICON = "📍"
    LAYOUT = "wide"
    LOG_LEVEL = os.environ.get("WAYPOINT_LOG_LEVEL", "INFO").upper()


class EntityPrefixes:
    """ID prefixes for client-side entities."""

    WAYPOINT = "WP"


class MapConfig:
    """Default map view parameters."""

    # Fallback center until the server-designated default location is loaded
    START_CENTER_LAT = 26.516654
    START_CENTER_LON = 80.231507

    DEFAULT_ZOOM = 13
    SINGLE_POINT_ZOOM = 13  # Zoom after importing a single waypoint
    MIN_FIT_ZOOM = 2
    MAX_FIT_ZOOM = 16

    # Two clicks closer than this (in degrees, per axis) hit the same waypoint
    DUPLICATE_TOLERANCE_DEG = 0.0001

    MAP_HEIGHT = 600


class NamingConfig:
    """Positional labels and the sentinel default location."""

    POSITIONAL_TEMPLATE = "Point {n}"
    IMPORTED_NAME = "Imported Point"
    MY_LOCATION_NAME = "My Location"
    DEFAULT_LOCATION_NAME = "Default Location"
    IMPORTED_DEFAULT_LOCATION_NAME = "Default Location (imported)"
    DEFAULT_LOCATION_NOTES = "User-defined default location"
    GPS_UNAVAILABLE_NOTES = "GPS unavailable - using default location"

    # Names matching this pattern are treated as positional and renumbered
    DEFAULT_NAME_PATTERN = re.compile(r"^(Point|Imported Point)(\s*\d*)?$", re.IGNORECASE)


class RemoteConfig:
    """Remote Store endpoints and timeouts."""

    API_BASE_URL = os.environ.get(
        "WAYPOINT_API_BASE_URL",
        "https://terr-aqua-survey-platform-backend.vercel.app",
    ).rstrip("/")
    API_PREFIX = "/api"
    WAYPOINTS_PATH = "/waypoints"
    DEFAULT_PATH = "/waypoints/default"
    UPLOAD_PATH = "/upload"

    TIMEOUT_S = 15.0

    # Statuses the store uses for payloads it rejects
    VALIDATION_STATUSES = frozenset({400, 404, 409, 422})


class ImageConfig:
    """Image upload limits and retry policy."""

    MAX_BYTES = 10 * 1024 * 1024  # 10 MB
    MIME_PREFIX = "image/"
    FORM_FIELD = "image"
    MAX_ATTEMPTS = 2  # One automatic retry on transport failure
    RETRY_DELAY_S = 0.7


class RoutingConfig:
    """OpenRouteService driving directions."""

    API_KEY = os.environ.get("OPENROUTESERVICE_API_KEY", "")
    PLACEHOLDER_KEYS = frozenset({"", "YOUR_KEY"})
    DIRECTIONS_URL = "https://api.openrouteservice.org/v2/directions/driving-car"
    TIMEOUT_S = 20.0
    POLYLINE_PRECISION = 5


class GeocodingConfig:
    """Place search through OpenStreetMap Nominatim."""

    SEARCH_URL = os.environ.get("WAYPOINT_GEOCODER_URL", "https://nominatim.openstreetmap.org/search")
    # Nominatim's usage policy requires an identifying User-Agent
    USER_AGENT = "waypoint-survey/1.0"
    TIMEOUT_S = 10.0
    RESULT_ZOOM = 13


class LocationConfig:
    """Live-location watch parameters."""

    MIN_UPDATE_INTERVAL_S = 1.0  # Bounded update rate
    LOW_ACCURACY_THRESHOLD_M = 100.0
    ACCURACY_NOTES_TEMPLATE = "Accuracy: {accuracy}"


class ImportConfig:
    """Accepted import file types."""

    GEOJSON_EXTENSIONS = (".geojson", ".json")
    KML_EXTENSIONS = (".kml",)
    ALL_EXTENSIONS = GEOJSON_EXTENSIONS + KML_EXTENSIONS


class ExportConfig:
    """Export formats and file naming."""

    FILENAME_TEMPLATE = "waypoints_export_{date}.{ext}"

    # format -> (extension, MIME type)
    FORMATS = {
        "json": ("json", "application/json"),
        "xml": ("xml", "application/xml"),
        "geojson": ("geojson", "application/geo+json"),
        "kml": ("kml", "application/vnd.google-earth.kml+xml"),
    }

    KML_NAMESPACE = "http://www.opengis.net/kml/2.2"
    KML_DOCUMENT_NAME = "Waypoint Survey Export"


class MarkerConfig:
    """Map marker styling."""

    RADIUS_PX = 9
    SELECTED_RADIUS_PX = 12
    LINE_WIDTH_PX = 2
    TYPE_WAYPOINT = "waypoint"  # Pickable object type for click detection


class StyleConfig:
    """Visual colors (RGBA lists for pydeck)."""

    MARKER_COLOR = [33, 150, 243, 230]
    SELECTED_COLOR = [244, 67, 54, 255]
    DEFAULT_LOCATION_COLOR = [76, 175, 80, 230]
    OUTLINE_COLOR = [255, 255, 255, 255]
    ROUTE_COLOR = [76, 175, 80, 204]
    ROUTE_WIDTH_PX = 4
