"""Waypoint - the core entity of a survey session.

A Waypoint is one pin on the map: coordinates plus display name, notes and an
optional hosted image. Its local_id is assigned by the WaypointCollection and
never leaves the client; server_id appears once the record is persisted.

Naming rules:
- Positional labels ("Point N") follow the record's index in the collection
- Names matching the default-ish pattern are positional, anything else is custom
- "Default Location" (case-insensitive, trimmed) marks the sentinel record
"""

from dataclasses import dataclass, replace
from typing import Any

from waypoint_survey.constants import NamingConfig

ServerId = int | str

# Fields callers may change through WaypointCollection.update()
EDITABLE_FIELDS = frozenset({"display_name", "lat", "lon", "notes", "image_ref"})

# Fields whose change requires the marker to be redrawn
MARKER_FIELDS = frozenset({"display_name", "lat", "lon"})


def positional_label(index: int) -> str:
    """Label for the record at 0-based index: "Point {index + 1}"."""
    return NamingConfig.POSITIONAL_TEMPLATE.format(n=index + 1)


def is_default_pattern_name(name: str | None) -> bool:
    """True for empty names and names like "Point 3" or "Imported Point"."""
    if name is None:
        return True
    trimmed = name.strip()
    return not trimmed or NamingConfig.DEFAULT_NAME_PATTERN.match(trimmed) is not None


def is_default_location_name(name: str | None) -> bool:
    """True if name designates the sentinel default location."""
    return name is not None and name.strip().lower() == NamingConfig.DEFAULT_LOCATION_NAME.lower()


@dataclass
class WaypointDraft:
    """A partial record produced by import decoders.

    Carries only what interchange formats can express; the collection assigns
    identity and labels on import.
    """

    lat: float
    lon: float
    name: str = NamingConfig.IMPORTED_NAME
    notes: str = ""
    image_ref: str | None = None


@dataclass
class Waypoint:
    """A waypoint in the current session.

    Attributes:
        local_id: Session-unique identifier (e.g., "WP1"), never sent to the server
        lat: Latitude in decimal degrees (WGS84)
        lon: Longitude in decimal degrees (WGS84)
        display_name: Shown on the marker and in exports
        custom_name: False if display_name is a positional label
        notes: Free text, may be empty
        image_ref: Hosted image URL or None
        server_id: Durable identifier once persisted
        created_at: Server timestamp, copied from store responses
        updated_at: Server timestamp, copied from store responses
        revision: Incremented on each local mutation

    Example:
        wp = Waypoint(local_id="WP1", lat=12.34, lon=56.78, display_name="Point 1")
        print(wp.lon_lat)  # (56.78, 12.34)
    """

    local_id: str
    lat: float
    lon: float
    display_name: str
    custom_name: bool = False
    notes: str = ""
    image_ref: str | None = None
    server_id: ServerId | None = None
    created_at: str | None = None
    updated_at: str | None = None
    revision: int = 0

    @property
    def lat_lon(self) -> tuple[float, float]:
        """Return (lat, lon) tuple - standard geographic order."""
        return (self.lat, self.lon)

    @property
    def lon_lat(self) -> tuple[float, float]:
        """Return (lon, lat) tuple - GeoJSON/Pydeck order."""
        return (self.lon, self.lat)

    @property
    def is_default_location(self) -> bool:
        return is_default_location_name(self.display_name)

    @property
    def is_persisted(self) -> bool:
        return self.server_id is not None

    @property
    def persisted_name(self) -> str:
        """Name sent to the store; the sentinel is always saved canonically."""
        if self.is_default_location:
            return NamingConfig.DEFAULT_LOCATION_NAME
        return self.display_name

    def copy(self) -> "Waypoint":
        return replace(self)

    def to_export_dict(self) -> dict[str, Any]:
        """Fields written by exporters. local_id is session-only and omitted."""
        return {
            "id": self.server_id,
            "name": self.display_name,
            "latitude": self.lat,
            "longitude": self.lon,
            "notes": self.notes or "",
            "image_url": self.image_ref,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        sid = f", server_id={self.server_id}" if self.server_id is not None else ""
        return f"Waypoint({self.local_id}, '{self.display_name}', lat={self.lat:.6f}, lon={self.lon:.6f}{sid})"
