"""Data model for a survey session.

Separates identity (which record is which) from content (what it says):
- Waypoint: One pin with coordinates, name, notes and image
- WaypointDraft: Partial record produced by import decoders
- IdentityMap: local_id -> server_id reconciliation
- WaypointCollection: Central manager owning all waypoints and their events
"""

from waypoint_survey.model.collection import (
    EventKind,
    WaypointCollection,
    WaypointEvent,
)
from waypoint_survey.model.identity_map import IdentityMap
from waypoint_survey.model.waypoint import (
    Waypoint,
    WaypointDraft,
    is_default_location_name,
    is_default_pattern_name,
    positional_label,
)

__all__ = [
    "Waypoint",
    "WaypointDraft",
    "IdentityMap",
    "WaypointCollection",
    "WaypointEvent",
    "EventKind",
    "positional_label",
    "is_default_pattern_name",
    "is_default_location_name",
]
