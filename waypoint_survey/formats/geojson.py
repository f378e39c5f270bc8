"""GeoJSON import and export.

Import accepts a FeatureCollection, a single Feature, or this package's own
JSON export document ({"waypoints": [...]}). Only Point geometries become
waypoints; other features are skipped. GeoJSON positions are [lon, lat].
"""

import json
import logging
from collections.abc import Iterable
from typing import Any

from shapely.errors import GEOSException
from shapely.geometry import Point, mapping, shape

from waypoint_survey.constants import NamingConfig
from waypoint_survey.core.geo_calculator import GeoCalculator
from waypoint_survey.errors import FormatError
from waypoint_survey.model.waypoint import Waypoint, WaypointDraft

logger = logging.getLogger(__name__)

FORMAT_NAME = "GeoJSON"


def decode_geojson(text: str) -> list[WaypointDraft]:
    """Parse a GeoJSON (or export JSON) document into drafts.

    Raises:
        FormatError: Not JSON, not a supported document shape, or no usable point.
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatError(format_name=FORMAT_NAME, detail=f"not valid JSON ({e.msg})") from e

    if not isinstance(document, dict):
        raise FormatError(format_name=FORMAT_NAME, detail="expected a JSON object")

    if isinstance(document.get("waypoints"), list):
        drafts = [d for d in (_draft_from_row(row) for row in document["waypoints"]) if d is not None]
    elif document.get("type") == "FeatureCollection" and isinstance(document.get("features"), list):
        drafts = [d for d in (_draft_from_feature(f) for f in document["features"]) if d is not None]
    elif document.get("type") == "Feature":
        draft = _draft_from_feature(document)
        drafts = [draft] if draft is not None else []
    else:
        raise FormatError(format_name=FORMAT_NAME, detail="expected a FeatureCollection or Feature")

    if not drafts:
        raise FormatError(format_name=FORMAT_NAME, detail="no point features found")

    logger.info(f"[IMPORT] Decoded {len(drafts)} point(s) from GeoJSON")
    return drafts


def _draft_from_feature(feature: Any) -> WaypointDraft | None:
    if not isinstance(feature, dict):
        return None
    geometry = feature.get("geometry")
    if not isinstance(geometry, dict) or geometry.get("type") != "Point":
        return None

    try:
        point = shape(geometry)
    except (GEOSException, ValueError, TypeError, IndexError, AttributeError):
        logger.warning(f"[IMPORT] Skipping feature with malformed Point: {geometry!r}")
        return None
    if point.is_empty:
        return None

    props = feature.get("properties") or {}
    return _draft(
        lat=point.y,
        lon=point.x,
        name=props.get("name"),
        notes=props.get("notes") or props.get("description"),
        image_ref=props.get("image_url"),
    )


def _draft_from_row(row: Any) -> WaypointDraft | None:
    if not isinstance(row, dict):
        return None
    try:
        lat, lon = float(row["latitude"]), float(row["longitude"])
    except (KeyError, TypeError, ValueError):
        return None
    return _draft(lat=lat, lon=lon, name=row.get("name"), notes=row.get("notes"), image_ref=row.get("image_url"))


def _draft(lat: float, lon: float, name: Any, notes: Any, image_ref: Any) -> WaypointDraft | None:
    if not GeoCalculator.is_valid_coordinate(lat=lat, lon=lon):
        logger.warning(f"[IMPORT] Skipping out-of-range point ({lat}, {lon})")
        return None
    return WaypointDraft(
        lat=lat,
        lon=lon,
        name=str(name) if name is not None and str(name).strip() else NamingConfig.IMPORTED_NAME,
        notes="" if notes is None else str(notes),
        image_ref=str(image_ref) if image_ref else None,
    )


def encode_geojson(waypoints: Iterable[Waypoint]) -> str:
    """FeatureCollection with one Point feature per waypoint."""
    features = []
    for wp in waypoints:
        properties = {"name": wp.display_name, "notes": wp.notes or ""}
        if wp.server_id is not None:
            properties["id"] = wp.server_id
        if wp.image_ref:
            properties["image_url"] = wp.image_ref
        features.append(
            {
                "type": "Feature",
                "geometry": mapping(Point(wp.lon, wp.lat)),
                "properties": properties,
            }
        )
    return json.dumps({"type": "FeatureCollection", "features": features}, indent=2, ensure_ascii=False)
