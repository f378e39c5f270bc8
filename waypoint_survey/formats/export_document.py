"""Export documents: the JSON export document and the point-set XML dialect.

Both carry the same header (exportDate, totalWaypoints) and one entry per
waypoint with the store's field names. The JSON document is also accepted
back by the GeoJSON importer.
"""

import json
import xml.etree.ElementTree as ET
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from waypoint_survey.model.waypoint import Waypoint


def _export_date(now: datetime | None) -> str:
    moment = now or datetime.now(timezone.utc)
    return moment.isoformat()


def build_export_document(waypoints: Iterable[Waypoint], now: datetime | None = None) -> dict[str, Any]:
    """{exportDate, totalWaypoints, waypoints: [...]}"""
    rows = [wp.to_export_dict() for wp in waypoints]
    return {
        "exportDate": _export_date(now),
        "totalWaypoints": len(rows),
        "waypoints": rows,
    }


def encode_json(waypoints: Iterable[Waypoint], now: datetime | None = None) -> str:
    return json.dumps(build_export_document(waypoints, now=now), indent=2, ensure_ascii=False)


def encode_xml(waypoints: Iterable[Waypoint], now: datetime | None = None) -> str:
    """<waypoints> root with exportDate, totalWaypoints and waypointList/waypoint.

    None values are written as empty elements; text is escaped by ElementTree.
    """
    document = build_export_document(waypoints, now=now)

    root = ET.Element("waypoints")
    ET.SubElement(root, "exportDate").text = document["exportDate"]
    ET.SubElement(root, "totalWaypoints").text = str(document["totalWaypoints"])
    waypoint_list = ET.SubElement(root, "waypointList")

    for row in document["waypoints"]:
        element = ET.SubElement(waypoint_list, "waypoint")
        for key, value in row.items():
            ET.SubElement(element, key).text = "" if value is None else str(value)

    ET.indent(root)
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode")
