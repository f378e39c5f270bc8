"""KML import and export.

Elements are matched by local name so documents with or without the KML 2.2
namespace both load. Each Placemark with a Point becomes one waypoint; the
first "lon,lat[,alt]" tuple of its coordinates is used.
"""

import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterable

from waypoint_survey.constants import ExportConfig, NamingConfig
from waypoint_survey.core.geo_calculator import GeoCalculator
from waypoint_survey.errors import FormatError
from waypoint_survey.model.waypoint import Waypoint, WaypointDraft

logger = logging.getLogger(__name__)

FORMAT_NAME = "KML"


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(element: ET.Element, name: str) -> ET.Element | None:
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _find(element: ET.Element, name: str) -> ET.Element | None:
    for node in element.iter():
        if node is not element and _local(node.tag) == name:
            return node
    return None


def decode_kml(text: str) -> list[WaypointDraft]:
    """Parse a KML document into drafts.

    Raises:
        FormatError: Not XML, or no Placemark with a usable Point.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise FormatError(format_name=FORMAT_NAME, detail=f"not valid XML ({e})") from e

    drafts = []
    for placemark in (node for node in root.iter() if _local(node.tag) == "Placemark"):
        draft = _draft_from_placemark(placemark)
        if draft is not None:
            drafts.append(draft)

    if not drafts:
        raise FormatError(format_name=FORMAT_NAME, detail="no placemarks with a Point found")

    logger.info(f"[IMPORT] Decoded {len(drafts)} point(s) from KML")
    return drafts


def _draft_from_placemark(placemark: ET.Element) -> WaypointDraft | None:
    point = _find(placemark, "Point")
    if point is None:
        return None
    coordinates = _find(point, "coordinates")
    if coordinates is None or not (coordinates.text or "").strip():
        return None

    first_tuple = coordinates.text.split()[0]
    parts = first_tuple.split(",")
    try:
        lon, lat = float(parts[0]), float(parts[1])
    except (IndexError, ValueError):
        logger.warning(f"[IMPORT] Skipping placemark with malformed coordinates: {first_tuple!r}")
        return None
    if not GeoCalculator.is_valid_coordinate(lat=lat, lon=lon):
        logger.warning(f"[IMPORT] Skipping out-of-range point ({lat}, {lon})")
        return None

    name_el = _child(placemark, "name")
    description_el = _child(placemark, "description")
    # Text is kept verbatim; a blank name falls back to the import label
    name = name_el.text if name_el is not None and name_el.text is not None else ""
    notes = description_el.text if description_el is not None and description_el.text is not None else ""
    if not name.strip():
        name = NamingConfig.IMPORTED_NAME
    return WaypointDraft(lat=lat, lon=lon, name=name, notes=notes)


def encode_kml(waypoints: Iterable[Waypoint]) -> str:
    """KML 2.2 Document with one Placemark per waypoint."""
    ns = ExportConfig.KML_NAMESPACE
    ET.register_namespace("", ns)

    kml = ET.Element(f"{{{ns}}}kml")
    document = ET.SubElement(kml, f"{{{ns}}}Document")
    ET.SubElement(document, f"{{{ns}}}name").text = ExportConfig.KML_DOCUMENT_NAME

    for wp in waypoints:
        placemark = ET.SubElement(document, f"{{{ns}}}Placemark")
        ET.SubElement(placemark, f"{{{ns}}}name").text = wp.display_name
        if wp.notes:
            ET.SubElement(placemark, f"{{{ns}}}description").text = wp.notes
        point = ET.SubElement(placemark, f"{{{ns}}}Point")
        ET.SubElement(point, f"{{{ns}}}coordinates").text = f"{wp.lon},{wp.lat},0"

    ET.indent(kml)
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(kml, encoding="unicode")
