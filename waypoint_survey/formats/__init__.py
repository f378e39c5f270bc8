"""Import/export codecs for waypoint interchange files.

- decode_file: Dispatch an uploaded file to the GeoJSON or KML decoder by extension
- read_upload: Strictly decode uploaded bytes as UTF-8 text
- encode: Render a collection snapshot as json, xml, geojson or kml
- export_filename: waypoints_export_YYYY-MM-DD.<ext>
"""

from collections.abc import Callable, Iterable
from datetime import date, datetime

from waypoint_survey.constants import ExportConfig, ImportConfig
from waypoint_survey.errors import FormatError, InvalidFileType
from waypoint_survey.formats.export_document import build_export_document, encode_json, encode_xml
from waypoint_survey.formats.geojson import FORMAT_NAME as GEOJSON_FORMAT, decode_geojson, encode_geojson
from waypoint_survey.formats.kml import FORMAT_NAME as KML_FORMAT, decode_kml, encode_kml
from waypoint_survey.model.waypoint import Waypoint, WaypointDraft

ENCODERS: dict[str, Callable[[list[Waypoint], datetime | None], str]] = {
    "json": lambda waypoints, now: encode_json(waypoints, now=now),
    "xml": lambda waypoints, now: encode_xml(waypoints, now=now),
    "geojson": lambda waypoints, now: encode_geojson(waypoints),
    "kml": lambda waypoints, now: encode_kml(waypoints),
}


def decode_file(filename: str, text: str) -> list[WaypointDraft]:
    """Decode an import file, choosing the decoder by extension.

    Raises:
        InvalidFileType: Extension is not .geojson, .json or .kml (nothing is parsed)
        FormatError: The decoder rejected the document
    """
    _, decoder = _import_format(filename=filename)
    return decoder(text)


def read_upload(filename: str, data: bytes) -> str:
    """Decode an uploaded import file as UTF-8 (a leading BOM is dropped).

    Raises:
        InvalidFileType: Unsupported extension (checked before decoding)
        FormatError: The bytes are not valid UTF-8
    """
    format_name, _ = _import_format(filename=filename)
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise FormatError(format_name=format_name, detail=f"not valid UTF-8 text (byte {e.start})") from e


def _import_format(filename: str) -> tuple[str, Callable[[str], list[WaypointDraft]]]:
    lowered = filename.lower()
    if lowered.endswith(ImportConfig.GEOJSON_EXTENSIONS):
        return GEOJSON_FORMAT, decode_geojson
    if lowered.endswith(ImportConfig.KML_EXTENSIONS):
        return KML_FORMAT, decode_kml
    raise InvalidFileType(filename=filename)


def encode(fmt: str, waypoints: Iterable[Waypoint], now: datetime | None = None) -> str:
    """Render waypoints in the given export format."""
    if fmt not in ENCODERS:
        raise ValueError(f"Unknown export format '{fmt}'. Options: {sorted(ENCODERS)}")
    return ENCODERS[fmt](list(waypoints), now)


def export_filename(fmt: str, today: date | None = None) -> str:
    extension, _ = ExportConfig.FORMATS[fmt]
    day = today or date.today()
    return ExportConfig.FILENAME_TEMPLATE.format(date=day.isoformat(), ext=extension)


def mime_type(fmt: str) -> str:
    return ExportConfig.FORMATS[fmt][1]


__all__ = [
    "decode_file",
    "decode_geojson",
    "decode_kml",
    "encode",
    "encode_geojson",
    "encode_kml",
    "encode_json",
    "encode_xml",
    "build_export_document",
    "export_filename",
    "mime_type",
    "read_upload",
]
