"""Import/export codec tests: GeoJSON, KML, the JSON export document and XML."""

import json
import xml.etree.ElementTree as ET
from datetime import date, datetime, timezone

import pytest
from hypothesis import given, settings, strategies as st

from waypoint_survey.errors import FormatError, InvalidFileType
from waypoint_survey.formats import decode_file, encode, export_filename, mime_type, read_upload
from waypoint_survey.formats.export_document import build_export_document
from waypoint_survey.formats.geojson import decode_geojson, encode_geojson
from waypoint_survey.formats.kml import decode_kml, encode_kml
from waypoint_survey.model.waypoint import Waypoint

NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def waypoints() -> list[Waypoint]:
    return [
        Waypoint(local_id="WP1", lat=26.5, lon=80.2, display_name="Point 1", server_id=7, notes="Sandy"),
        Waypoint(
            local_id="WP2",
            lat=-33.9,
            lon=151.2,
            display_name="Bore & <Tank>",
            custom_name=True,
            image_ref="https://img.test/tank.png",
        ),
    ]


class TestGeoJsonDecode:
    """GeoJSON import."""

    def test_feature_collection_points(self) -> None:
        """Point features become drafts; positions are [lon, lat]."""
        text = json.dumps(
            {
                "type": "FeatureCollection",
                "features": [
                    {"type": "Feature", "geometry": {"type": "Point", "coordinates": [80.2, 26.5]}, "properties": {"name": "Well", "description": "deep"}},
                    {"type": "Feature", "geometry": {"type": "Point", "coordinates": [80.3, 26.6]}, "properties": {}},
                ],
            }
        )
        drafts = decode_geojson(text)
        assert [(d.lat, d.lon) for d in drafts] == [(26.5, 80.2), (26.6, 80.3)]
        assert drafts[0].name == "Well"
        assert drafts[0].notes == "deep"
        assert drafts[1].name == "Imported Point"

    def test_non_point_features_are_skipped(self) -> None:
        """LineStrings and features without geometry are ignored."""
        text = json.dumps(
            {
                "type": "FeatureCollection",
                "features": [
                    {"type": "Feature", "geometry": {"type": "LineString", "coordinates": [[0, 0], [1, 1]]}},
                    {"type": "Feature", "geometry": None},
                    {"type": "Feature", "geometry": {"type": "Point", "coordinates": [10.0, 20.0]}},
                ],
            }
        )
        drafts = decode_geojson(text)
        assert len(drafts) == 1
        assert (drafts[0].lat, drafts[0].lon) == (20.0, 10.0)

    def test_single_feature(self) -> None:
        """A bare Feature is accepted."""
        text = json.dumps({"type": "Feature", "geometry": {"type": "Point", "coordinates": [1.5, 2.5]}})
        assert [(d.lat, d.lon) for d in decode_geojson(text)] == [(2.5, 1.5)]

    def test_export_document_is_accepted(self, waypoints: list[Waypoint]) -> None:
        """The JSON export document imports back with names and notes."""
        text = json.dumps(build_export_document(waypoints, now=NOW))
        drafts = decode_geojson(text)
        assert [d.name for d in drafts] == ["Point 1", "Bore & <Tank>"]
        assert drafts[0].notes == "Sandy"
        assert drafts[1].image_ref == "https://img.test/tank.png"

    def test_out_of_range_points_skipped(self) -> None:
        """Invalid coordinates are dropped, valid ones kept."""
        text = json.dumps(
            {
                "type": "FeatureCollection",
                "features": [
                    {"type": "Feature", "geometry": {"type": "Point", "coordinates": [200.0, 10.0]}},
                    {"type": "Feature", "geometry": {"type": "Point", "coordinates": [20.0, 10.0]}},
                ],
            }
        )
        assert len(decode_geojson(text)) == 1

    @pytest.mark.parametrize(
        "text",
        [
            "{not json",
            "[1, 2, 3]",
            json.dumps({"type": "Polygon"}),
            json.dumps({"type": "FeatureCollection", "features": []}),
        ],
        ids=["invalid-json", "array", "wrong-type", "no-points"],
    )
    def test_malformed_documents_raise_format_error(self, text: str) -> None:
        """Each malformed document is one FormatError naming GeoJSON."""
        with pytest.raises(FormatError) as exc_info:
            decode_geojson(text)
        assert exc_info.value.format_name == "GeoJSON"
        assert exc_info.value.message.startswith("Invalid GeoJSON file format")


class TestKmlDecode:
    """KML import."""

    KML = """<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2">
  <Document>
    <name>Survey</name>
    <Placemark>
      <name>Spring</name>
      <description>Fresh water</description>
      <Point><coordinates>80.2,26.5,0</coordinates></Point>
    </Placemark>
    <Placemark>
      <name>Track</name>
      <LineString><coordinates>80.2,26.5 80.3,26.6</coordinates></LineString>
    </Placemark>
    <Placemark>
      <Point><coordinates> 80.4,26.7 </coordinates></Point>
    </Placemark>
  </Document>
</kml>"""

    def test_placemarks_with_points(self) -> None:
        """Placemarks without a Point are skipped; names default."""
        drafts = decode_kml(self.KML)
        assert [(d.lat, d.lon) for d in drafts] == [(26.5, 80.2), (26.7, 80.4)]
        assert drafts[0].name == "Spring"
        assert drafts[0].notes == "Fresh water"
        assert drafts[1].name == "Imported Point"

    def test_namespace_is_optional(self) -> None:
        """Documents without the KML namespace load too."""
        text = "<kml><Placemark><name>A</name><Point><coordinates>1,2</coordinates></Point></Placemark></kml>"
        drafts = decode_kml(text)
        assert (drafts[0].lat, drafts[0].lon, drafts[0].name) == (2.0, 1.0, "A")

    def test_invalid_xml_raises(self) -> None:
        """Unparseable XML is a FormatError naming KML."""
        with pytest.raises(FormatError) as exc_info:
            decode_kml("<kml><Placemark>")
        assert exc_info.value.format_name == "KML"

    def test_no_points_raises(self) -> None:
        """A document with no usable Point is rejected."""
        with pytest.raises(FormatError):
            decode_kml("<kml><Document><name>Empty</name></Document></kml>")


class TestDecodeFile:
    """Extension dispatch."""

    def test_dispatch_by_extension(self) -> None:
        """.geojson/.json go to GeoJSON, .kml to KML, case-insensitively."""
        geojson = json.dumps({"type": "Feature", "geometry": {"type": "Point", "coordinates": [1.0, 2.0]}})
        kml = "<kml><Placemark><Point><coordinates>3,4</coordinates></Point></Placemark></kml>"
        assert decode_file("a.geojson", geojson)[0].lat == 2.0
        assert decode_file("a.JSON", geojson)[0].lat == 2.0
        assert decode_file("a.KML", kml)[0].lat == 4.0

    def test_wrong_decoder_reports_its_format(self) -> None:
        """A KML body in a .geojson file fails as GeoJSON."""
        with pytest.raises(FormatError) as exc_info:
            decode_file("a.geojson", "<kml/>")
        assert exc_info.value.format_name == "GeoJSON"

    @pytest.mark.parametrize("filename", ["points.csv", "points.gpx", "points"])
    def test_unsupported_extension(self, filename: str) -> None:
        """Other extensions are rejected before parsing."""
        with pytest.raises(InvalidFileType) as exc_info:
            decode_file(filename, "irrelevant")
        assert exc_info.value.message == "Invalid file type. Please select KML or GeoJSON files"


class TestReadUpload:
    """Uploaded bytes to text."""

    def test_utf8_with_bom(self) -> None:
        """A leading BOM is dropped and non-ASCII text is kept."""
        assert read_upload("a.kml", "\ufeff<kml>Zürich</kml>".encode("utf-8")) == "<kml>Zürich</kml>"

    @pytest.mark.parametrize("filename,format_name", [("a.kml", "KML"), ("a.geojson", "GeoJSON"), ("a.json", "GeoJSON")])
    def test_invalid_utf8_names_format(self, filename: str, format_name: str) -> None:
        """Invalid bytes are a FormatError for the format the extension selects."""
        with pytest.raises(FormatError) as exc_info:
            read_upload(filename, b'{"name": "\xff\xfe"}')
        assert exc_info.value.format_name == format_name

    def test_extension_checked_first(self) -> None:
        """Unsupported extensions fail as InvalidFileType even with bad bytes."""
        with pytest.raises(InvalidFileType):
            read_upload("a.csv", b"\xff")


class TestExport:
    """Export encoders and file naming."""

    def test_json_document_structure(self, waypoints: list[Waypoint]) -> None:
        """Header fields plus one row per waypoint with store field names."""
        document = json.loads(encode("json", waypoints, now=NOW))
        assert document["exportDate"] == "2026-03-01T09:30:00+00:00"
        assert document["totalWaypoints"] == 2
        first = document["waypoints"][0]
        assert first == {
            "id": 7,
            "name": "Point 1",
            "latitude": 26.5,
            "longitude": 80.2,
            "notes": "Sandy",
            "image_url": None,
            "created_at": None,
            "updated_at": None,
        }

    def test_xml_structure_and_escaping(self, waypoints: list[Waypoint]) -> None:
        """<waypoints> root with a waypointList; special characters survive."""
        text = encode("xml", waypoints, now=NOW)
        assert text.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        root = ET.fromstring(text.split("\n", 1)[1])
        assert root.tag == "waypoints"
        assert root.findtext("totalWaypoints") == "2"
        assert root.findtext("exportDate") == "2026-03-01T09:30:00+00:00"
        rows = root.findall("waypointList/waypoint")
        assert [row.findtext("name") for row in rows] == ["Point 1", "Bore & <Tank>"]
        assert rows[1].findtext("id") == ""

    def test_geojson_positions_are_lon_lat(self, waypoints: list[Waypoint]) -> None:
        """Exported Points use [lon, lat] and carry the server id."""
        collection = json.loads(encode_geojson(waypoints))
        feature = collection["features"][0]
        assert collection["type"] == "FeatureCollection"
        assert feature["geometry"] == {"type": "Point", "coordinates": [80.2, 26.5]}
        assert feature["properties"]["id"] == 7
        assert "id" not in collection["features"][1]["properties"]

    def test_kml_export_reimports(self, waypoints: list[Waypoint]) -> None:
        """KML output is namespaced and loads back through the importer."""
        text = encode_kml(waypoints)
        assert "http://www.opengis.net/kml/2.2" in text
        drafts = decode_kml(text)
        assert [(d.name, d.lat, d.lon) for d in drafts] == [
            ("Point 1", 26.5, 80.2),
            ("Bore & <Tank>", -33.9, 151.2),
        ]

    def test_unknown_format_raises(self, waypoints: list[Waypoint]) -> None:
        """Only json, xml, geojson and kml are known."""
        with pytest.raises(ValueError):
            encode("csv", waypoints)

    @pytest.mark.parametrize(
        "fmt,expected,mime",
        [
            ("json", "waypoints_export_2026-03-01.json", "application/json"),
            ("xml", "waypoints_export_2026-03-01.xml", "application/xml"),
            ("geojson", "waypoints_export_2026-03-01.geojson", "application/geo+json"),
            ("kml", "waypoints_export_2026-03-01.kml", "application/vnd.google-earth.kml+xml"),
        ],
    )
    def test_export_filename_and_mime(self, fmt: str, expected: str, mime: str) -> None:
        """File names carry the export date."""
        assert export_filename(fmt, today=date(2026, 3, 1)) == expected
        assert mime_type(fmt) == mime


printable = st.text(alphabet=st.characters(min_codepoint=0x20, max_codepoint=0x7E), max_size=40)
names = printable.filter(lambda s: s.strip() != "")
latitudes = st.floats(min_value=-90.0, max_value=90.0, allow_nan=False)
longitudes = st.floats(min_value=-180.0, max_value=180.0, allow_nan=False)


class TestRoundTrip:
    """Export then import keeps coordinates, name and notes."""

    def test_kml_keeps_padded_notes(self) -> None:
        """Leading and trailing spaces in notes survive KML."""
        record = Waypoint(local_id="WP1", lat=26.5, lon=80.2, display_name=" Well ", notes="  padded notes ")
        draft = decode_kml(encode_kml([record]))[0]
        assert draft.name == " Well "
        assert draft.notes == "  padded notes "

    def test_kml_whitespace_only_notes(self) -> None:
        """Whitespace-only notes are not collapsed to empty."""
        record = Waypoint(local_id="WP1", lat=26.5, lon=80.2, display_name="Well", notes="   ")
        assert decode_kml(encode_kml([record]))[0].notes == "   "

    def test_kml_blank_name_falls_back(self) -> None:
        """A blank Placemark name imports under the default label."""
        text = "<kml><Placemark><name>  </name><Point><coordinates>1,2</coordinates></Point></Placemark></kml>"
        assert decode_kml(text)[0].name == "Imported Point"

    @given(name=names, notes=printable, lat=latitudes, lon=longitudes)
    @settings(max_examples=100)
    def test_geojson_round_trip(self, name: str, notes: str, lat: float, lon: float) -> None:
        record = Waypoint(local_id="WP1", lat=lat, lon=lon, display_name=name, custom_name=True, notes=notes)
        draft = decode_geojson(encode_geojson([record]))[0]
        assert draft.lat == pytest.approx(lat, abs=1e-6)
        assert draft.lon == pytest.approx(lon, abs=1e-6)
        assert (draft.name, draft.notes) == (name, notes)

    @given(name=names, notes=printable, lat=latitudes, lon=longitudes)
    @settings(max_examples=100)
    def test_kml_round_trip(self, name: str, notes: str, lat: float, lon: float) -> None:
        record = Waypoint(local_id="WP1", lat=lat, lon=lon, display_name=name, custom_name=True, notes=notes)
        draft = decode_kml(encode_kml([record]))[0]
        assert draft.lat == pytest.approx(lat, abs=1e-6)
        assert draft.lon == pytest.approx(lon, abs=1e-6)
        assert (draft.name, draft.notes) == (name, notes)
