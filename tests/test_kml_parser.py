"""Tests for KML parsing and identifier extraction."""

import pytest
from conftest import kml_document, placemark

from processing.errors import ParseError, ParseErrorKind
from processing.kml_parser import (
    GeoFeature,
    PlacemarkDescriptor,
    assign_identifiers,
    build_name_index,
    kml_color_to_hex,
    parse_coordinates,
    parse_kml,
)


def test_positional_ids_win_even_when_names_collide():
    collection = parse_kml(kml_document(placemark("Same", "A"), placemark("Same", "B")))

    assert [feature.id for feature in collection] == ["A", "B"]


def test_name_fallback_resolves_missing_id(north_south_kml):
    collection = parse_kml(north_south_kml)

    # The geometry-less S1 placemark yields no feature
    assert len(collection) == 2
    north, south = collection
    assert north.display_name == "North"
    assert north.id == "S1"
    assert south.id == "S2"


def test_name_fallback_uses_trimmed_names():
    text = kml_document(
        placemark("  East  "),
        '<Placemark id="E9"><name>East</name></Placemark>',
    )
    assert parse_kml(text)[0].id == "E9"


def test_unmatched_name_leaves_id_unset():
    collection = parse_kml(kml_document(placemark("Lonely"), placemark("Other", "O1")))

    assert collection[0].id is None
    assert collection[1].id == "O1"


def test_later_placemarks_overwrite_name_index():
    descriptors = [
        PlacemarkDescriptor(id="first", name="Dup"),
        PlacemarkDescriptor(id=None, name="Dup"),
        PlacemarkDescriptor(id="second", name="Dup"),
    ]
    assert build_name_index(descriptors) == {"Dup": "second"}


def test_property_id_is_promoted_only_when_unresolved():
    body = '<ExtendedData><Data name="id"><value>P7</value></Data></ExtendedData>'
    collection = parse_kml(kml_document(placemark("X", body=body), placemark("Y", "Y1", body=body)))

    assert collection[0].id == "P7"
    assert collection[1].id == "Y1"


def test_assign_identifiers_requires_aligned_descriptors():
    feature = GeoFeature(geometry=parse_kml(kml_document(placemark("A"))).features[0].geometry)
    with pytest.raises(ValueError):
        assign_identifiers([feature], [], {})


def test_geometry_types():
    text = kml_document(
        placemark("pt"),
        placemark("line", geometry="<LineString><coordinates>0,0 1,1</coordinates></LineString>"),
        placemark(
            "poly",
            geometry="<Polygon><outerBoundaryIs><LinearRing><coordinates>0,0 2,0 2,2 0,0</coordinates>"
            "</LinearRing></outerBoundaryIs><innerBoundaryIs><LinearRing><coordinates>"
            "0.5,0.2 1.5,0.2 1.5,1 0.5,0.2</coordinates></LinearRing></innerBoundaryIs></Polygon>",
        ),
        placemark(
            "multiline",
            geometry="<MultiGeometry><LineString><coordinates>0,0 1,1</coordinates></LineString>"
            "<LineString><coordinates>2,2 3,3</coordinates></LineString></MultiGeometry>",
        ),
        placemark(
            "multipoly",
            geometry="<MultiGeometry>"
            "<Polygon><outerBoundaryIs><LinearRing><coordinates>0,0 1,0 1,1 0,0</coordinates></LinearRing></outerBoundaryIs></Polygon>"
            "<Polygon><outerBoundaryIs><LinearRing><coordinates>5,5 6,5 6,6 5,5</coordinates></LinearRing></outerBoundaryIs></Polygon>"
            "</MultiGeometry>",
        ),
    )
    collection = parse_kml(text)

    assert [feature.geometry_type for feature in collection] == [
        "Point",
        "LineString",
        "Polygon",
        "MultiLineString",
        "MultiPolygon",
    ]
    assert collection[0].geometry.x == pytest.approx(21.62)
    assert collection[0].geometry.y == pytest.approx(47.53)
    assert len(collection[2].geometry.interiors) == 1


def test_features_keep_source_order_inside_folders():
    text = kml_document(
        "<Folder>" + placemark("a", "1") + "</Folder>",
        "<Folder><Folder>" + placemark("b", "2") + "</Folder></Folder>",
        placemark("c", "3"),
    )
    assert [feature.id for feature in parse_kml(text)] == ["1", "2", "3"]


def test_properties_include_extended_data_and_description():
    body = (
        "<description>Main office</description>"
        '<ExtendedData><Data name="region"><value>HU</value></Data>'
        '<SchemaData schemaUrl="#s"><SimpleData name="code">42</SimpleData></SchemaData></ExtendedData>'
    )
    properties = parse_kml(kml_document(placemark("Office", "O", body=body)))[0].properties

    assert properties["name"] == "Office"
    assert properties["description"] == "Main office"
    assert properties["region"] == "HU"
    assert properties["code"] == "42"


def test_shared_and_inline_styles_become_properties():
    styles = (
        '<Style id="red"><LineStyle><color>ff0000ff</color><width>4</width></LineStyle>'
        "<PolyStyle><color>7f00ff00</color></PolyStyle></Style>"
        '<StyleMap id="redMap"><Pair><key>normal</key><styleUrl>#red</styleUrl></Pair>'
        "<Pair><key>highlight</key><styleUrl>#other</styleUrl></Pair></StyleMap>"
    )
    inline = "<Style><LineStyle><color>ffff0000</color></LineStyle></Style>"
    text = kml_document(
        placemark("shared", "1", body="<styleUrl>#redMap</styleUrl>"),
        placemark("inline", "2", body=inline),
        extra=styles,
    )
    shared, own = parse_kml(text)

    assert shared.properties["stroke"] == "#ff0000"
    assert shared.properties["stroke-width"] == 4.0
    assert shared.properties["stroke-opacity"] == 1.0
    assert shared.properties["fill"] == "#00ff00"
    assert shared.properties["fill-opacity"] == pytest.approx(127 / 255)
    assert own.properties["stroke"] == "#0000ff"


def test_kml_color_conversion_rejects_bad_values():
    assert kml_color_to_hex("ff112233") == ("#332211", 1.0)
    assert kml_color_to_hex("zz") == (None, None)
    assert kml_color_to_hex("gg112233") == (None, None)


def test_parse_coordinates_drops_altitude_and_bad_tuples():
    assert parse_coordinates(" 1,2,3\n 4,5  x,y 7 ") == [(1.0, 2.0), (4.0, 5.0)]


def test_document_without_kml_namespace():
    text = "<kml><Document><Placemark id='n'><name>n</name><Point><coordinates>1,2</coordinates></Point></Placemark></Document></kml>"
    assert parse_kml(text)[0].id == "n"


def test_zero_placemarks_is_empty_document():
    with pytest.raises(ParseError) as excinfo:
        parse_kml(kml_document())
    assert excinfo.value.kind is ParseErrorKind.EMPTY_DOCUMENT


def test_placemarks_without_geometry_is_empty_document():
    with pytest.raises(ParseError) as excinfo:
        parse_kml(kml_document('<Placemark id="a"><name>a</name></Placemark>'))
    assert excinfo.value.kind is ParseErrorKind.EMPTY_DOCUMENT


def test_blank_text_is_empty_document():
    with pytest.raises(ParseError) as excinfo:
        parse_kml("   ")
    assert excinfo.value.kind is ParseErrorKind.EMPTY_DOCUMENT


def test_invalid_xml_is_malformed():
    with pytest.raises(ParseError) as excinfo:
        parse_kml("<kml><Document><Placemark></Document>")
    assert excinfo.value.kind is ParseErrorKind.MALFORMED


def test_collection_geodataframe_and_bounds(north_south_kml):
    collection = parse_kml(north_south_kml)
    gdf = collection.to_geodataframe()

    assert list(gdf["feature_id"]) == ["S1", "S2"]
    assert gdf.crs.to_epsg() == 4326
    minx, miny, maxx, maxy = collection.bounds()
    assert (minx, miny) == pytest.approx((21.60, 47.50))
    assert (maxx, maxy) == pytest.approx((21.65, 47.56))
