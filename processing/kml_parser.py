"""
kml_parser.py - KML Placemark Parsing and Identifier Extraction

Converts a KML document into an ordered collection of features and attaches
a stable identifier to each feature so it can be joined with tabular data.

Key Functionality:
1. Feature construction:
   - Point, LineString, Polygon and MultiGeometry placemarks become shapely
     geometries with (longitude, latitude) coordinates.
   - Name, description, ExtendedData values and resolved style colors become
     feature properties.

2. Identifier extraction (in this order, first hit wins):
   - the `id` attribute of the placemark that produced the feature,
   - the id of another placemark sharing the feature's trimmed name,
   - an `id` value already present in the feature properties.

Usage:
    from processing.kml_parser import parse_kml

    collection = parse_kml(kml_text)
    for feature in collection:
        print(feature.id, feature.display_name)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple
from xml.etree import ElementTree as ET

import geopandas as gpd
from loguru import logger
from shapely.geometry import (
    GeometryCollection,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
)
from shapely.geometry.base import BaseGeometry

from .errors import ParseError, ParseErrorKind

WGS84 = "EPSG:4326"

GEOMETRY_TAGS = ("Point", "LineString", "LinearRing", "Polygon", "MultiGeometry")

Coordinate = Tuple[float, float]


@dataclass
class GeoFeature:
    """A placemark normalized to geometry + properties + canonical id."""

    geometry: BaseGeometry
    properties: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    @property
    def display_name(self) -> str:
        """Trimmed `name` (or `Name`) property, empty when neither is set."""
        properties = self.properties or {}
        name = properties.get("name") or properties.get("Name") or ""
        return str(name).strip()

    @property
    def geometry_type(self) -> str:
        return self.geometry.geom_type


@dataclass
class GeoCollection:
    """Features in document order."""

    features: List[GeoFeature] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self) -> Iterator[GeoFeature]:
        return iter(self.features)

    def __getitem__(self, index: int) -> GeoFeature:
        return self.features[index]

    def to_geodataframe(self) -> gpd.GeoDataFrame:
        """Convert to a WGS84 GeoDataFrame with a `feature_id` column."""
        rows = [{**feature.properties, "feature_id": feature.id} for feature in self.features]
        geometries = [feature.geometry for feature in self.features]
        return gpd.GeoDataFrame(rows, geometry=geometries, crs=WGS84)

    def bounds(self) -> Optional[Tuple[float, float, float, float]]:
        """Total (minx, miny, maxx, maxy) of all geometries, None when empty."""
        if not self.features:
            return None
        minx, miny, maxx, maxy = self.to_geodataframe().total_bounds
        return float(minx), float(miny), float(maxx), float(maxy)


@dataclass(frozen=True)
class PlacemarkDescriptor:
    """Identifier and name read straight from a Placemark element."""

    id: Optional[str]
    name: Optional[str]


# ---------------------------------------------------------------------------
# XML helpers (namespace agnostic)
# ---------------------------------------------------------------------------


def _local(tag: Any) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _descendants(element: ET.Element, name: str) -> Iterator[ET.Element]:
    for node in element.iter():
        if node is not element and _local(node.tag) == name:
            yield node


def _first_descendant(element: ET.Element, name: str) -> Optional[ET.Element]:
    return next(_descendants(element, name), None)


def _text(element: Optional[ET.Element]) -> str:
    if element is None:
        return ""
    return "".join(element.itertext())


# ---------------------------------------------------------------------------
# Styles
# ---------------------------------------------------------------------------


def kml_color_to_hex(value: str) -> Tuple[Optional[str], Optional[float]]:
    """Convert a KML `aabbggrr` color into (`#rrggbb`, opacity)."""
    value = value.strip().lstrip("#")
    if len(value) != 8:
        return None, None
    try:
        opacity = int(value[0:2], 16) / 255
        int(value[2:], 16)
    except ValueError:
        return None, None
    return f"#{value[6:8]}{value[4:6]}{value[2:4]}", opacity


def _style_properties(style: ET.Element) -> Dict[str, Any]:
    properties: Dict[str, Any] = {}

    line_style = _child(style, "LineStyle")
    if line_style is not None:
        color, opacity = kml_color_to_hex(_text(_child(line_style, "color")))
        if color is not None:
            properties["stroke"] = color
            properties["stroke-opacity"] = opacity
        width = _text(_child(line_style, "width")).strip()
        if width:
            try:
                properties["stroke-width"] = float(width)
            except ValueError:
                logger.debug(f"  Ignoring non-numeric LineStyle width: {width!r}")

    poly_style = _child(style, "PolyStyle")
    if poly_style is not None:
        color, opacity = kml_color_to_hex(_text(_child(poly_style, "color")))
        if color is not None:
            properties["fill"] = color
            properties["fill-opacity"] = opacity

    return properties


def _collect_shared_styles(root: ET.Element) -> Dict[str, Dict[str, Any]]:
    """Index document-level Style and StyleMap elements by `#id`."""
    styles: Dict[str, Dict[str, Any]] = {}
    for style in _descendants(root, "Style"):
        style_id = style.get("id")
        if style_id:
            styles[f"#{style_id}"] = _style_properties(style)

    for style_map in _descendants(root, "StyleMap"):
        map_id = style_map.get("id")
        if not map_id:
            continue
        for pair in _children(style_map, "Pair"):
            if _text(_child(pair, "key")).strip() != "normal":
                continue
            target = _text(_child(pair, "styleUrl")).strip()
            inline = _child(pair, "Style")
            if target in styles:
                styles[f"#{map_id}"] = styles[target]
            elif inline is not None:
                styles[f"#{map_id}"] = _style_properties(inline)
    return styles


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


def parse_coordinates(text: str) -> List[Coordinate]:
    """Parse whitespace separated `lon,lat[,alt]` tuples, dropping altitude."""
    coordinates: List[Coordinate] = []
    for chunk in text.split():
        parts = chunk.split(",")
        if len(parts) < 2:
            logger.warning(f"  ⚠️ Skipping coordinate tuple without latitude: {chunk!r}")
            continue
        try:
            coordinates.append((float(parts[0]), float(parts[1])))
        except ValueError:
            logger.warning(f"  ⚠️ Skipping non-numeric coordinate tuple: {chunk!r}")
    return coordinates


def _coordinates_of(element: ET.Element) -> List[Coordinate]:
    return parse_coordinates(_text(_child(element, "coordinates")))


def _ring(boundary: Optional[ET.Element]) -> List[Coordinate]:
    if boundary is None:
        return []
    ring = _child(boundary, "LinearRing")
    return _coordinates_of(ring) if ring is not None else []


def _parse_geometry_parts(element: ET.Element) -> List[BaseGeometry]:
    """Return the simple geometries held by a geometry element."""
    tag = _local(element.tag)

    if tag == "Point":
        coordinates = _coordinates_of(element)
        return [Point(coordinates[0])] if coordinates else []

    if tag in ("LineString", "LinearRing"):
        coordinates = _coordinates_of(element)
        return [LineString(coordinates)] if len(coordinates) >= 2 else []

    if tag == "Polygon":
        shell = _ring(_child(element, "outerBoundaryIs"))
        if len(shell) < 3:
            return []
        holes = [_ring(inner) for inner in _children(element, "innerBoundaryIs")]
        return [Polygon(shell, [hole for hole in holes if len(hole) >= 3])]

    if tag == "MultiGeometry":
        parts: List[BaseGeometry] = []
        for child in element:
            if _local(child.tag) in GEOMETRY_TAGS:
                parts.extend(_parse_geometry_parts(child))
        return parts

    return []


def combine_geometry_parts(parts: List[BaseGeometry]) -> Optional[BaseGeometry]:
    """Collapse MultiGeometry parts into the narrowest shapely type."""
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]

    kinds = {part.geom_type for part in parts}
    if kinds == {"LineString"}:
        return MultiLineString(parts)
    if kinds == {"Polygon"}:
        return MultiPolygon(parts)
    if kinds == {"Point"}:
        return MultiPoint(parts)
    return GeometryCollection(parts)


def _placemark_geometry(placemark: ET.Element) -> Optional[BaseGeometry]:
    parts: List[BaseGeometry] = []
    for child in placemark:
        if _local(child.tag) in GEOMETRY_TAGS:
            parts.extend(_parse_geometry_parts(child))
    return combine_geometry_parts(parts)


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


def _placemark_properties(
    placemark: ET.Element, shared_styles: Dict[str, Dict[str, Any]]
) -> Dict[str, Any]:
    properties: Dict[str, Any] = {}

    for key in ("name", "description", "address"):
        element = _child(placemark, key)
        if element is not None:
            properties[key] = _text(element)

    style_url = _text(_child(placemark, "styleUrl")).strip()
    if style_url:
        properties["styleUrl"] = style_url
        if style_url in shared_styles:
            properties.update(shared_styles[style_url])

    inline_style = _child(placemark, "Style")
    if inline_style is not None:
        properties.update(_style_properties(inline_style))

    extended = _child(placemark, "ExtendedData")
    if extended is not None:
        for data in _descendants(extended, "Data"):
            key = data.get("name")
            if key:
                properties[key] = _text(_child(data, "value"))
        for simple in _descendants(extended, "SimpleData"):
            key = simple.get("name")
            if key:
                properties[key] = _text(simple)

    return properties


# ---------------------------------------------------------------------------
# Identifier extraction
# ---------------------------------------------------------------------------


def describe_placemark(placemark: ET.Element) -> PlacemarkDescriptor:
    """Read the `id` attribute and first descendant `name` text."""
    name_element = _first_descendant(placemark, "name")
    return PlacemarkDescriptor(
        id=placemark.get("id") or None,
        name=_text(name_element) if name_element is not None else None,
    )


def build_name_index(descriptors: List[PlacemarkDescriptor]) -> Dict[str, str]:
    """Map trimmed placemark names to ids. Later placemarks overwrite earlier ones."""
    name_index: Dict[str, str] = {}
    for descriptor in descriptors:
        if descriptor.id and descriptor.name and descriptor.name.strip():
            name_index[descriptor.name.strip()] = descriptor.id
    return name_index


def assign_identifiers(
    features: List[GeoFeature],
    aligned_descriptors: List[PlacemarkDescriptor],
    name_index: Dict[str, str],
) -> int:
    """
    Resolve the canonical id of each feature in place.

    Args:
        features: Features in document order
        aligned_descriptors: Descriptor of the placemark that produced each feature
        name_index: Trimmed name -> id for every placemark in the document

    Returns:
        Number of features left without an id
    """
    if len(features) != len(aligned_descriptors):
        raise ValueError("Every feature needs the descriptor of its own placemark")

    unresolved = 0
    for feature, descriptor in zip(features, aligned_descriptors):
        resolved = descriptor.id
        if not resolved:
            resolved = name_index.get(feature.display_name)

        if resolved:
            feature.id = resolved
        elif feature.properties.get("id"):
            feature.id = str(feature.properties["id"])

        if not feature.id:
            unresolved += 1
            logger.debug(f"  No identifier for feature {feature.display_name or '<unnamed>'!r}")

    return unresolved


def parse_kml(text: str) -> GeoCollection:
    """
    Parse a KML document into a GeoCollection with identifiers attached.

    Args:
        text: Raw KML markup

    Returns:
        GeoCollection in document order

    Raises:
        ParseError: MALFORMED for invalid XML, EMPTY_DOCUMENT when no
            placemark yields a feature
    """
    logger.info("🗺️ Parsing KML document...")

    if not text or not text.strip():
        raise ParseError(ParseErrorKind.EMPTY_DOCUMENT, "KML document is empty")

    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise ParseError(ParseErrorKind.MALFORMED, f"KML document is not well-formed XML: {e}") from e

    placemarks = [node for node in root.iter() if _local(node.tag) == "Placemark"]
    descriptors = [describe_placemark(placemark) for placemark in placemarks]
    logger.debug(f"  Found {len(placemarks)} placemarks")

    shared_styles = _collect_shared_styles(root)

    features: List[GeoFeature] = []
    aligned: List[PlacemarkDescriptor] = []
    for placemark, descriptor in zip(placemarks, descriptors):
        geometry = _placemark_geometry(placemark)
        if geometry is None:
            logger.debug(f"  Placemark {descriptor.name or descriptor.id!r} has no geometry, skipped")
            continue
        features.append(GeoFeature(geometry=geometry, properties=_placemark_properties(placemark, shared_styles)))
        aligned.append(descriptor)

    if not features:
        raise ParseError(ParseErrorKind.EMPTY_DOCUMENT, "KML document contains no features")

    unresolved = assign_identifiers(features, aligned, build_name_index(descriptors))
    if unresolved:
        logger.warning(f"  ⚠️ {unresolved} of {len(features)} features have no identifier")

    logger.success(f"  ✅ Parsed {len(features)} features from {len(placemarks)} placemarks")
    return GeoCollection(features)
