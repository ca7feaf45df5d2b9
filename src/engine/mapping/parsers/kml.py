"""Parse KML line geometry into named polyline groups.

Handles Placemark/LineString and Placemark/MultiGeometry/LineString, plus
bare LineString elements when a file carries no Placemarks at all.
KML coordinate format: "lng,lat,alt lng,lat,alt" (longitude first).
Points are returned as GeoPoint(lat, lng); altitude is dropped.
"""

from __future__ import annotations

import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import PurePath

from engine.mapping.errors import RouteImportError
from engine.mapping.route import GeoPoint

FALLBACK_GROUP_NAME = "Imported Route"


@dataclass
class PolylineGroup:
    """All polylines found under one placemark name, in document order."""

    name: str
    polylines: list[list[GeoPoint]] = field(default_factory=list)

    @property
    def point_count(self) -> int:
        return sum(len(line) for line in self.polylines)


def parse_kml_routes(kml_string: str, filename: str = "") -> list[PolylineGroup]:
    """Parse a KML document into polyline groups keyed by placemark name.

    Args:
        kml_string: Raw KML XML content.
        filename: Source filename, used for error reporting and as a
            fallback group name.

    Returns:
        Groups in first-seen order. Placemarks sharing a name share a group.

    Raises:
        RouteImportError: On malformed XML or when no valid point is found.
    """
    try:
        root = ET.fromstring(kml_string)
    except ET.ParseError as e:
        raise RouteImportError(f"Malformed KML in {filename or 'input'}: {e}", filename) from e

    ns = _detect_namespace(root)
    groups: dict[str, PolylineGroup] = {}

    placemarks = list(root.iter(f"{ns}Placemark"))
    for idx, pm in enumerate(placemarks):
        lines = [
            _parse_coordinate_string(coord.text or "")
            for ls in pm.iter(f"{ns}LineString")
            for coord in ls.iter(f"{ns}coordinates")
        ]
        lines = [line for line in lines if line]
        if not lines:
            continue
        name = _get_text(pm, "name", ns) or f"Placemark {idx + 1}"
        groups.setdefault(name, PolylineGroup(name)).polylines.extend(lines)

    if not placemarks:
        lines = [
            _parse_coordinate_string(coord.text or "")
            for ls in root.iter(f"{ns}LineString")
            for coord in ls.iter(f"{ns}coordinates")
        ]
        lines = [line for line in lines if line]
        if lines:
            name = _document_name(root, ns) or PurePath(filename).stem or FALLBACK_GROUP_NAME
            groups[name] = PolylineGroup(name, lines)

    result = list(groups.values())
    if sum(g.point_count for g in result) == 0:
        raise RouteImportError(f"No line coordinates found in {filename or 'input'}", filename)
    return result


def _detect_namespace(root: ET.Element) -> str:
    """Detect KML namespace from root element tag."""
    tag = root.tag
    if "{" in tag:
        return tag.split("}")[0] + "}"
    return ""


def _get_text(parent: ET.Element, tag: str, ns: str) -> str:
    """Text of a direct child element, stripped."""
    elem = parent.find(f"{ns}{tag}")
    if elem is not None and elem.text:
        return elem.text.strip()
    return ""


def _document_name(root: ET.Element, ns: str) -> str:
    doc = root if root.tag == f"{ns}Document" else root.find(f"{ns}Document")
    if doc is None:
        return ""
    return _get_text(doc, "name", ns)


def _parse_coordinate_string(coord_str: str) -> list[GeoPoint]:
    """Parse 'lng,lat[,alt] lng,lat[,alt] ...' into GeoPoints.

    Malformed tuples are skipped.
    """
    points = []
    for token in coord_str.strip().split():
        parts = token.split(",")
        if len(parts) < 2:
            continue
        try:
            lng = float(parts[0])
            lat = float(parts[1])
        except ValueError:
            continue
        if not (math.isfinite(lat) and math.isfinite(lng)):
            continue
        points.append(GeoPoint(lat, lng))
    return points
