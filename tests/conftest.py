"""Shared fixtures: KML documents and route registries."""

from __future__ import annotations

import pytest

# Three vertices due north along 85.30E, 0.045 deg apart (~5.004 km each)
CENTERLINE_COORDS = [(27.70, 85.30), (27.745, 85.30), (27.79, 85.30)]


def _coords(points):
    return " ".join(f"{lng},{lat},0" for lat, lng in points)


def build_kml(placemarks, doc_name="Test Document"):
    """KML text with one Placemark per (name, [polyline, ...]) entry."""
    body = []
    for name, polylines in placemarks:
        lines = "".join(
            f"<LineString><coordinates>{_coords(line)}</coordinates></LineString>"
            for line in polylines
        )
        if len(polylines) > 1:
            lines = f"<MultiGeometry>{lines}</MultiGeometry>"
        name_el = f"<name>{name}</name>" if name is not None else ""
        body.append(f"<Placemark>{name_el}{lines}</Placemark>")
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<kml xmlns="http://www.opengis.net/kml/2.2"><Document>'
        f"<name>{doc_name}</name>{''.join(body)}</Document></kml>"
    )


@pytest.fixture
def make_kml():
    return build_kml


@pytest.fixture
def centerline_kml():
    return build_kml([("Centerline", [CENTERLINE_COORDS])])


@pytest.fixture
def two_layer_kml():
    """An edge line and a centerline on the same road."""
    return build_kml([
        ("Edge", [[(27.70, 85.31), (27.72, 85.31)]]),
        ("Road CL", [[(27.70, 85.30), (27.71, 85.30)]]),
    ])


@pytest.fixture
def registry():
    from engine.mapping.registry import RouteRegistry
    return RouteRegistry()
