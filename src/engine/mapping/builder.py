"""Layer model builder — turns parsed polyline groups into RouteLayers.

For every polyline the builder accumulates great-circle arc length
(chainage), projects vertices onto the schematic canvas, and writes an
SVG path fragment. One normalization box is shared by all groups of a
file so layers imported together stay aligned on the canvas.
"""

from __future__ import annotations

import itertools
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

import numpy as np

from engine.mapping.geometry import haversine_distance_km
from engine.mapping.parsers.kml import PolylineGroup
from engine.mapping.route import Bounds, GeoPoint, ProjectedPoint, RouteLayer, RouteSegment

DEFAULT_PALETTE = (
    "#3b82f6",
    "#ef4444",
    "#10b981",
    "#f59e0b",
    "#8b5cf6",
    "#ec4899",
    "#06b6d4",
    "#84cc16",
)

MIN_SPAN_DEG = 0.001

_id_counter = itertools.count(1)


@dataclass(frozen=True)
class Canvas:
    """Schematic drawing area: ``width`` x ``height`` inside ``padding``."""

    width: float = 900.0
    height: float = 400.0
    padding: float = 50.0


def new_layer_id(name: str) -> str:
    """Generate a layer id that never repeats within a process."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")[:24] or "layer"
    return f"layer-{slug}-{next(_id_counter)}-{uuid.uuid4().hex[:6]}"


def normalization_bounds(groups: list[PolylineGroup]) -> Bounds:
    """Union bounding box of every point in ``groups``, span floored."""
    points = [p for g in groups for line in g.polylines for p in line]
    b = Bounds.of(points)
    max_lat = max(b.max_lat, b.min_lat + MIN_SPAN_DEG)
    max_lng = max(b.max_lng, b.min_lng + MIN_SPAN_DEG)
    return Bounds(b.min_lat, max_lat, b.min_lng, max_lng)


def project_points(
    points: list[GeoPoint], norm: Bounds, canvas: Canvas
) -> tuple[np.ndarray, np.ndarray]:
    """Map lat/lng onto canvas x/y. North is up (y flipped)."""
    lats = np.array([p.lat for p in points], dtype=float)
    lngs = np.array([p.lng for p in points], dtype=float)
    span_lat = norm.max_lat - norm.min_lat
    span_lng = norm.max_lng - norm.min_lng
    xs = canvas.padding + (lngs - norm.min_lng) / span_lng * canvas.width
    ys = canvas.padding + canvas.height - (lats - norm.min_lat) / span_lat * canvas.height
    return xs, ys


def build_segment(
    points: list[GeoPoint], start_km: float, norm: Bounds, canvas: Canvas
) -> tuple[RouteSegment, str]:
    """Build one segment and its schematic path fragment."""
    cumulative = [0.0]
    for a, b in zip(points, points[1:]):
        cumulative.append(cumulative[-1] + haversine_distance_km(a.lat, a.lng, b.lat, b.lng))
    xs, ys = project_points(points, norm, canvas)

    projected = tuple(
        ProjectedPoint(float(x), float(y), km) for x, y, km in zip(xs, ys, cumulative)
    )
    length = cumulative[-1]
    segment = RouteSegment(
        points=tuple(points),
        projected=projected,
        length_km=length,
        start_chainage_km=start_km,
        end_chainage_km=start_km + length,
    )

    cmds = [f"{'M' if i == 0 else 'L'} {p.x:.2f} {p.y:.2f}" for i, p in enumerate(projected)]
    return segment, " ".join(cmds)


def build_layer(
    group: PolylineGroup,
    road_name: str,
    color: str,
    norm: Bounds,
    canvas: Canvas | None = None,
    source_file: str = "",
) -> RouteLayer:
    """Assemble a RouteLayer from one named group of polylines."""
    canvas = canvas or Canvas()
    segments: list[RouteSegment] = []
    fragments: list[str] = []
    running = 0.0
    for line in group.polylines:
        segment, fragment = build_segment(line, running, norm, canvas)
        segments.append(segment)
        fragments.append(fragment)
        running = segment.end_chainage_km

    all_points = [p for line in group.polylines for p in line]
    return RouteLayer(
        id=new_layer_id(group.name),
        name=group.name,
        road_name=road_name,
        segments=tuple(segments),
        total_length_km=running,
        color=color,
        path=" ".join(fragments),
        bounds=Bounds.of(all_points),
        source_file=source_file,
        created_at=datetime.now(timezone.utc).isoformat(),
    )


def build_layers(
    groups: list[PolylineGroup],
    road_name: str,
    color_offset: int = 0,
    palette: tuple[str, ...] = DEFAULT_PALETTE,
    canvas: Canvas | None = None,
    source_file: str = "",
) -> list[RouteLayer]:
    """Build one layer per group; colours continue from ``color_offset``."""
    groups = [g for g in groups if g.point_count]
    if not groups:
        return []
    norm = normalization_bounds(groups)
    return [
        build_layer(
            group,
            road_name,
            palette[(color_offset + i) % len(palette)],
            norm,
            canvas,
            source_file,
        )
        for i, group in enumerate(groups)
    ]
