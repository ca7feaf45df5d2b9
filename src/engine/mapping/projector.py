"""Chainage-to-position projection.

Maps a chainage (plus an optional lateral offset used for simulated GPS
drift) onto either the schematic canvas or real-world lat/lng by finding
the reference-layer segment that contains it and interpolating linearly
between the bracketing vertices.

Without a reference layer both projections fall back to fixed shapes:
an S-curve on the 1000x500 schematic canvas and a gently bowed line
between two configured endpoints on the real map.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from engine.mapping.geometry import parse_chainage
from engine.mapping.route import GeoPoint, RouteLayer, RouteSegment


@dataclass(frozen=True)
class SchematicPosition:
    x: float
    y: float
    km: float

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "km": self.km}


@dataclass(frozen=True)
class FallbackRoute:
    """Stand-in alignment used when the active road has no layers.

    Attributes:
        start: Geographic start of the route (chainage 0).
        end: Geographic end of the route (chainage = total length).
        wobble_deg: Longitude bow amplitude so the line is not straight.
    """

    start: GeoPoint = GeoPoint(27.7172, 85.3240)
    end: GeoPoint = GeoPoint(27.6710, 85.4298)
    wobble_deg: float = 0.01

    def midpoint(self) -> tuple[float, float]:
        """Default web map centre: halfway between the endpoints."""
        return (self.start.lat + self.end.lat) / 2, (self.start.lng + self.end.lng) / 2


DEFAULT_FALLBACK = FallbackRoute()


def clamp_km(chainage: str | float | None, total_length_km: float,
             lateral_offset_percent: float = 0.0) -> float:
    """Parse, apply the percent offset, clamp to [0, total]."""
    total = max(0.0, total_length_km)
    km = parse_chainage(chainage) + lateral_offset_percent / 100.0 * total
    return min(total, max(0.0, km))


def locate_segment(layer: RouteLayer, km: float) -> tuple[RouteSegment, float]:
    """Segment containing ``km`` and the km offset within it.

    Falls through to the last segment when ``km`` lies past every range.
    """
    segment = layer.segments[-1]
    for candidate in layer.segments:
        if candidate.contains(km):
            segment = candidate
            break
    return segment, km - segment.start_chainage_km


def bracket(segment: RouteSegment, local_km: float) -> tuple[int, float]:
    """Index of the vertex before ``local_km`` and the ratio to the next.

    Ratio is 0 for zero-length spans. Single-vertex segments return (0, 0.0).
    """
    n = len(segment.projected)
    if n < 2:
        return 0, 0.0
    cumulative = np.fromiter((p.cumulative_km for p in segment.projected), dtype=float, count=n)
    i = int(np.searchsorted(cumulative, local_km, side="right")) - 1
    i = min(max(i, 0), n - 2)
    span = cumulative[i + 1] - cumulative[i]
    if span <= 0:
        return i, 0.0
    ratio = (local_km - cumulative[i]) / span
    return i, float(min(1.0, max(0.0, ratio)))


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def fallback_schematic(km: float, total_length_km: float) -> SchematicPosition:
    """S-curve approximation: descending then ascending sine."""
    t = km / total_length_km * 100.0 if total_length_km > 0 else 0.0
    x = t * 9 + 50
    if t < 40:
        y = 350 - 200 * math.sin(t / 40 * math.pi / 2)
    else:
        y = 150 + 50 * math.sin((t - 40) / 60 * math.pi)
    return SchematicPosition(x, y, km)


def fallback_geo(km: float, total_length_km: float,
                 fallback: FallbackRoute = DEFAULT_FALLBACK) -> tuple[float, float]:
    f = km / total_length_km if total_length_km > 0 else 0.0
    lat = _lerp(fallback.start.lat, fallback.end.lat, f)
    lng = _lerp(fallback.start.lng, fallback.end.lng, f) + fallback.wobble_deg * math.sin(f * math.pi)
    return lat, lng


def project_to_schematic(
    chainage: str | float | None,
    total_length_km: float,
    lateral_offset_percent: float = 0.0,
    reference: RouteLayer | None = None,
) -> SchematicPosition:
    """Position of ``chainage`` on the schematic canvas."""
    km = clamp_km(chainage, total_length_km, lateral_offset_percent)
    if reference is None or not reference.segments:
        return fallback_schematic(km, total_length_km)

    segment, local = locate_segment(reference, km)
    i, ratio = bracket(segment, local)
    a = segment.projected[i]
    b = segment.projected[min(i + 1, len(segment.projected) - 1)]
    return SchematicPosition(_lerp(a.x, b.x, ratio), _lerp(a.y, b.y, ratio), km)


def project_to_geo(
    chainage: str | float | None,
    total_length_km: float,
    lateral_offset_percent: float = 0.0,
    reference: RouteLayer | None = None,
    fallback: FallbackRoute = DEFAULT_FALLBACK,
) -> tuple[float, float]:
    """Real-world (lat, lng) of ``chainage``."""
    km = clamp_km(chainage, total_length_km, lateral_offset_percent)
    if reference is None or not reference.segments:
        return fallback_geo(km, total_length_km, fallback)

    segment, local = locate_segment(reference, km)
    i, ratio = bracket(segment, local)
    a = segment.points[i]
    b = segment.points[min(i + 1, len(segment.points) - 1)]
    return _lerp(a.lat, b.lat, ratio), _lerp(a.lng, b.lng, ratio)


class ChainageProjector:
    """Projection bound to one reference layer and project length.

    Built once per render pass from the resolved road context.
    """

    def __init__(
        self,
        reference: RouteLayer | None,
        total_length_km: float,
        fallback: FallbackRoute = DEFAULT_FALLBACK,
    ) -> None:
        self.reference = reference
        self.total_length_km = total_length_km
        self.fallback = fallback

    @property
    def has_reference(self) -> bool:
        return self.reference is not None

    def schematic(self, chainage: str | float | None, offset_percent: float = 0.0) -> SchematicPosition:
        return project_to_schematic(chainage, self.total_length_km, offset_percent, self.reference)

    def geo(self, chainage: str | float | None, offset_percent: float = 0.0) -> tuple[float, float]:
        return project_to_geo(chainage, self.total_length_km, offset_percent, self.reference, self.fallback)

    def geo_path(self) -> list[list[float]]:
        """Alignment vertices as [lat, lng] pairs, or a sampled fallback line."""
        if self.reference is not None:
            return [p.as_list() for s in self.reference.segments for p in s.points]
        steps = 50
        return [
            list(fallback_geo(self.total_length_km * i / steps, self.total_length_km, self.fallback))
            for i in range(steps + 1)
        ]

    def schematic_path(self) -> str:
        """SVG path of the alignment, or a sampled S-curve."""
        if self.reference is not None:
            return self.reference.path
        steps = 60
        pts = [fallback_schematic(self.total_length_km * i / steps, self.total_length_km) for i in range(steps + 1)]
        return " ".join(f"{'M' if i == 0 else 'L'} {p.x:.2f} {p.y:.2f}" for i, p in enumerate(pts))
