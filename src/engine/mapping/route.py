"""Route data model — segments, layers, and bounds.

Coordinates are stored as (lat, lng) degrees. Schematic coordinates are
logical canvas units with y growing downward (north is up on screen).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float

    def as_list(self) -> list[float]:
        return [self.lat, self.lng]


@dataclass(frozen=True)
class ProjectedPoint:
    """A vertex on the schematic canvas.

    Attributes:
        x: Canvas x coordinate.
        y: Canvas y coordinate (flipped, north up).
        cumulative_km: Arc length from the start of its segment.
    """

    x: float
    y: float
    cumulative_km: float


@dataclass(frozen=True)
class Bounds:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(
            (self.min_lat + self.max_lat) / 2.0,
            (self.min_lng + self.max_lng) / 2.0,
        )

    def to_dict(self) -> dict:
        return {
            "min_lat": self.min_lat,
            "max_lat": self.max_lat,
            "min_lng": self.min_lng,
            "max_lng": self.max_lng,
        }

    @classmethod
    def of(cls, points: list[GeoPoint]) -> Bounds:
        lats = [p.lat for p in points]
        lngs = [p.lng for p in points]
        return cls(min(lats), max(lats), min(lngs), max(lngs))


@dataclass(frozen=True)
class RouteSegment:
    """One contiguous polyline of a layer.

    Attributes:
        points: Original vertices, in order (at least one).
        projected: Schematic vertices, parallel to ``points``.
        length_km: Sum of great-circle distances between vertices.
        start_chainage_km: Chainage at the first vertex.
        end_chainage_km: ``start_chainage_km + length_km``.
    """

    points: tuple[GeoPoint, ...]
    projected: tuple[ProjectedPoint, ...]
    length_km: float
    start_chainage_km: float
    end_chainage_km: float

    def contains(self, km: float) -> bool:
        return self.start_chainage_km <= km <= self.end_chainage_km


@dataclass(frozen=True)
class RouteLayer:
    """A named geometry layer imported from a route file.

    Attributes:
        id: Unique identifier generated at import time.
        name: Placemark name from the source file, or a fallback.
        road_name: Road this layer belongs to (user-supplied at import).
        segments: Polylines in arrival order, chainage-contiguous.
        total_length_km: Sum of segment lengths.
        color: Display colour (hex).
        path: Combined schematic path ("M x y L x y ...").
        bounds: Geographic bounds of all vertices.
        source_file: Name of the file the layer came from.
        created_at: ISO8601 creation timestamp.
    """

    id: str
    name: str
    road_name: str
    segments: tuple[RouteSegment, ...]
    total_length_km: float
    color: str
    path: str
    bounds: Bounds
    source_file: str = ""
    created_at: str = ""

    @property
    def point_count(self) -> int:
        return sum(len(s.points) for s in self.segments)

    def summary(self) -> dict:
        """Serializable description without the vertex lists."""
        return {
            "id": self.id,
            "name": self.name,
            "road_name": self.road_name,
            "total_length_km": round(self.total_length_km, 3),
            "segment_count": len(self.segments),
            "point_count": self.point_count,
            "color": self.color,
            "path": self.path,
            "bounds": self.bounds.to_dict(),
            "source_file": self.source_file,
            "created_at": self.created_at,
        }
