"""Scene derivation — everything a render surface draws, in one value.

A Scene is rebuilt from scratch on every render pass from the registry,
the current ViewState, a project snapshot, and the drift offsets. It
carries both schematic (x, y) and geographic (lat, lng) positions so
either surface can draw it without touching the projector.

Styling rules:
    reference layer      white casing + full-opacity stroke, drawn last
    active-road layers   solid, slightly translucent
    other-road layers    dimmed and dashed
"""

from __future__ import annotations

from dataclasses import dataclass, field

from engine.mapping.geometry import format_chainage
from engine.mapping.projector import (
    DEFAULT_FALLBACK,
    ChainageProjector,
    FallbackRoute,
    SchematicPosition,
)
from engine.mapping.registry import RouteRegistry
from engine.mapping.route import RouteLayer
from engine.tracking.entities import (
    STRUCTURE_COMPLETED,
    STRUCTURE_IN_PROGRESS,
    Entity,
    EntityKind,
    TrackedEntities,
)
from engine.view.state import ViewState

HEAT_BUCKETS = 20
KM_MARKER_INTERVAL = 3.0

HEAT_COLORS = {
    "high": "rgba(239, 68, 68, 0.4)",
    "medium": "rgba(234, 179, 8, 0.4)",
}

ENTITY_COLORS = {
    EntityKind.VEHICLE: "#4f46e5",
    EntityKind.RFI: "#ef4444",
    EntityKind.WORKSITE: "#10b981",
}

STRUCTURE_COLORS = {
    STRUCTURE_COMPLETED: "#22c55e",
    STRUCTURE_IN_PROGRESS: "#f59e0b",
}
STRUCTURE_DEFAULT_COLOR = "#64748b"

# Category flag that gates each entity kind
ENTITY_CATEGORIES = {
    EntityKind.VEHICLE: "machinery",
    EntityKind.RFI: "rfis",
    EntityKind.WORKSITE: "workSites",
    EntityKind.STRUCTURE: "structures",
}


@dataclass(frozen=True)
class Placement:
    """An entity positioned on both surfaces."""

    kind: EntityKind
    id: str
    label: str
    chainage: str
    km: float
    x: float
    y: float
    lat: float
    lng: float
    color: str
    selected: bool = False
    fields: dict = field(default_factory=dict, compare=False)
    progress: float | None = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "id": self.id,
            "label": self.label,
            "chainage": self.chainage,
            "km": self.km,
            "x": self.x,
            "y": self.y,
            "lat": self.lat,
            "lng": self.lng,
            "color": self.color,
            "selected": self.selected,
            "fields": dict(self.fields),
            "progress": self.progress,
        }


@dataclass(frozen=True)
class RouteStyle:
    layer: RouteLayer
    opacity: float
    weight: float
    dashed: bool
    casing: bool
    is_reference: bool
    on_active_road: bool

    def geo_lines(self) -> list[list[list[float]]]:
        return [[p.as_list() for p in s.points] for s in self.layer.segments]

    def to_dict(self) -> dict:
        return {
            "layer_id": self.layer.id,
            "name": self.layer.name,
            "road_name": self.layer.road_name,
            "color": self.layer.color,
            "path": self.layer.path,
            "opacity": self.opacity,
            "weight": self.weight,
            "dashed": self.dashed,
            "casing": self.casing,
            "is_reference": self.is_reference,
            "on_active_road": self.on_active_road,
        }


@dataclass(frozen=True)
class HeatBand:
    index: int
    start_km: float
    end_km: float
    intensity: float
    level: str
    start: SchematicPosition
    end: SchematicPosition

    @property
    def color(self) -> str:
        return HEAT_COLORS[self.level]

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "start_km": self.start_km,
            "end_km": self.end_km,
            "intensity": self.intensity,
            "level": self.level,
            "color": self.color,
            "start": self.start.to_dict(),
            "end": self.end.to_dict(),
        }


@dataclass(frozen=True)
class KmMarker:
    km: float
    label: str
    position: SchematicPosition
    lat: float
    lng: float

    def to_dict(self) -> dict:
        return {
            "km": self.km,
            "label": self.label,
            "x": self.position.x,
            "y": self.position.y,
            "lat": self.lat,
            "lng": self.lng,
        }


@dataclass
class Scene:
    view_mode: str
    base_layer: str
    active_road: str | None
    reference_id: str | None
    project_length_km: float
    alignment_path: str
    alignment_geo: list[list[float]]
    show_alignment: bool
    show_right_of_way: bool
    routes: list[RouteStyle] = field(default_factory=list)
    placements: list[Placement] = field(default_factory=list)
    heat_bands: list[HeatBand] = field(default_factory=list)
    km_markers: list[KmMarker] = field(default_factory=list)
    metrics: dict = field(default_factory=dict)
    transform: dict = field(default_factory=dict)
    center: tuple[float, float] | None = None

    def of_kind(self, kind: EntityKind) -> list[Placement]:
        return [p for p in self.placements if p.kind is kind]

    def to_dict(self) -> dict:
        return {
            "view_mode": self.view_mode,
            "base_layer": self.base_layer,
            "active_road": self.active_road,
            "reference_id": self.reference_id,
            "project_length_km": self.project_length_km,
            "alignment_path": self.alignment_path,
            "show_alignment": self.show_alignment,
            "show_right_of_way": self.show_right_of_way,
            "routes": [r.to_dict() for r in self.routes],
            "placements": [p.to_dict() for p in self.placements],
            "heat_bands": [h.to_dict() for h in self.heat_bands],
            "km_markers": [m.to_dict() for m in self.km_markers],
            "metrics": dict(self.metrics),
            "transform": dict(self.transform),
            "center": list(self.center) if self.center else None,
        }


def heat_intensity(start_km: float) -> float:
    """Illustrative risk score for a bucket starting at ``start_km``."""
    return (start_km * 7) % 10


def heat_level(intensity: float) -> str | None:
    if intensity > 7:
        return "high"
    if intensity > 4:
        return "medium"
    return None


def heat_bands(projector: ChainageProjector, buckets: int = HEAT_BUCKETS) -> list[HeatBand]:
    """Divide the route into equal buckets and keep the risky ones."""
    length = projector.total_length_km
    if length <= 0 or buckets <= 0:
        return []
    size = length / buckets
    bands = []
    for i in range(buckets):
        start_km = i * size
        end_km = length if i == buckets - 1 else (i + 1) * size
        intensity = heat_intensity(start_km)
        level = heat_level(intensity)
        if level is None:
            continue
        bands.append(HeatBand(
            index=i,
            start_km=start_km,
            end_km=end_km,
            intensity=intensity,
            level=level,
            start=projector.schematic(start_km),
            end=projector.schematic(end_km),
        ))
    return bands


def km_markers(projector: ChainageProjector, interval: float = KM_MARKER_INTERVAL) -> list[KmMarker]:
    length = projector.total_length_km
    if interval <= 0:
        return []
    markers = []
    k = 0
    while k * interval <= length + 1e-9:
        km = k * interval
        lat, lng = projector.geo(km)
        markers.append(KmMarker(km, f"Km {km:g}", projector.schematic(km), lat, lng))
        k += 1
    return markers


def route_styles(registry: RouteRegistry, state: ViewState, reference: RouteLayer | None) -> list[RouteStyle]:
    """Visible layers, drawn other roads first and the reference last."""
    styles = []
    for layer in registry.list_layers():
        if not state.is_visible(layer.id):
            continue
        is_ref = reference is not None and layer.id == reference.id
        on_active = layer.road_name == registry.active_road
        if is_ref:
            styles.append(RouteStyle(layer, 1.0, 5.0, False, True, True, True))
        elif on_active:
            styles.append(RouteStyle(layer, 0.8, 3.0, False, False, False, True))
        else:
            styles.append(RouteStyle(layer, 0.35, 2.0, True, False, False, False))
    return sorted(styles, key=lambda s: (s.is_reference, s.on_active_road))


def structure_color(status: str) -> str:
    return STRUCTURE_COLORS.get(status, STRUCTURE_DEFAULT_COLOR)


def place(
    entity: Entity,
    projector: ChainageProjector,
    state: ViewState,
    offset_percent: float = 0.0,
) -> Placement:
    """Project one entity onto both surfaces."""
    pos = projector.schematic(entity.chainage, offset_percent)
    lat, lng = projector.geo(entity.chainage, offset_percent)
    if entity.kind is EntityKind.STRUCTURE:
        color = structure_color(entity.status)
        progress = entity.progress_percent
    else:
        color = ENTITY_COLORS[entity.kind]
        progress = entity.progress if entity.kind is EntityKind.WORKSITE else None
    selected = (
        state.selected is not None
        and state.selected.type is entity.kind
        and state.selected.data.id == entity.id
    )
    return Placement(
        kind=entity.kind,
        id=entity.id,
        label=entity.label,
        chainage=format_chainage(pos.km),
        km=pos.km,
        x=pos.x,
        y=pos.y,
        lat=lat,
        lng=lng,
        color=color,
        selected=selected,
        fields=entity.display_fields(),
        progress=progress,
    )


def build_scene(
    registry: RouteRegistry,
    state: ViewState,
    entities: TrackedEntities,
    offsets: dict[str, float] | None = None,
    fallback: FallbackRoute = DEFAULT_FALLBACK,
    buckets: int = HEAT_BUCKETS,
    marker_interval: float = KM_MARKER_INTERVAL,
) -> Scene:
    """Derive the full scene for one render pass."""
    offsets = offsets or {}
    reference = registry.resolve_reference()
    length = registry.project_length()
    projector = ChainageProjector(reference, length, fallback)

    placements: list[Placement] = []
    for entity in entities.all():
        if not state.is_visible(ENTITY_CATEGORIES[entity.kind]):
            continue
        offset = offsets.get(entity.id, 0.0) if entity.kind is EntityKind.VEHICLE else 0.0
        placements.append(place(entity, projector, state, offset))

    show_alignment = state.is_visible("centerline")
    center = None
    if reference is not None:
        # Hidden or not, the reference decides where the web map opens.
        c = reference.bounds.center
        center = (c.lat, c.lng)
    return Scene(
        view_mode=state.view_mode.value,
        base_layer=state.base_layer.value,
        active_road=registry.active_road,
        reference_id=reference.id if reference else None,
        project_length_km=length,
        alignment_path=projector.schematic_path(),
        alignment_geo=projector.geo_path(),
        show_alignment=show_alignment,
        show_right_of_way=state.is_visible("boundaries"),
        routes=route_styles(registry, state, reference),
        placements=placements,
        heat_bands=heat_bands(projector, buckets) if state.is_visible("heatMap") else [],
        km_markers=km_markers(projector, marker_interval) if show_alignment else [],
        metrics={
            "length_km": round(length, 2),
            "active_gps_units": len(entities.vehicles),
            "alerts": len(entities.rfis),
            "mode": state.view_mode.value,
        },
        transform=state.transform.to_dict(),
        center=center,
    )
