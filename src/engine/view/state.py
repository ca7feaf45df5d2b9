"""View state — the map view's ephemeral UI state as an immutable value.

Every update is a pure function taking a ViewState and returning a new
one, so the session owns exactly one current state and tests can check
transitions without any rendering surface.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable

from engine.tracking.entities import Entity, EntityKind

MIN_ZOOM = 0.5
MAX_ZOOM = 5.0
ZOOM_STEP = 1.2


class ViewMode(str, Enum):
    SCHEMATIC = "SCHEMATIC"
    MAP = "MAP"


class BaseLayer(str, Enum):
    STREET = "STREET"
    SATELLITE = "SATELLITE"


# Fixed overlay categories and their initial visibility
CATEGORY_DEFAULTS: dict[str, bool] = {
    "boundaries": True,
    "centerline": True,
    "heatMap": False,
    "workSites": True,
    "machinery": True,
    "rfis": True,
    "structures": True,
}


@dataclass(frozen=True)
class Transform:
    """Schematic pan/zoom: screen = scale * canvas + (x, y)."""

    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "scale": self.scale}

    def svg(self) -> str:
        return f"translate({self.x:.2f} {self.y:.2f}) scale({self.scale:.4f})"


@dataclass(frozen=True)
class SelectedEntity:
    type: EntityKind
    data: Entity

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "id": self.data.id,
            "label": self.data.label,
            "chainage": self.data.chainage,
            "fields": self.data.display_fields(),
        }


@dataclass(frozen=True)
class ViewState:
    view_mode: ViewMode = ViewMode.SCHEMATIC
    base_layer: BaseLayer = BaseLayer.STREET
    transform: Transform = Transform()
    active_layers: dict[str, bool] = field(default_factory=lambda: dict(CATEGORY_DEFAULTS))
    selected: SelectedEntity | None = None
    live_tracking: bool = True

    def is_visible(self, key: str) -> bool:
        return self.active_layers.get(key, CATEGORY_DEFAULTS.get(key, False))

    def to_dict(self) -> dict:
        return {
            "view_mode": self.view_mode.value,
            "base_layer": self.base_layer.value,
            "transform": self.transform.to_dict(),
            "active_layers": dict(self.active_layers),
            "selected": self.selected.to_dict() if self.selected else None,
            "live_tracking": self.live_tracking,
        }


def set_view_mode(state: ViewState, mode: ViewMode | str) -> ViewState:
    return replace(state, view_mode=ViewMode(mode))


def set_base_layer(state: ViewState, base: BaseLayer | str) -> ViewState:
    return replace(state, base_layer=BaseLayer(base))


def set_layer_visible(state: ViewState, key: str, visible: bool) -> ViewState:
    return replace(state, active_layers={**state.active_layers, key: bool(visible)})


def toggle_layer(state: ViewState, key: str) -> ViewState:
    return set_layer_visible(state, key, not state.is_visible(key))


def show_layers(state: ViewState, layer_ids: Iterable[str]) -> ViewState:
    """Mark freshly imported layers visible."""
    return replace(state, active_layers={**state.active_layers, **{lid: True for lid in layer_ids}})


def drop_layers(state: ViewState, keep: Iterable[str] = ()) -> ViewState:
    """Forget per-layer flags, keeping categories and the ids in ``keep``."""
    keep = set(keep) | set(CATEGORY_DEFAULTS)
    return replace(state, active_layers={k: v for k, v in state.active_layers.items() if k in keep})


def pan(state: ViewState, dx: float, dy: float) -> ViewState:
    t = state.transform
    return replace(state, transform=Transform(t.x + dx, t.y + dy, t.scale))


def zoom(state: ViewState, factor: float,
         min_zoom: float = MIN_ZOOM, max_zoom: float = MAX_ZOOM) -> ViewState:
    """Multiply the scale by ``factor``, clamped to [min_zoom, max_zoom]."""
    t = state.transform
    scale = min(max_zoom, max(min_zoom, t.scale * factor))
    return replace(state, transform=Transform(t.x, t.y, scale))


def zoom_in(state: ViewState, step: float = ZOOM_STEP, **bounds) -> ViewState:
    return zoom(state, step, **bounds)


def zoom_out(state: ViewState, step: float = ZOOM_STEP, **bounds) -> ViewState:
    return zoom(state, 1.0 / step, **bounds)


def wheel_zoom(state: ViewState, delta_y: float, step: float = ZOOM_STEP, **bounds) -> ViewState:
    """Wheel up (negative delta) zooms in, wheel down zooms out."""
    if delta_y == 0:
        return state
    return zoom_in(state, step, **bounds) if delta_y < 0 else zoom_out(state, step, **bounds)


def reset_transform(state: ViewState) -> ViewState:
    return replace(state, transform=Transform())


def select(state: ViewState, entity: Entity) -> ViewState:
    """Select ``entity``, replacing any previous selection."""
    return replace(state, selected=SelectedEntity(entity.kind, entity))


def clear_selection(state: ViewState) -> ViewState:
    return replace(state, selected=None)


def set_live_tracking(state: ViewState, enabled: bool) -> ViewState:
    return replace(state, live_tracking=bool(enabled))
