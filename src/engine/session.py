"""MapSession — one map view's state, wiring registry, drift, and surfaces.

The session is the single owner of the ViewState and the only writer of
the route registry. It reads the external project snapshot on every
render pass and never mutates it; ``on_project_update`` is kept only so
callers embedding the map can hand edits back to the CRUD layer.

Lifecycle:
    start()  -> starts GPS drift if live tracking is on
    close()  -> stops drift and detaches every surface
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable

from loguru import logger

from engine.mapping.errors import RouteImportError
from engine.mapping.projector import DEFAULT_FALLBACK, ChainageProjector, FallbackRoute
from engine.mapping.registry import (
    FileImportResult,
    RouteRegistry,
    parse_route_file,
    require_road_name,
)
from engine.mapping.route import RouteLayer
from engine.tracking.drift import GpsDriftSimulator
from engine.tracking.entities import Entity, EntityKind, TrackedEntities
from engine.view import state as view
from engine.view.controller import OverlayController
from engine.view.scene import HEAT_BUCKETS, KM_MARKER_INTERVAL, Scene, build_scene
from engine.view.state import BaseLayer, ViewMode, ViewState
from engine.view.surfaces import FoliumSurface, MapSurface, SchematicSurface


class MapSession:
    """Owns the map subsystem's state for one view."""

    def __init__(
        self,
        registry: RouteRegistry | None = None,
        fallback: FallbackRoute = DEFAULT_FALLBACK,
        drift: GpsDriftSimulator | None = None,
        controller: OverlayController | None = None,
        on_project_update: Callable[[Any], None] | None = None,
        min_zoom: float = view.MIN_ZOOM,
        max_zoom: float = view.MAX_ZOOM,
        zoom_step: float = view.ZOOM_STEP,
        heat_buckets: int = HEAT_BUCKETS,
        marker_interval: float = KM_MARKER_INTERVAL,
        drift_interval: float = 1.0,
        drift_step: float = 0.5,
        drift_bound: float = 2.0,
    ) -> None:
        self.registry = registry if registry is not None else RouteRegistry()
        self.fallback = fallback
        if drift is None:
            drift = GpsDriftSimulator(
                self.active_vehicle_ids, interval=drift_interval, step=drift_step, bound=drift_bound
            )
        self.drift = drift
        if controller is None:
            controller = OverlayController(SchematicSurface(), FoliumSurface(default_center=fallback.midpoint()))
        self.controller = controller
        self.on_project_update = on_project_update
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.zoom_step = zoom_step
        self.heat_buckets = heat_buckets
        self.marker_interval = marker_interval
        self._state = ViewState()
        self._project: Any = None
        self._lock = threading.Lock()

    # -- State ----------------------------------------------------------------

    @property
    def state(self) -> ViewState:
        return self._state

    def _apply(self, update: Callable[..., ViewState], *args, **kwargs) -> ViewState:
        with self._lock:
            self._state = update(self._state, *args, **kwargs)
            return self._state

    # -- Project snapshot -----------------------------------------------------

    @property
    def project(self) -> Any:
        return self._project

    def set_project(self, project: Any) -> None:
        """Replace the project snapshot read by the next render pass."""
        self._project = project

    def entities(self) -> TrackedEntities:
        return TrackedEntities.from_project(self._project)

    def active_vehicle_ids(self) -> list[str]:
        return [v.id for v in self.entities().vehicles]

    # -- Import / clear -------------------------------------------------------

    def _after_import(self, results: list[FileImportResult], road_name: str) -> None:
        new_ids = [layer.id for r in results for layer in r.layers]
        if not any(r.ok for r in results):
            return
        self.registry.set_active_road(road_name)
        self._apply(view.show_layers, new_ids)
        self._apply(view.set_view_mode, ViewMode.SCHEMATIC)

    def import_files(self, files: list[tuple[str, str | bytes]], road_name: str) -> list[FileImportResult]:
        """Import route files for ``road_name``; see RouteRegistry.import_files."""
        road = require_road_name(road_name)
        results = self.registry.import_files(files, road)
        self._after_import(results, road)
        return results

    async def import_files_async(
        self, files: list[tuple[str, str | bytes]], road_name: str
    ) -> list[FileImportResult]:
        """Parse files concurrently in worker threads; commit each on its own."""
        road = require_road_name(road_name)

        async def _one(filename: str, content: str | bytes) -> FileImportResult:
            try:
                groups = await asyncio.to_thread(parse_route_file, filename, content)
            except RouteImportError as e:
                logger.warning(f"Route import rejected {filename}: {e}")
                return FileImportResult(filename, error=str(e))
            return FileImportResult(filename, self.registry.commit(groups, road, filename))

        results = list(await asyncio.gather(*(_one(name, content) for name, content in files)))
        self._after_import(results, road)
        return results

    def clear_layers(self, confirm: bool = False) -> int:
        """Empty the registry. Raises ConfirmationRequired unless confirmed."""
        count = self.registry.clear(confirm=confirm)
        self._apply(view.drop_layers)
        return count

    # -- Road context -----------------------------------------------------------

    def set_active_road(self, road_name: str) -> None:
        if road_name not in self.registry.road_names():
            raise KeyError(f"Road not found: {road_name}")
        self.registry.set_active_road(road_name)

    def select_reference(self, layer_id: str) -> RouteLayer:
        return self.registry.select_reference(layer_id)

    def reference(self) -> RouteLayer | None:
        return self.registry.resolve_reference()

    def projector(self) -> ChainageProjector:
        return ChainageProjector(self.reference(), self.registry.project_length(), self.fallback)

    # -- View updates -----------------------------------------------------------

    def set_view_mode(self, mode: ViewMode | str) -> ViewState:
        return self._apply(view.set_view_mode, mode)

    def set_base_layer(self, base: BaseLayer | str) -> ViewState:
        return self._apply(view.set_base_layer, base)

    def set_layer_visible(self, key: str, visible: bool) -> ViewState:
        return self._apply(view.set_layer_visible, key, visible)

    def toggle_layer(self, key: str) -> ViewState:
        return self._apply(view.toggle_layer, key)

    def pan(self, dx: float, dy: float) -> ViewState:
        return self._apply(view.pan, dx, dy)

    def zoom_in(self) -> ViewState:
        return self._apply(view.zoom_in, self.zoom_step, min_zoom=self.min_zoom, max_zoom=self.max_zoom)

    def zoom_out(self) -> ViewState:
        return self._apply(view.zoom_out, self.zoom_step, min_zoom=self.min_zoom, max_zoom=self.max_zoom)

    def wheel(self, delta_y: float) -> ViewState:
        return self._apply(view.wheel_zoom, delta_y, self.zoom_step,
                           min_zoom=self.min_zoom, max_zoom=self.max_zoom)

    def reset_zoom(self) -> ViewState:
        return self._apply(view.reset_transform)

    def find_entity(self, kind: EntityKind | str, entity_id: str) -> Entity:
        entity = self.entities().find(kind, entity_id)
        if entity is None:
            raise KeyError(f"{EntityKind(kind).value} not found: {entity_id}")
        return entity

    def select_entity(self, kind: EntityKind | str, entity_id: str) -> ViewState:
        return self._apply(view.select, self.find_entity(kind, entity_id))

    def clear_selection(self) -> ViewState:
        return self._apply(view.clear_selection)

    def set_live_tracking(self, enabled: bool) -> ViewState:
        state = self._apply(view.set_live_tracking, enabled)
        if enabled:
            self.drift.start()
        else:
            self.drift.stop()
        return state

    # -- Rendering --------------------------------------------------------------

    def scene(self) -> Scene:
        return build_scene(
            self.registry,
            self._state,
            self.entities(),
            self.drift.offsets(),
            self.fallback,
            self.heat_buckets,
            self.marker_interval,
        )

    def render(self) -> MapSurface:
        """Redraw the surface for the current view mode and return it."""
        return self.controller.sync(self.scene())

    # -- Lifecycle --------------------------------------------------------------

    def start(self) -> None:
        if self._state.live_tracking:
            self.drift.start()

    def close(self) -> None:
        self.drift.stop()
        self.controller.close()
        logger.info("Map session closed")
