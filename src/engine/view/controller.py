"""OverlayController — keeps exactly one render surface attached.

SCHEMATIC and MAP are mutually exclusive. Switching detaches the surface
being left (dropping every handle it holds) before the other is attached,
so re-entering MAP always builds a fresh web map centred on the current
reference layer.
"""

from __future__ import annotations

from loguru import logger

from engine.view.scene import Scene
from engine.view.state import ViewMode
from engine.view.surfaces import FoliumSurface, MapSurface, SchematicSurface


class OverlayController:
    """Routes scenes to the surface matching the view mode."""

    def __init__(self, schematic: SchematicSurface, web_map: FoliumSurface) -> None:
        self.schematic = schematic
        self.web_map = web_map
        self._mode: ViewMode | None = None

    @property
    def mode(self) -> ViewMode | None:
        return self._mode

    def surface_for(self, mode: ViewMode) -> MapSurface:
        return self.web_map if mode is ViewMode.MAP else self.schematic

    @property
    def active_surface(self) -> MapSurface | None:
        return None if self._mode is None else self.surface_for(self._mode)

    def sync(self, scene: Scene) -> MapSurface:
        """Attach the right surface if needed and redraw its overlays."""
        mode = ViewMode(scene.view_mode)
        if mode is not self._mode:
            self._switch(mode, scene.center)
        surface = self.surface_for(mode)
        surface.update_overlays(scene)
        return surface

    def _switch(self, mode: ViewMode, center: tuple[float, float] | None) -> None:
        if self._mode is not None:
            self.surface_for(self._mode).detach()
        self.surface_for(mode).attach(center)
        logger.debug(f"View mode {self._mode.value if self._mode else 'none'} -> {mode.value}")
        self._mode = mode

    def close(self) -> None:
        self.schematic.detach()
        self.web_map.detach()
        self._mode = None
