"""Map views — view state, scene derivation, and render surfaces."""

from engine.view.controller import OverlayController
from engine.view.scene import Scene, build_scene
from engine.view.state import BaseLayer, SelectedEntity, Transform, ViewMode, ViewState
from engine.view.surfaces import FoliumSurface, MapSurface, SchematicSurface

__all__ = [
    "BaseLayer",
    "FoliumSurface",
    "MapSurface",
    "OverlayController",
    "SchematicSurface",
    "Scene",
    "SelectedEntity",
    "Transform",
    "ViewMode",
    "ViewState",
    "build_scene",
]
