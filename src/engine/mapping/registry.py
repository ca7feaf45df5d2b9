"""RouteRegistry — arena of imported route layers plus the road context.

Layers live in a flat id -> RouteLayer map in arrival order. Roads are
not stored; they are the distinct ``road_name`` values, grouped on
demand. The context keeps the active road and at most one designated
reference layer id per road.

Imports are additive and isolated per file: a file either commits all
of its layers or none of them.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from loguru import logger

from engine.mapping.builder import DEFAULT_PALETTE, Canvas, build_layers
from engine.mapping.errors import ConfirmationRequired, RouteImportError
from engine.mapping.parsers.kml import PolylineGroup, parse_kml_routes
from engine.mapping.resolver import (
    DEFAULT_PROJECT_LENGTH_KM,
    layers_for_road,
    project_length_km,
    resolve_reference,
)
from engine.mapping.route import RouteLayer


@dataclass
class FileImportResult:
    """Outcome of importing one file."""

    filename: str
    layers: list[RouteLayer] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "ok": self.ok,
            "error": self.error,
            "layers": [layer.summary() for layer in self.layers],
        }


def decode_route_file(filename: str, content: str | bytes) -> str:
    if isinstance(content, str):
        return content
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise RouteImportError(f"{filename} is not UTF-8 text: {e}", filename) from e


def parse_route_file(filename: str, content: str | bytes) -> list[PolylineGroup]:
    """Decode and parse one route file. Raises RouteImportError."""
    return parse_kml_routes(decode_route_file(filename, content), filename)


class RouteRegistry:
    """Registry of imported route layers and the active road context."""

    def __init__(
        self,
        palette: tuple[str, ...] = DEFAULT_PALETTE,
        canvas: Canvas | None = None,
        default_length_km: float = DEFAULT_PROJECT_LENGTH_KM,
    ) -> None:
        self._layers: dict[str, RouteLayer] = {}
        self._reference_ids: dict[str, str] = {}
        self._lock = threading.Lock()
        self._palette = tuple(palette) or DEFAULT_PALETTE
        self._canvas = canvas or Canvas()
        self.default_length_km = default_length_km
        self.active_road: str | None = None

    # -- Layers -------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._layers)

    def get_layer(self, layer_id: str) -> RouteLayer | None:
        return self._layers.get(layer_id)

    def list_layers(self) -> list[RouteLayer]:
        return list(self._layers.values())

    def roads(self) -> dict[str, list[RouteLayer]]:
        """Layers grouped by road name, in first-import order."""
        grouped: dict[str, list[RouteLayer]] = {}
        for layer in self._layers.values():
            grouped.setdefault(layer.road_name, []).append(layer)
        return grouped

    def road_names(self) -> list[str]:
        return list(self.roads())

    def commit(self, groups: list[PolylineGroup], road_name: str, filename: str = "") -> list[RouteLayer]:
        """Build layers from parsed groups and append them atomically.

        Colours continue from the current registry size.
        """
        with self._lock:
            layers = build_layers(
                groups,
                road_name,
                color_offset=len(self._layers),
                palette=self._palette,
                canvas=self._canvas,
                source_file=filename,
            )
            for layer in layers:
                self._layers[layer.id] = layer
        logger.info(
            f"Route import: {len(layers)} layer(s) from {filename or 'input'} "
            f"committed to road '{road_name}'"
        )
        return layers

    def import_file(self, filename: str, content: str | bytes, road_name: str) -> FileImportResult:
        """Parse and commit one file. Errors are captured, not raised."""
        try:
            groups = parse_route_file(filename, content)
        except RouteImportError as e:
            logger.warning(f"Route import rejected {filename}: {e}")
            return FileImportResult(filename, error=str(e))
        return FileImportResult(filename, self.commit(groups, road_name, filename))

    def import_files(self, files: list[tuple[str, str | bytes]], road_name: str) -> list[FileImportResult]:
        """Import several files for one road; failures stay per file.

        Raises:
            ValueError: If ``road_name`` is blank.
        """
        road_name = require_road_name(road_name)
        results = [self.import_file(name, content, road_name) for name, content in files]
        if any(r.ok for r in results):
            self.active_road = road_name
        return results

    def clear(self, confirm: bool = False) -> int:
        """Empty the registry and reset reference selections.

        Raises:
            ConfirmationRequired: Unless ``confirm`` is True. Nothing changes.
        """
        if not confirm:
            raise ConfirmationRequired("Clearing all route layers requires confirmation")
        with self._lock:
            count = len(self._layers)
            self._layers.clear()
            self._reference_ids.clear()
        logger.info(f"Route registry cleared ({count} layers removed)")
        return count

    # -- Road context ---------------------------------------------------------

    def set_active_road(self, road_name: str | None) -> None:
        self.active_road = road_name

    def select_reference(self, layer_id: str) -> RouteLayer:
        """Designate a layer as its road's reference alignment.

        Raises:
            KeyError: If the layer_id is not found.
        """
        layer = self._layers.get(layer_id)
        if layer is None:
            raise KeyError(f"Layer not found: {layer_id}")
        self._reference_ids[layer.road_name] = layer.id
        return layer

    def clear_reference(self, road_name: str | None = None) -> None:
        self._reference_ids.pop(road_name if road_name is not None else self.active_road, None)

    def reference_selection(self, road_name: str | None = None) -> str | None:
        road = road_name if road_name is not None else self.active_road
        if road is None:
            return None
        return self._reference_ids.get(road)

    def active_layers(self) -> list[RouteLayer]:
        return layers_for_road(self._layers.values(), self.active_road)

    def resolve_reference(self) -> RouteLayer | None:
        return resolve_reference(
            self._layers.values(), self.active_road, self.reference_selection()
        )

    def project_length(self) -> float:
        return project_length_km(self.resolve_reference(), self.default_length_km)


def require_road_name(road_name: str | None) -> str:
    """Return the stripped road name or raise ValueError if blank."""
    name = (road_name or "").strip()
    if not name:
        raise ValueError("Road name is required before importing route files")
    return name
