"""Reference-layer resolution — which layer is the road's alignment.

Priority for the active road:
  1. the layer the user designated, if it belongs to the active road
  2. the first layer whose name looks like a centerline
  3. the longest layer
  4. nothing (callers fall back to the default curve)
"""

from __future__ import annotations

import re
from typing import Iterable

from engine.mapping.route import RouteLayer

DEFAULT_PROJECT_LENGTH_KM = 15.0

CENTERLINE_PATTERN = re.compile(
    r"(?<![a-z])(?:rc|cl)(?![a-z])|cent(?:er|re)\s*line|alignment",
    re.IGNORECASE,
)


def is_centerline_name(name: str) -> bool:
    return CENTERLINE_PATTERN.search(name or "") is not None


def layers_for_road(layers: Iterable[RouteLayer], road_name: str | None) -> list[RouteLayer]:
    return [layer for layer in layers if road_name is not None and layer.road_name == road_name]


def resolve_reference(
    layers: Iterable[RouteLayer],
    active_road: str | None,
    selected_id: str | None = None,
) -> RouteLayer | None:
    """Pick the authoritative alignment for ``active_road``."""
    candidates = layers_for_road(layers, active_road)
    if not candidates:
        return None

    if selected_id is not None:
        for layer in candidates:
            if layer.id == selected_id:
                return layer

    for layer in candidates:
        if is_centerline_name(layer.name):
            return layer

    # max() keeps the first of equal-length layers
    return max(candidates, key=lambda layer: layer.total_length_km)


def project_length_km(
    reference: RouteLayer | None, default: float = DEFAULT_PROJECT_LENGTH_KM
) -> float:
    """Total project length in km from the reference layer, 2 decimals."""
    if reference is None:
        return default
    return round(reference.total_length_km, 2)
