"""Route mapping — import road geometry and project chainages onto it.

Reads KML line geometry into chainage-indexed RouteLayers grouped by road,
resolves the reference alignment of the active road, and converts
chainages into schematic canvas or lat/lng positions.
"""

from engine.mapping.errors import ConfirmationRequired, RouteImportError
from engine.mapping.projector import ChainageProjector, SchematicPosition
from engine.mapping.registry import FileImportResult, RouteRegistry
from engine.mapping.route import Bounds, GeoPoint, ProjectedPoint, RouteLayer, RouteSegment

__all__ = [
    "Bounds",
    "ChainageProjector",
    "ConfirmationRequired",
    "FileImportResult",
    "GeoPoint",
    "ProjectedPoint",
    "RouteImportError",
    "RouteLayer",
    "RouteRegistry",
    "RouteSegment",
    "SchematicPosition",
]
