"""Export RouteLayers to GeoJSON dicts (RFC 7946).

GeoJSON coordinates are [lng, lat]; the route model stores (lat, lng),
so every vertex is swapped on the way out.
"""

from __future__ import annotations

from engine.mapping.route import RouteLayer, RouteSegment


def export_geojson(layer: RouteLayer) -> dict:
    """Export a RouteLayer to a GeoJSON FeatureCollection dict.

    One LineString feature per segment, carrying its chainage range.
    """
    return {
        "type": "FeatureCollection",
        "features": [
            _segment_to_geojson(layer, idx, segment)
            for idx, segment in enumerate(layer.segments)
        ],
    }


def export_road_geojson(layers: list[RouteLayer]) -> dict:
    """Merge several layers into one FeatureCollection."""
    features = []
    for layer in layers:
        features.extend(export_geojson(layer)["features"])
    return {"type": "FeatureCollection", "features": features}


def _segment_to_geojson(layer: RouteLayer, idx: int, segment: RouteSegment) -> dict:
    return {
        "type": "Feature",
        "id": f"{layer.id}-{idx}",
        "geometry": {
            "type": "LineString",
            "coordinates": [[p.lng, p.lat] for p in segment.points],
        },
        "properties": {
            "layer_id": layer.id,
            "name": layer.name,
            "road_name": layer.road_name,
            "color": layer.color,
            "segment": idx,
            "start_chainage_km": segment.start_chainage_km,
            "end_chainage_km": segment.end_chainage_km,
        },
    }
