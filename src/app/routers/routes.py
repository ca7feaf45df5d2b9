"""Route layers API — KML import, layer registry, road context, projection.

Imported layers live in the MapSession's registry for the process
lifetime. Each upload names the road its files belong to; files are
parsed concurrently and fail independently.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, Request, UploadFile
from loguru import logger
from pydantic import BaseModel

from app.config import settings
from engine.mapping.errors import ConfirmationRequired
from engine.mapping.exporters.geojson import export_geojson, export_road_geojson
from engine.mapping.geometry import format_chainage
from engine.mapping.registry import FileImportResult

router = APIRouter(prefix="/api/map", tags=["map"])


def _get_session(request: Request):
    """Get the map session from app state, or raise 503."""
    session = getattr(request.app.state, "map_session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="Map session not available")
    return session


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class ActiveRoadRequest(BaseModel):
    road_name: str


class ReferenceRequest(BaseModel):
    """Designate a layer as its road's reference alignment (null clears)."""
    layer_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

def _rejected(filename: str, content: bytes) -> Optional[str]:
    suffix = Path(filename).suffix.lower()
    if suffix not in settings.route_file_extensions:
        return f"Unsupported file type '{suffix or filename}'; expected {', '.join(settings.route_file_extensions)}"
    if len(content) > settings.max_route_file_bytes:
        return f"File exceeds {settings.max_route_file_bytes} bytes"
    return None


@router.post("/import")
async def import_routes(
    request: Request,
    road_name: str = Form(...),
    files: list[UploadFile] = File(...),
):
    """Import one or more KML files as layers of ``road_name``."""
    session = _get_session(request)
    road = road_name.strip()
    if not road:
        raise HTTPException(status_code=400, detail="Road name is required")

    contents = await asyncio.gather(*(f.read() for f in files))
    results: list[Optional[FileImportResult]] = []
    accepted: list[tuple[str, bytes]] = []
    for upload, content in zip(files, contents):
        filename = upload.filename or "upload"
        reason = _rejected(filename, content)
        if reason is not None:
            logger.warning(f"Route upload rejected {filename}: {reason}")
            results.append(FileImportResult(filename, error=reason))
        else:
            results.append(None)
            accepted.append((filename, content))

    imported = iter(await session.import_files_async(accepted, road) if accepted else [])
    results = [r if r is not None else next(imported) for r in results]

    return {
        "road_name": road,
        "results": [r.to_dict() for r in results],
        "imported": sum(len(r.layers) for r in results),
        "failed": sum(1 for r in results if not r.ok),
    }


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------

@router.get("/layers")
async def list_layers(request: Request, road: Optional[str] = None):
    """List imported layers, optionally for one road."""
    session = _get_session(request)
    layers = session.registry.list_layers()
    if road is not None:
        layers = [layer for layer in layers if layer.road_name == road]
    return [
        {**layer.summary(), "visible": session.state.is_visible(layer.id)}
        for layer in layers
    ]


@router.get("/roads")
async def list_roads(request: Request):
    """Distinct road names with their layer ids and the active road."""
    session = _get_session(request)
    registry = session.registry
    return {
        "active_road": registry.active_road,
        "roads": [
            {
                "name": name,
                "layer_ids": [layer.id for layer in layers],
                "reference_id": registry.reference_selection(name),
            }
            for name, layers in registry.roads().items()
        ],
    }


@router.get("/layers/{layer_id}/geojson")
async def layer_geojson(layer_id: str, request: Request):
    """Export one layer as a GeoJSON FeatureCollection."""
    session = _get_session(request)
    layer = session.registry.get_layer(layer_id)
    if layer is None:
        raise HTTPException(status_code=404, detail=f"Layer not found: {layer_id}")
    return export_geojson(layer)


@router.delete("/layers")
async def clear_layers(request: Request, confirm: bool = False):
    """Remove every imported layer. Requires ?confirm=true."""
    session = _get_session(request)
    try:
        removed = session.clear_layers(confirm=confirm)
    except ConfirmationRequired as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"removed": removed}


# ---------------------------------------------------------------------------
# Road context
# ---------------------------------------------------------------------------

@router.put("/roads/active")
async def set_active_road(body: ActiveRoadRequest, request: Request):
    """Switch the road whose layers drive projection."""
    session = _get_session(request)
    try:
        session.set_active_road(body.road_name)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Road not found: {body.road_name}")
    return await get_reference(request)


@router.put("/reference")
async def set_reference(body: ReferenceRequest, request: Request):
    """Select the reference layer, or clear the active road's selection."""
    session = _get_session(request)
    if body.layer_id is None:
        session.registry.clear_reference()
    else:
        try:
            session.select_reference(body.layer_id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Layer not found: {body.layer_id}")
    return await get_reference(request)


@router.get("/reference")
async def get_reference(request: Request):
    """Resolved reference layer and the project length it implies."""
    session = _get_session(request)
    reference = session.reference()
    return {
        "active_road": session.registry.active_road,
        "selected_id": session.registry.reference_selection(),
        "reference": reference.summary() if reference else None,
        "project_length_km": session.registry.project_length(),
    }


@router.get("/project-chainage")
async def project_chainage(
    request: Request,
    chainage: str = Query(..., description="Chainage as 'K+MMM' or decimal km"),
    offset: float = Query(0.0, description="Offset as a percent of route length"),
):
    """Position of a chainage on the schematic and on the map."""
    session = _get_session(request)
    projector = session.projector()
    pos = projector.schematic(chainage, offset)
    lat, lng = projector.geo(chainage, offset)
    return {
        "chainage": format_chainage(pos.km),
        "km": pos.km,
        "schematic": {"x": pos.x, "y": pos.y},
        "geo": {"lat": lat, "lng": lng},
        "reference_id": projector.reference.id if projector.has_reference else None,
        "project_length_km": projector.total_length_km,
    }


@router.get("/roads/{road_name}/geojson")
async def road_geojson(road_name: str, request: Request):
    """Export every layer of one road as a single FeatureCollection."""
    session = _get_session(request)
    layers = session.registry.roads().get(road_name)
    if not layers:
        raise HTTPException(status_code=404, detail=f"Road not found: {road_name}")
    return export_road_geojson(layers)
