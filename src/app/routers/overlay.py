"""Overlay API — view mode, pan/zoom, layer toggles, selection, rendering.

Every mutation returns the resulting view state so clients can redraw
without a second round-trip. Rendered surfaces are only served for the
view mode that is currently active.
"""

from __future__ import annotations

import asyncio
from typing import Any, Literal

from fastapi import APIRouter, Body, HTTPException, Request
from fastapi.responses import HTMLResponse, Response
from pydantic import BaseModel

from engine.tracking.entities import EntityKind
from engine.view.state import CATEGORY_DEFAULTS, BaseLayer, ViewMode

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

class ViewModeRequest(BaseModel):
    mode: ViewMode


class BaseLayerRequest(BaseModel):
    base_layer: BaseLayer


class VisibilityRequest(BaseModel):
    visible: bool


class ZoomRequest(BaseModel):
    """Zoom the schematic: button in/out, or a wheel event's deltaY."""
    action: Literal["in", "out", "wheel"] = "in"
    delta_y: float = 0.0


class PanRequest(BaseModel):
    dx: float
    dy: float


class SelectRequest(BaseModel):
    kind: EntityKind
    id: str


class LiveTrackingRequest(BaseModel):
    enabled: bool


# ---------------------------------------------------------------------------
# Project snapshot / metrics
# ---------------------------------------------------------------------------

@router.put("/project")
async def set_project(request: Request, project: dict[str, Any] = Body(...)):
    """Replace the project snapshot (vehicles, rfis, schedule, structures)."""
    session = _get_session(request)
    session.set_project(project)
    entities = session.entities()
    return {
        "vehicles": len(entities.vehicles),
        "rfis": len(entities.rfis),
        "work_sites": len(entities.work_sites),
        "structures": len(entities.structures),
    }


@router.get("/metrics")
async def get_metrics(request: Request):
    """Route length, active GPS units, open RFI alerts, view mode."""
    return _get_session(request).scene().metrics


@router.get("/state")
async def get_state(request: Request):
    return _get_session(request).state.to_dict()


# ---------------------------------------------------------------------------
# View mode / base layer
# ---------------------------------------------------------------------------

@router.put("/view-mode")
async def set_view_mode(body: ViewModeRequest, request: Request):
    return _get_session(request).set_view_mode(body.mode).to_dict()


@router.put("/base-layer")
async def set_base_layer(body: BaseLayerRequest, request: Request):
    return _get_session(request).set_base_layer(body.base_layer).to_dict()


# ---------------------------------------------------------------------------
# Layer toggles
# ---------------------------------------------------------------------------

@router.put("/layers/{layer_id}/visibility")
async def set_layer_visibility(layer_id: str, body: VisibilityRequest, request: Request):
    """Show or hide one imported layer."""
    session = _get_session(request)
    if session.registry.get_layer(layer_id) is None:
        raise HTTPException(status_code=404, detail=f"Layer not found: {layer_id}")
    return session.set_layer_visible(layer_id, body.visible).to_dict()


@router.put("/categories/{name}")
async def set_category_visibility(name: str, body: VisibilityRequest, request: Request):
    """Show or hide an overlay category (boundaries, heatMap, rfis, ...)."""
    session = _get_session(request)
    if name not in CATEGORY_DEFAULTS:
        raise HTTPException(
            status_code=422,
            detail=f"Unknown category '{name}'; expected one of {', '.join(CATEGORY_DEFAULTS)}",
        )
    return session.set_layer_visible(name, body.visible).to_dict()


# ---------------------------------------------------------------------------
# Pan / zoom (schematic)
# ---------------------------------------------------------------------------

@router.post("/zoom")
async def zoom(body: ZoomRequest, request: Request):
    session = _get_session(request)
    if body.action == "in":
        state = session.zoom_in()
    elif body.action == "out":
        state = session.zoom_out()
    else:
        state = session.wheel(body.delta_y)
    return state.to_dict()


@router.post("/zoom/reset")
async def reset_zoom(request: Request):
    return _get_session(request).reset_zoom().to_dict()


@router.post("/pan")
async def pan(body: PanRequest, request: Request):
    return _get_session(request).pan(body.dx, body.dy).to_dict()


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

@router.post("/select")
async def select_entity(body: SelectRequest, request: Request):
    """Select a vehicle, RFI, work site or structure by id."""
    session = _get_session(request)
    try:
        state = session.select_entity(body.kind, body.id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"{body.kind.value} not found: {body.id}")
    return state.to_dict()


@router.delete("/select")
async def clear_selection(request: Request):
    return _get_session(request).clear_selection().to_dict()


# ---------------------------------------------------------------------------
# Live tracking
# ---------------------------------------------------------------------------

@router.put("/live-tracking")
async def set_live_tracking(body: LiveTrackingRequest, request: Request):
    """Start or stop the simulated GPS drift."""
    session = _get_session(request)
    # Stopping joins the drift thread.
    state = await asyncio.to_thread(session.set_live_tracking, body.enabled)
    return {**state.to_dict(), "drift_running": session.drift.running}


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

@router.get("/scene")
async def get_scene(request: Request):
    """Everything the current render pass would draw, as JSON."""
    return _get_session(request).scene().to_dict()


def _render_for(request: Request, mode: ViewMode) -> str:
    session = _get_session(request)
    if session.state.view_mode is not mode:
        raise HTTPException(
            status_code=409,
            detail=f"View mode is {session.state.view_mode.value}, not {mode.value}",
        )
    return session.render().render()


@router.get("/schematic.svg")
async def schematic_svg(request: Request):
    return Response(content=_render_for(request, ViewMode.SCHEMATIC), media_type="image/svg+xml")


@router.get("/map.html", response_class=HTMLResponse)
async def map_html(request: Request):
    return HTMLResponse(content=_render_for(request, ViewMode.MAP))
