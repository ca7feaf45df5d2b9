"""CORRIDOR - construction project route mapping.

Main FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from loguru import logger

from app.config import Settings, settings
from app.routers.overlay import router as overlay_router
from app.routers.routes import router as routes_router


# ---------------------------------------------------------------------------
# Subsystem startup helpers
# ---------------------------------------------------------------------------

def create_map_session(cfg: Settings = settings):
    """Build a MapSession wired from settings. Returns the session."""
    from engine.mapping.builder import Canvas
    from engine.mapping.projector import FallbackRoute
    from engine.mapping.registry import RouteRegistry
    from engine.mapping.route import GeoPoint
    from engine.session import MapSession
    from engine.view.controller import OverlayController
    from engine.view.state import BaseLayer
    from engine.view.surfaces import FoliumSurface, SchematicSurface

    fallback = FallbackRoute(
        start=GeoPoint(cfg.fallback_start_lat, cfg.fallback_start_lng),
        end=GeoPoint(cfg.fallback_end_lat, cfg.fallback_end_lng),
        wobble_deg=cfg.fallback_wobble_deg,
    )
    registry = RouteRegistry(
        palette=tuple(cfg.layer_palette),
        canvas=Canvas(cfg.canvas_width, cfg.canvas_height, cfg.canvas_padding),
        default_length_km=cfg.default_project_length_km,
    )
    web_map = FoliumSurface(
        default_center=fallback.midpoint(),
        zoom_start=cfg.map_zoom_start,
        tiles={
            BaseLayer.STREET: (cfg.street_tile_url, cfg.street_tile_attr),
            BaseLayer.SATELLITE: (cfg.satellite_tile_url, cfg.satellite_tile_attr),
        },
    )
    session = MapSession(
        registry=registry,
        fallback=fallback,
        controller=OverlayController(SchematicSurface(), web_map),
        min_zoom=cfg.min_zoom,
        max_zoom=cfg.max_zoom,
        zoom_step=cfg.zoom_step,
        heat_buckets=cfg.heat_map_buckets,
        marker_interval=cfg.km_marker_interval,
        drift_interval=cfg.gps_drift_interval,
        drift_step=cfg.gps_drift_step,
        drift_bound=cfg.gps_drift_bound,
    )
    if not cfg.gps_drift_enabled:
        session.set_live_tracking(False)
    return session


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("=" * 60)
    logger.info(f"  {settings.app_name} v0.1.0 - INITIALIZING")
    logger.info("=" * 60)

    session = create_map_session(settings)
    app.state.map_session = session
    session.start()
    logger.info(
        f"Map session ready (default length {settings.default_project_length_km:.2f} km, "
        f"live tracking {'on' if session.state.live_tracking else 'off'})"
    )

    logger.info("=" * 60)
    logger.info(f"  {settings.app_name} ONLINE")
    logger.info("=" * 60)

    yield

    session.close()
    app.state.map_session = None
    logger.info(f"{settings.app_name} shutting down...")


# Create FastAPI app
app = FastAPI(
    title="CORRIDOR",
    description="Construction Project Route Mapping",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(routes_router)
app.include_router(overlay_router)


@app.get("/", response_class=HTMLResponse)
async def root(request: Request):
    """Serve the current map surface, or a placeholder before startup."""
    session = getattr(request.app.state, "map_session", None)
    if session is None:
        return HTMLResponse(
            content="""
            <html>
                <head><title>CORRIDOR</title></head>
                <body style="background: #0f172a; color: #94a3b8; font-family: monospace;">
                    <h1>CORRIDOR v0.1.0</h1>
                    <p>Map session not started.</p>
                </body>
            </html>
            """
        )
    surface = session.render()
    return HTMLResponse(content=surface.render())


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "operational",
        "version": "0.1.0",
        "system": "CORRIDOR",
    }


def run():
    """Serve the app with uvicorn on the configured host and port."""
    import uvicorn

    uvicorn.run("app.main:app", host=settings.host, port=settings.port, reload=settings.debug)
