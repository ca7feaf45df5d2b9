"""Configuration management using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "CORRIDOR"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Project length used when the active road has no imported layers (km)
    default_project_length_km: float = 15.0

    # Fallback alignment endpoints — straight-ish line drawn on the web map
    # when no reference layer exists.  Longitude bows by the wobble amplitude.
    fallback_start_lat: float = 27.7172
    fallback_start_lng: float = 85.3240
    fallback_end_lat: float = 27.6710
    fallback_end_lng: float = 85.4298
    fallback_wobble_deg: float = 0.01

    # Web map
    map_zoom_start: int = 13
    street_tile_url: str = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
    street_tile_attr: str = "&copy; OpenStreetMap contributors"
    satellite_tile_url: str = (
        "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}"
    )
    satellite_tile_attr: str = "Esri World Imagery"

    # Schematic canvas for imported layers (logical units)
    canvas_width: float = 900.0
    canvas_height: float = 400.0
    canvas_padding: float = 50.0

    # Schematic pan/zoom
    min_zoom: float = 0.5
    max_zoom: float = 5.0
    zoom_step: float = 1.2

    # Simulated GPS drift (percent of route length)
    gps_drift_enabled: bool = True
    gps_drift_interval: float = 1.0
    gps_drift_step: float = 0.5
    gps_drift_bound: float = 2.0

    # Overlays
    heat_map_buckets: int = 20
    km_marker_interval: float = 3.0
    layer_palette: list[str] = [
        "#3b82f6", "#ef4444", "#10b981", "#f59e0b",
        "#8b5cf6", "#ec4899", "#06b6d4", "#84cc16",
    ]

    # Upload limits
    route_file_extensions: list[str] = [".kml"]
    max_route_file_bytes: int = 20 * 1024 * 1024


settings = Settings()
