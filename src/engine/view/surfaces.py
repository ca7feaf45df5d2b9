"""Render surfaces — where a Scene gets drawn.

Two implementations share the MapSurface interface:

  SchematicSurface  SVG document on a fixed 1000x500 canvas, pan/zoom via
                    a single affine transform on the root group.
  FoliumSurface     Leaflet web map built with folium; street or satellite
                    tiles plus named overlay groups redrawn on every update.

The mapping core never imports folium; only this module does.
"""

from __future__ import annotations

import html
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod

import folium
from loguru import logger

from engine.tracking.entities import EntityKind
from engine.view.scene import Placement, Scene
from engine.view.state import BaseLayer

SCHEMATIC_WIDTH = 1000
SCHEMATIC_HEIGHT = 500

ROAD_COLOR = "#1e293b"
STRIPING_COLOR = "#fbbf24"
MARKER_TEXT_COLOR = "#94a3b8"

DEFAULT_TILES = {
    BaseLayer.STREET: (
        "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png",
        "&copy; OpenStreetMap contributors",
    ),
    BaseLayer.SATELLITE: (
        "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}",
        "Esri World Imagery",
    ),
}


class MapSurface(ABC):
    """A drawing target for scenes.

    Lifecycle: attach() -> update_overlays()* -> detach(). A detached
    surface holds no rendering handles; attaching again starts fresh.
    """

    @property
    @abstractmethod
    def attached(self) -> bool:
        """True between attach() and detach()."""

    @abstractmethod
    def attach(self, center: tuple[float, float] | None = None) -> None:
        """Create rendering state, optionally centred on (lat, lng)."""

    @abstractmethod
    def detach(self) -> None:
        """Release every handle created since attach()."""

    @abstractmethod
    def update_overlays(self, scene: Scene) -> None:
        """Redraw all overlays from ``scene``."""

    @abstractmethod
    def render(self) -> str:
        """Serialized output of the last update (SVG or HTML)."""


# ---------------------------------------------------------------------------
# Schematic (SVG)
# ---------------------------------------------------------------------------

def _fmt(v: float) -> str:
    return f"{v:.2f}"


class SchematicSurface(MapSurface):
    """Vector schematic of the route drawn as an SVG document."""

    def __init__(self) -> None:
        self._attached = False
        self._document: str = ""
        self.element_count = 0

    @property
    def attached(self) -> bool:
        return self._attached

    def attach(self, center: tuple[float, float] | None = None) -> None:
        self._attached = True

    def detach(self) -> None:
        self._attached = False
        self._document = ""
        self.element_count = 0

    def render(self) -> str:
        return self._document

    def update_overlays(self, scene: Scene) -> None:
        if not self._attached:
            raise RuntimeError("Schematic surface is not attached")
        svg = ET.Element("svg", {
            "xmlns": "http://www.w3.org/2000/svg",
            "viewBox": f"0 0 {SCHEMATIC_WIDTH} {SCHEMATIC_HEIGHT}",
        })
        ET.SubElement(svg, "rect", {
            "width": str(SCHEMATIC_WIDTH), "height": str(SCHEMATIC_HEIGHT), "fill": "#0f172a",
        })
        t = scene.transform
        root = ET.SubElement(svg, "g", {
            "id": "viewport",
            "transform": f"translate({_fmt(t.get('x', 0.0))} {_fmt(t.get('y', 0.0))}) "
                         f"scale({t.get('scale', 1.0):.4f})",
        })

        if scene.show_right_of_way:
            ET.SubElement(root, "path", {
                "class": "right-of-way", "d": scene.alignment_path, "fill": "none",
                "stroke": "#cbd5e1", "stroke-width": "60", "stroke-opacity": "0.1",
            })

        for band in scene.heat_bands:
            ET.SubElement(root, "line", {
                "class": f"heat-{band.level}",
                "x1": _fmt(band.start.x), "y1": _fmt(band.start.y),
                "x2": _fmt(band.end.x), "y2": _fmt(band.end.y),
                "stroke": band.color, "stroke-width": "35", "stroke-linecap": "round",
            })

        if scene.show_alignment and scene.reference_id is None:
            ET.SubElement(root, "path", {
                "class": "alignment", "d": scene.alignment_path, "fill": "none",
                "stroke": ROAD_COLOR, "stroke-width": "14", "stroke-linecap": "round",
            })
            ET.SubElement(root, "path", {
                "class": "striping", "d": scene.alignment_path, "fill": "none",
                "stroke": STRIPING_COLOR, "stroke-width": "2", "stroke-dasharray": "8 8",
                "stroke-opacity": "0.8",
            })

        for style in scene.routes:
            if style.casing:
                ET.SubElement(root, "path", {
                    "class": "route-casing", "d": style.layer.path, "fill": "none",
                    "stroke": "#ffffff", "stroke-width": _fmt(style.weight + 4),
                    "stroke-linecap": "round", "stroke-linejoin": "round",
                })
            attrs = {
                "class": "route", "data-layer-id": style.layer.id, "d": style.layer.path,
                "fill": "none", "stroke": style.layer.color, "stroke-width": _fmt(style.weight),
                "stroke-opacity": f"{style.opacity:.2f}",
                "stroke-linecap": "round", "stroke-linejoin": "round",
            }
            if style.dashed:
                attrs["stroke-dasharray"] = "6 6"
            ET.SubElement(root, "path", attrs)

        for marker in scene.km_markers:
            g = ET.SubElement(root, "g", {"class": "km-marker"})
            ET.SubElement(g, "circle", {
                "cx": _fmt(marker.position.x), "cy": _fmt(marker.position.y), "r": "3",
                "fill": "#64748b", "stroke": "#0f172a",
            })
            label = ET.SubElement(g, "text", {
                "x": _fmt(marker.position.x), "y": _fmt(marker.position.y + 20),
                "fill": MARKER_TEXT_COLOR, "font-size": "9", "text-anchor": "middle",
                "font-family": "monospace",
            })
            label.text = marker.label

        for kind in (EntityKind.WORKSITE, EntityKind.STRUCTURE, EntityKind.VEHICLE, EntityKind.RFI):
            for placement in scene.of_kind(kind):
                self._draw_placement(root, placement)

        self._document = ET.tostring(svg, encoding="unicode")
        self.element_count = sum(1 for _ in svg.iter())

    def _draw_placement(self, parent: ET.Element, p: Placement) -> None:
        g = ET.SubElement(parent, "g", {
            "class": f"entity {p.kind.value.lower()}" + (" selected" if p.selected else ""),
            "data-kind": p.kind.value,
            "data-id": p.id,
            "transform": f"translate({_fmt(p.x)} {_fmt(p.y)})",
        })
        title = ET.SubElement(g, "title")
        title.text = p.label

        if p.kind is EntityKind.WORKSITE:
            r = "30" if p.selected else "25"
            ET.SubElement(g, "circle", {"r": r, "fill": p.color, "fill-opacity": "0.3"})
            if p.selected:
                ET.SubElement(g, "circle", {"r": r, "fill": "none", "stroke": "#34d399", "stroke-width": "2"})
        elif p.kind is EntityKind.VEHICLE:
            r = "16" if p.selected else "12"
            ET.SubElement(g, "circle", {"r": r, "fill": p.color, "fill-opacity": "0.3"})
            ET.SubElement(g, "circle", {"r": "7", "fill": p.color, "stroke": "#ffffff", "stroke-width": "1.5"})
        elif p.kind is EntityKind.RFI:
            ET.SubElement(g, "path", {
                "d": "M0,-12 L0,-26 L-8,-34 L8,-34 L0,-26 Z",
                "fill": "#b91c1c" if p.selected else p.color, "stroke": "#7f1d1d",
            })
            ET.SubElement(g, "circle", {
                "cy": "-36", "r": "6" if p.selected else "4",
                "fill": p.color, "stroke": "#ffffff", "stroke-width": "1.5",
            })
        else:
            ET.SubElement(g, "rect", {
                "x": "-6", "y": "-6", "width": "12", "height": "12",
                "fill": p.color, "stroke": "#ffffff" if p.selected else "#0f172a",
                "stroke-width": "2" if p.selected else "1",
            })


# ---------------------------------------------------------------------------
# Web map (folium / Leaflet)
# ---------------------------------------------------------------------------

OVERLAY_GROUPS = ("routes", "workSites", "structures", "vehicles", "rfis")

_GROUP_KINDS = {
    "vehicles": EntityKind.VEHICLE,
    "rfis": EntityKind.RFI,
    "workSites": EntityKind.WORKSITE,
    "structures": EntityKind.STRUCTURE,
}


def _popup_html(p: Placement) -> str:
    rows = "".join(
        f"<tr><th>{html.escape(str(k))}</th><td>{html.escape(str(v))}</td></tr>"
        for k, v in p.fields.items()
    )
    return f"<b>{html.escape(p.label)}</b><table>{rows}</table>"


class FoliumSurface(MapSurface):
    """Interactive Leaflet map; owns one folium.Map while attached, rebuilt on every draw."""

    def __init__(
        self,
        default_center: tuple[float, float],
        zoom_start: int = 13,
        tiles: dict[BaseLayer, tuple[str, str]] | None = None,
        base_layer: BaseLayer = BaseLayer.STREET,
    ) -> None:
        self.default_center = default_center
        self.zoom_start = zoom_start
        self._tiles = dict(tiles or DEFAULT_TILES)
        self.base_layer = base_layer
        self._map: folium.Map | None = None
        self._scene: Scene | None = None
        self._groups: dict[str, folium.FeatureGroup] = {}
        self.center: tuple[float, float] | None = None

    @property
    def attached(self) -> bool:
        return self._map is not None

    @property
    def map(self) -> folium.Map | None:
        return self._map

    @property
    def groups(self) -> dict[str, folium.FeatureGroup]:
        return dict(self._groups)

    def attach(self, center: tuple[float, float] | None = None) -> None:
        if self._map is not None:
            self.detach()
        self.center = center or self.default_center
        self._scene = None
        self._redraw()
        logger.info(f"Web map attached at {self.center[0]:.5f}, {self.center[1]:.5f}")

    def detach(self) -> None:
        if self._map is None:
            return
        self._groups.clear()
        self._scene = None
        self._map = None
        self.center = None
        logger.info("Web map detached")

    def set_base_layer(self, base: BaseLayer) -> None:
        base = BaseLayer(base)
        changed = base is not self.base_layer
        self.base_layer = base
        if self._map is not None and changed:
            self._redraw()

    def _new_map(self) -> folium.Map:
        m = folium.Map(
            location=list(self.center),
            zoom_start=self.zoom_start,
            tiles=None,
            control_scale=True,
        )
        url, attr = self._tiles[self.base_layer]
        folium.TileLayer(tiles=url, attr=attr, name=self.base_layer.value.title()).add_to(m)
        return m

    def _redraw(self) -> None:
        """Build a fresh map with the current tiles and the last scene's overlays."""
        self._map = self._new_map()
        self._groups = {}
        scene = self._scene
        if scene is None:
            return
        for name in OVERLAY_GROUPS:
            group = folium.FeatureGroup(name=name)
            if name == "routes":
                self._draw_routes(group, scene)
            else:
                for p in scene.of_kind(_GROUP_KINDS[name]):
                    self._draw_placement(group, p)
            group.add_to(self._map)
            self._groups[name] = group

    def render(self) -> str:
        if self._map is None:
            return ""
        return self._map.get_root().render()

    def update_overlays(self, scene: Scene) -> None:
        if self._map is None:
            raise RuntimeError("Web map surface is not attached")
        self.base_layer = BaseLayer(scene.base_layer)
        self._scene = scene
        self._redraw()

    def _draw_routes(self, group: folium.FeatureGroup, scene: Scene) -> None:
        if scene.show_right_of_way and len(scene.alignment_geo) >= 2:
            folium.PolyLine(
                locations=scene.alignment_geo, color="#cbd5e1", weight=30, opacity=0.15,
                tooltip="Right of way",
            ).add_to(group)
        if scene.show_alignment and scene.reference_id is None:
            folium.PolyLine(
                locations=scene.alignment_geo, color=ROAD_COLOR, weight=6, opacity=0.9,
                tooltip="Road alignment (approximate)",
            ).add_to(group)
        for style in scene.routes:
            tooltip = f"{style.layer.name} ({style.layer.road_name})"
            for line in style.geo_lines():
                if len(line) < 2:
                    continue
                if style.casing:
                    folium.PolyLine(
                        locations=line, color="#ffffff", weight=style.weight + 4, opacity=1.0,
                    ).add_to(group)
                folium.PolyLine(
                    locations=line,
                    color=style.layer.color,
                    weight=style.weight,
                    opacity=style.opacity,
                    dash_array="6 6" if style.dashed else None,
                    tooltip=tooltip,
                ).add_to(group)
        for marker in scene.km_markers:
            folium.CircleMarker(
                location=[marker.lat, marker.lng], radius=3, color="#0f172a", weight=1,
                fill=True, fill_color="#64748b", fill_opacity=1.0,
                tooltip=folium.Tooltip(marker.label, permanent=True),
            ).add_to(group)

    def _draw_placement(self, group: folium.FeatureGroup, p: Placement) -> None:
        location = [p.lat, p.lng]
        popup = folium.Popup(_popup_html(p), max_width=260)
        if p.kind is EntityKind.RFI:
            folium.Marker(
                location=location, tooltip=p.label, popup=popup,
                icon=folium.Icon(color="red", icon="exclamation-sign"),
            ).add_to(group)
        elif p.kind is EntityKind.WORKSITE:
            folium.Circle(
                location=location, radius=150, color=p.color, weight=2 if p.selected else 1,
                fill=True, fill_color=p.color, fill_opacity=0.3, tooltip=p.label, popup=popup,
            ).add_to(group)
        else:
            folium.CircleMarker(
                location=location, radius=10 if p.selected else 7, color="#ffffff", weight=1.5,
                fill=True, fill_color=p.color, fill_opacity=1.0, tooltip=p.label, popup=popup,
            ).add_to(group)
