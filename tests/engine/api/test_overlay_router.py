"""Unit tests for the overlay API (/api/map view state, selection, rendering)."""
from __future__ import annotations

import xml.etree.ElementTree as ET

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.routers.overlay import router
from engine.session import MapSession
from engine.tracking.drift import GpsDriftSimulator

PROJECT = {
    "vehicles": [
        {"id": "v1", "plateNumber": "BA 1", "type": "Excavator", "status": "Active", "driver": "Ram"},
        {"id": "v2", "plateNumber": "BA 2", "type": "Roller", "status": "Active", "driver": "Sita"},
    ],
    "rfis": [{"id": "r1", "rfiNumber": "RFI-001", "location": "4+200", "status": "Open", "description": "x"}],
    "schedule": [{"id": "t1", "name": "Earthwork", "status": "On Track", "progress": 45}],
    "structures": [{"id": "s1", "name": "Culvert", "type": "Culvert", "location": "2+300", "status": "Completed"}],
}


def _make_app(session=None):
    app = FastAPI()
    app.include_router(router)
    app.state.map_session = session
    return app


@pytest.fixture
def session():
    s = MapSession(drift=GpsDriftSimulator(lambda: [], interval=0.05))
    s.set_project(PROJECT)
    yield s
    s.close()


@pytest.fixture
def client(session):
    return TestClient(_make_app(session))


@pytest.mark.unit
class TestProjectAndMetrics:
    def test_put_project(self, client):
        resp = client.put("/api/map/project", json={**PROJECT, "vehicles": PROJECT["vehicles"][:1]})
        assert resp.status_code == 200
        assert resp.json() == {"vehicles": 1, "rfis": 1, "work_sites": 1, "structures": 1}

    def test_metrics(self, client):
        assert client.get("/api/map/metrics").json() == {
            "length_km": 15.0, "active_gps_units": 2, "alerts": 1, "mode": "SCHEMATIC",
        }

    def test_state(self, client):
        data = client.get("/api/map/state").json()
        assert data["view_mode"] == "SCHEMATIC"
        assert data["active_layers"]["heatMap"] is False

    def test_no_session(self):
        assert TestClient(_make_app(None)).get("/api/map/metrics").status_code == 503


@pytest.mark.unit
class TestViewEndpoints:
    def test_view_mode(self, client):
        assert client.put("/api/map/view-mode", json={"mode": "MAP"}).json()["view_mode"] == "MAP"
        assert client.get("/api/map/metrics").json()["mode"] == "MAP"

    def test_invalid_view_mode(self, client):
        assert client.put("/api/map/view-mode", json={"mode": "GLOBE"}).status_code == 422

    def test_base_layer(self, client):
        resp = client.put("/api/map/base-layer", json={"base_layer": "SATELLITE"})
        assert resp.json()["base_layer"] == "SATELLITE"

    def test_category_toggle(self, client):
        resp = client.put("/api/map/categories/heatMap", json={"visible": True})
        assert resp.json()["active_layers"]["heatMap"] is True

    def test_unknown_category(self, client):
        assert client.put("/api/map/categories/weather", json={"visible": True}).status_code == 422

    def test_layer_visibility_unknown(self, client):
        assert client.put("/api/map/layers/layer-x/visibility", json={"visible": True}).status_code == 404

    def test_layer_visibility(self, client, session, centerline_kml):
        layer_id = session.import_files([("cl.kml", centerline_kml)], "Main Road")[0].layers[0].id
        resp = client.put(f"/api/map/layers/{layer_id}/visibility", json={"visible": False})
        assert resp.json()["active_layers"][layer_id] is False

    def test_zoom(self, client):
        assert client.post("/api/map/zoom", json={"action": "in"}).json()["transform"]["scale"] == pytest.approx(1.2)
        assert client.post("/api/map/zoom", json={"action": "out"}).json()["transform"]["scale"] == pytest.approx(1.0)
        wheel = client.post("/api/map/zoom", json={"action": "wheel", "delta_y": 100}).json()
        assert wheel["transform"]["scale"] == pytest.approx(1 / 1.2)

    def test_zoom_clamped(self, client):
        for _ in range(30):
            data = client.post("/api/map/zoom", json={"action": "in"}).json()
        assert data["transform"]["scale"] == 5.0

    def test_pan_and_reset(self, client):
        data = client.post("/api/map/pan", json={"dx": 15, "dy": -5}).json()
        assert (data["transform"]["x"], data["transform"]["y"]) == (15, -5)
        assert client.post("/api/map/zoom/reset").json()["transform"] == {"x": 0.0, "y": 0.0, "scale": 1.0}


@pytest.mark.unit
class TestSelection:
    def test_select_vehicle(self, client):
        data = client.post("/api/map/select", json={"kind": "VEHICLE", "id": "v2"}).json()
        assert data["selected"]["type"] == "VEHICLE"
        assert data["selected"]["chainage"] == "3+500"
        assert data["selected"]["fields"]["Driver"] == "Sita"

    def test_select_unknown(self, client):
        assert client.post("/api/map/select", json={"kind": "RFI", "id": "r9"}).status_code == 404

    def test_select_bad_kind(self, client):
        assert client.post("/api/map/select", json={"kind": "TRUCK", "id": "v1"}).status_code == 422

    def test_clear(self, client):
        client.post("/api/map/select", json={"kind": "WORKSITE", "id": "t1"})
        assert client.delete("/api/map/select").json()["selected"] is None


@pytest.mark.unit
class TestLiveTracking:
    def test_toggle(self, client):
        on = client.put("/api/map/live-tracking", json={"enabled": True}).json()
        assert on["live_tracking"] is True
        assert on["drift_running"] is True
        off = client.put("/api/map/live-tracking", json={"enabled": False}).json()
        assert off["live_tracking"] is False
        assert off["drift_running"] is False


@pytest.mark.unit
class TestRendering:
    def test_scene(self, client):
        data = client.get("/api/map/scene").json()
        assert data["reference_id"] is None
        assert len(data["placements"]) == 5
        assert data["metrics"]["alerts"] == 1

    def test_schematic_svg(self, client):
        resp = client.get("/api/map/schematic.svg")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("image/svg+xml")
        root = ET.fromstring(resp.text)
        assert root.get("viewBox") == "0 0 1000 500"

    def test_schematic_in_map_mode(self, client):
        client.put("/api/map/view-mode", json={"mode": "MAP"})
        assert client.get("/api/map/schematic.svg").status_code == 409

    def test_map_html(self, client):
        client.put("/api/map/view-mode", json={"mode": "MAP"})
        resp = client.get("/api/map/map.html")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        assert "leaflet" in resp.text.lower()

    def test_map_in_schematic_mode(self, client):
        assert client.get("/api/map/map.html").status_code == 409
