"""Tests for scene derivation — placements, heat map, markers, route styles."""

import pytest

from engine.mapping.projector import ChainageProjector
from engine.tracking.entities import EntityKind, TrackedEntities
from engine.view import state as view
from engine.view.scene import (
    STRUCTURE_DEFAULT_COLOR,
    build_scene,
    heat_bands,
    heat_intensity,
    heat_level,
    km_markers,
    structure_color,
)
from engine.view.state import ViewMode, ViewState


@pytest.fixture
def project():
    return {
        "vehicles": [
            {"id": "v1", "plateNumber": "BA 1", "type": "Excavator", "status": "Active", "driver": "Ram"},
            {"id": "v2", "plateNumber": "BA 2", "type": "Roller", "status": "Active", "driver": "Sita"},
        ],
        "rfis": [{"id": "r1", "rfiNumber": "RFI-001", "location": "4+200", "status": "Open", "description": "x"}],
        "schedule": [{"id": "t1", "name": "Earthwork", "status": "On Track", "progress": 45}],
        "structures": [{"id": "s1", "name": "Culvert", "type": "Culvert", "location": "2+300", "status": "Completed"}],
    }


@pytest.fixture
def entities(project):
    return TrackedEntities.from_project(project)


@pytest.mark.unit
class TestHeatMap:
    def test_intensity(self):
        assert heat_intensity(0.0) == 0.0
        assert heat_intensity(1.5) == pytest.approx(0.5)

    @pytest.mark.parametrize("intensity, level", [(9.0, "high"), (7.0, "medium"), (5.0, "medium"), (4.0, None), (0.0, None)])
    def test_levels(self, intensity, level):
        assert heat_level(intensity) == level

    def test_twenty_buckets_only_risky_kept(self):
        projector = ChainageProjector(None, 15.0)
        bands = heat_bands(projector, 20)
        assert all(b.level in ("high", "medium") for b in bands)
        assert all(0 <= b.index < 20 for b in bands)
        expected = [i for i in range(20) if heat_level(heat_intensity(i * 0.75)) is not None]
        assert [b.index for b in bands] == expected

    def test_bands_cover_their_bucket(self):
        bands = heat_bands(ChainageProjector(None, 10.0), 20)
        for b in bands:
            assert b.end_km - b.start_km == pytest.approx(0.5)
            assert b.start.km == pytest.approx(b.start_km)

    def test_zero_length(self):
        assert heat_bands(ChainageProjector(None, 0.0)) == []


@pytest.mark.unit
class TestKmMarkers:
    def test_every_three_km(self):
        markers = km_markers(ChainageProjector(None, 10.0))
        assert [m.km for m in markers] == [0.0, 3.0, 6.0, 9.0]
        assert markers[1].label == "Km 3"

    def test_includes_exact_end(self):
        assert [m.km for m in km_markers(ChainageProjector(None, 15.0))][-1] == 15.0

    def test_disabled_interval(self):
        assert km_markers(ChainageProjector(None, 15.0), 0) == []


@pytest.mark.unit
class TestBuildScene:
    def test_fallback_scene(self, registry, entities):
        scene = build_scene(registry, ViewState(), entities)
        assert scene.reference_id is None
        assert scene.project_length_km == 15.0
        assert scene.alignment_path.startswith("M 50.00 350.00")
        assert len(scene.alignment_geo) == 51
        assert scene.center is None

    def test_metrics(self, registry, entities):
        metrics = build_scene(registry, ViewState(), entities).metrics
        assert metrics == {"length_km": 15.0, "active_gps_units": 2, "alerts": 1, "mode": "SCHEMATIC"}

    def test_vehicle_placements(self, registry, entities):
        scene = build_scene(registry, ViewState(), entities)
        vehicles = scene.of_kind(EntityKind.VEHICLE)
        assert [p.chainage for p in vehicles] == ["1+000", "3+500"]
        assert vehicles[0].color == "#4f46e5"

    def test_drift_offset_moves_vehicle(self, registry, entities):
        """Offsets are a percent of route length: 2% of 15 km is 300 m."""
        scene = build_scene(registry, ViewState(), entities, offsets={"v1": 2.0})
        v1 = scene.of_kind(EntityKind.VEHICLE)[0]
        assert v1.km == pytest.approx(1.3)
        assert v1.chainage == "1+300"

    def test_drift_does_not_move_other_kinds(self, registry, entities):
        scene = build_scene(registry, ViewState(), entities, offsets={"r1": 2.0})
        assert scene.of_kind(EntityKind.RFI)[0].km == pytest.approx(4.2)

    def test_category_toggles_hide_entities(self, registry, entities):
        state = view.set_layer_visible(ViewState(), "machinery", False)
        state = view.set_layer_visible(state, "rfis", False)
        scene = build_scene(registry, state, entities)
        assert scene.of_kind(EntityKind.VEHICLE) == []
        assert scene.of_kind(EntityKind.RFI) == []
        assert len(scene.of_kind(EntityKind.WORKSITE)) == 1

    def test_heat_map_gated(self, registry, entities):
        assert build_scene(registry, ViewState(), entities).heat_bands == []
        state = view.set_layer_visible(ViewState(), "heatMap", True)
        assert build_scene(registry, state, entities).heat_bands

    def test_centerline_gates_alignment_and_markers(self, registry, entities):
        state = view.set_layer_visible(ViewState(), "centerline", False)
        scene = build_scene(registry, state, entities)
        assert not scene.show_alignment
        assert scene.km_markers == []

    def test_selection_marked(self, registry, entities):
        state = view.select(ViewState(), entities.rfis[0])
        scene = build_scene(registry, state, entities)
        assert scene.of_kind(EntityKind.RFI)[0].selected
        assert not any(p.selected for p in scene.of_kind(EntityKind.VEHICLE))

    def test_structure_color_by_status(self, registry, entities):
        structure = build_scene(registry, ViewState(), entities).of_kind(EntityKind.STRUCTURE)[0]
        assert structure.color == "#22c55e"
        assert structure.progress == 100.0
        assert structure_color("In Progress") == "#f59e0b"
        assert structure_color("Pending") == STRUCTURE_DEFAULT_COLOR

    def test_mode_in_metrics(self, registry, entities):
        state = view.set_view_mode(ViewState(), ViewMode.MAP)
        assert build_scene(registry, state, entities).metrics["mode"] == "MAP"

    def test_to_dict(self, registry, entities):
        d = build_scene(registry, ViewState(), entities).to_dict()
        assert d["transform"] == {"x": 0.0, "y": 0.0, "scale": 1.0}
        assert len(d["placements"]) == 5


@pytest.mark.unit
class TestSceneWithRoutes:
    def test_reference_and_length(self, registry, entities, centerline_kml):
        registry.import_files([("cl.kml", centerline_kml)], "Main Road")
        layer = registry.list_layers()[0]
        state = view.show_layers(ViewState(), [layer.id])
        scene = build_scene(registry, state, entities)
        assert scene.reference_id == layer.id
        assert scene.project_length_km == 10.01
        assert scene.alignment_path == layer.path
        assert scene.center == pytest.approx((27.745, 85.30))

    def test_entities_follow_reference(self, registry, entities, centerline_kml):
        registry.import_files([("cl.kml", centerline_kml)], "Main Road")
        scene = build_scene(registry, ViewState(), entities)
        v1 = scene.of_kind(EntityKind.VEHICLE)[0]
        assert v1.lng == pytest.approx(85.30)
        assert 27.70 < v1.lat < 27.79

    def test_hidden_layers_not_styled(self, registry, entities, centerline_kml):
        registry.import_files([("cl.kml", centerline_kml)], "Main Road")
        assert build_scene(registry, ViewState(), entities).routes == []

    def test_centre_follows_hidden_reference(self, registry, entities, centerline_kml):
        registry.import_files([("cl.kml", centerline_kml)], "Main Road")
        layer = registry.list_layers()[0]
        state = view.set_layer_visible(ViewState(), layer.id, False)
        scene = build_scene(registry, state, entities)
        assert scene.routes == []
        assert scene.center == pytest.approx((27.745, 85.30))
        assert scene.to_dict()["center"] == pytest.approx([27.745, 85.30])

    def test_styles_and_order(self, registry, entities, centerline_kml, two_layer_kml):
        registry.import_files([("two.kml", two_layer_kml)], "Other Road")
        registry.import_files([("cl.kml", centerline_kml)], "Main Road")
        state = view.show_layers(ViewState(), [layer.id for layer in registry.list_layers()])
        routes = build_scene(registry, state, entities).routes
        assert [r.layer.name for r in routes][-1] == "Centerline"
        reference = routes[-1]
        assert reference.is_reference and reference.casing and reference.opacity == 1.0
        others = [r for r in routes if not r.on_active_road]
        assert len(others) == 2
        assert all(r.dashed and r.opacity == 0.35 for r in others)

    def test_active_non_reference_layer(self, registry, entities, two_layer_kml):
        registry.import_files([("two.kml", two_layer_kml)], "Main Road")
        state = view.show_layers(ViewState(), [layer.id for layer in registry.list_layers()])
        routes = build_scene(registry, state, entities).routes
        edge = next(r for r in routes if r.layer.name == "Edge")
        assert (edge.opacity, edge.dashed, edge.casing) == (0.8, False, False)
        assert routes[-1].layer.name == "Road CL"
