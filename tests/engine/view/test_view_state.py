"""Tests for ViewState transitions — mode, toggles, pan/zoom, selection."""

import pytest

from engine.tracking.entities import RFIEntity, VehicleEntity
from engine.view import state as view
from engine.view.state import (
    CATEGORY_DEFAULTS,
    MAX_ZOOM,
    MIN_ZOOM,
    BaseLayer,
    Transform,
    ViewMode,
    ViewState,
)


@pytest.fixture
def vehicle():
    return VehicleEntity("v1", "BA 1", "Excavator", "Active", "Ram", 1.0)


@pytest.fixture
def rfi():
    return RFIEntity("r1", "RFI-001", "4+200", "Open", "Culvert level")


@pytest.mark.unit
class TestDefaults:
    def test_initial_state(self):
        s = ViewState()
        assert s.view_mode is ViewMode.SCHEMATIC
        assert s.base_layer is BaseLayer.STREET
        assert s.transform == Transform(0.0, 0.0, 1.0)
        assert s.selected is None
        assert s.live_tracking is True

    def test_heat_map_off_by_default(self):
        s = ViewState()
        assert not s.is_visible("heatMap")
        for key in ("boundaries", "centerline", "workSites", "machinery", "rfis", "structures"):
            assert s.is_visible(key)

    def test_unknown_layer_hidden(self):
        assert not ViewState().is_visible("layer-xyz")

    def test_states_do_not_share_flags(self):
        a = view.set_layer_visible(ViewState(), "rfis", False)
        assert ViewState().is_visible("rfis")
        assert not a.is_visible("rfis")


@pytest.mark.unit
class TestModeAndBase:
    def test_set_view_mode_from_string(self):
        assert view.set_view_mode(ViewState(), "MAP").view_mode is ViewMode.MAP

    def test_invalid_mode(self):
        with pytest.raises(ValueError):
            view.set_view_mode(ViewState(), "GLOBE")

    def test_base_layer(self):
        assert view.set_base_layer(ViewState(), BaseLayer.SATELLITE).base_layer is BaseLayer.SATELLITE

    def test_transitions_are_pure(self):
        s = ViewState()
        view.set_view_mode(s, ViewMode.MAP)
        assert s.view_mode is ViewMode.SCHEMATIC


@pytest.mark.unit
class TestLayers:
    def test_toggle(self):
        s = view.toggle_layer(ViewState(), "heatMap")
        assert s.is_visible("heatMap")
        assert not view.toggle_layer(s, "heatMap").is_visible("heatMap")

    def test_show_layers(self):
        s = view.show_layers(ViewState(), ["layer-a", "layer-b"])
        assert s.is_visible("layer-a") and s.is_visible("layer-b")

    def test_drop_layers_keeps_categories(self):
        s = view.set_layer_visible(ViewState(), "heatMap", True)
        s = view.show_layers(s, ["layer-a", "layer-b"])
        s = view.drop_layers(s, keep=["layer-b"])
        assert set(s.active_layers) == set(CATEGORY_DEFAULTS) | {"layer-b"}
        assert s.is_visible("heatMap")


@pytest.mark.unit
class TestPanZoom:
    def test_pan_accumulates(self):
        s = view.pan(view.pan(ViewState(), 10, -5), 2.5, 5)
        assert (s.transform.x, s.transform.y) == (12.5, 0.0)

    def test_zoom_in_out(self):
        s = view.zoom_in(ViewState())
        assert s.transform.scale == pytest.approx(1.2)
        assert view.zoom_out(s).transform.scale == pytest.approx(1.0)

    def test_zoom_clamped(self):
        s = ViewState()
        for _ in range(50):
            s = view.zoom_in(s)
        assert s.transform.scale == MAX_ZOOM
        for _ in range(50):
            s = view.zoom_out(s)
        assert s.transform.scale == MIN_ZOOM

    def test_zoom_preserves_pan(self):
        s = view.zoom_in(view.pan(ViewState(), 30, 40))
        assert (s.transform.x, s.transform.y) == (30, 40)

    def test_custom_bounds(self):
        s = view.zoom(ViewState(), 100, min_zoom=0.1, max_zoom=2.0)
        assert s.transform.scale == 2.0

    def test_wheel(self):
        assert view.wheel_zoom(ViewState(), -120).transform.scale == pytest.approx(1.2)
        assert view.wheel_zoom(ViewState(), 120).transform.scale == pytest.approx(1 / 1.2)
        s = ViewState()
        assert view.wheel_zoom(s, 0) is s

    def test_reset(self):
        s = view.zoom_in(view.pan(ViewState(), 10, 10))
        assert view.reset_transform(s).transform == Transform()

    def test_svg_transform(self):
        assert Transform(10, 20, 1.5).svg() == "translate(10.00 20.00) scale(1.5000)"


@pytest.mark.unit
class TestSelection:
    def test_select_replaces(self, vehicle, rfi):
        s = view.select(view.select(ViewState(), vehicle), rfi)
        assert s.selected.type.value == "RFI"
        assert s.selected.data is rfi

    def test_clear(self, vehicle):
        assert view.clear_selection(view.select(ViewState(), vehicle)).selected is None

    def test_selection_survives_other_updates(self, vehicle):
        s = view.select(ViewState(), vehicle)
        s = view.set_view_mode(view.zoom_in(s), ViewMode.MAP)
        assert s.selected.data is vehicle

    def test_to_dict(self, rfi):
        d = view.select(ViewState(), rfi).to_dict()
        assert d["view_mode"] == "SCHEMATIC"
        assert d["selected"]["type"] == "RFI"
        assert d["selected"]["chainage"] == "4+200"
        assert d["selected"]["fields"]["Issue"] == "Culvert level"

    def test_live_tracking(self):
        assert view.set_live_tracking(ViewState(), False).live_tracking is False
