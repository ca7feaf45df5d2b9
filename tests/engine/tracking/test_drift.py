"""Tests for GpsDriftSimulator — bounded random walk and thread lifecycle."""

import time

import pytest

from engine.tracking.drift import GpsDriftSimulator, SequenceWalk


def _ids(*ids):
    return lambda: list(ids)


@pytest.mark.unit
class TestTick:
    def test_step_scaled_around_half(self):
        sim = GpsDriftSimulator(_ids("v1"), rng=SequenceWalk([1.0]))
        assert sim.tick() == {"v1": pytest.approx(0.25)}

    def test_each_vehicle_draws_its_own_sample(self):
        sim = GpsDriftSimulator(_ids("a", "b"), rng=SequenceWalk([0.0, 1.0]))
        offsets = sim.tick()
        assert offsets["a"] == pytest.approx(-0.25)
        assert offsets["b"] == pytest.approx(0.25)

    def test_clamped_to_bound(self):
        sim = GpsDriftSimulator(_ids("v1"), rng=SequenceWalk([1.0]))
        for _ in range(20):
            sim.tick()
        assert sim.offset("v1") == 2.0

    def test_clamped_negative(self):
        sim = GpsDriftSimulator(_ids("v1"), rng=SequenceWalk([0.0]), bound=1.0)
        for _ in range(10):
            sim.tick()
        assert sim.offset("v1") == -1.0

    def test_stays_bounded_with_real_rng(self):
        sim = GpsDriftSimulator(_ids("a", "b", "c"))
        for _ in range(500):
            offsets = sim.tick()
            assert all(-2.0 <= v <= 2.0 for v in offsets.values())

    def test_new_vehicles_start_at_zero(self):
        ids = ["a"]
        sim = GpsDriftSimulator(lambda: ids, rng=SequenceWalk([0.5]))
        sim.tick()
        ids.append("b")
        assert sim.offset("b") == 0.0
        assert sim.tick() == {"a": 0.0, "b": 0.0}

    def test_offsets_is_a_copy(self):
        sim = GpsDriftSimulator(_ids("v1"), rng=SequenceWalk([1.0]))
        sim.tick()
        snapshot = sim.offsets()
        snapshot["v1"] = 99
        assert sim.offset("v1") == pytest.approx(0.25)

    def test_reset(self):
        sim = GpsDriftSimulator(_ids("v1"), rng=SequenceWalk([1.0]))
        sim.tick()
        sim.reset()
        assert sim.offsets() == {}


@pytest.mark.unit
class TestSequenceWalk:
    def test_cycles(self):
        walk = SequenceWalk([0.1, 0.2])
        assert [walk.random() for _ in range(5)] == [0.1, 0.2, 0.1, 0.2, 0.1]

    def test_empty_defaults_to_neutral(self):
        assert SequenceWalk([]).random() == 0.5


@pytest.mark.unit
class TestLifecycle:
    def test_start_and_stop(self):
        sim = GpsDriftSimulator(_ids("v1"), interval=0.01, rng=SequenceWalk([1.0]))
        sim.start()
        try:
            assert sim.running
            deadline = time.monotonic() + 2.0
            while sim.offset("v1") == 0.0 and time.monotonic() < deadline:
                time.sleep(0.01)
            assert sim.offset("v1") > 0.0
        finally:
            sim.stop()
        assert not sim.running

    def test_start_twice_is_one_thread(self):
        sim = GpsDriftSimulator(_ids(), interval=0.05)
        sim.start()
        first = sim._thread
        sim.start()
        assert sim._thread is first
        sim.stop()

    def test_stop_without_start(self):
        sim = GpsDriftSimulator(_ids())
        sim.stop()
        assert not sim.running

    def test_restart_after_stop(self):
        sim = GpsDriftSimulator(_ids(), interval=0.05)
        sim.start()
        sim.stop()
        sim.start()
        assert sim.running
        sim.stop()

    def test_tick_errors_do_not_kill_thread(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("project unavailable")
            return ["v1"]

        sim = GpsDriftSimulator(flaky, interval=0.01, rng=SequenceWalk([1.0]))
        sim.start()
        try:
            deadline = time.monotonic() + 2.0
            while sim.offset("v1") == 0.0 and time.monotonic() < deadline:
                time.sleep(0.01)
            assert sim.running
            assert sim.offset("v1") > 0.0
        finally:
            sim.stop()
