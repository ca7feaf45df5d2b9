"""GpsDriftSimulator — simulated live GPS jitter for active vehicles.

There is no real sensor feed behind the fleet markers. A daemon thread
ticks once per ``interval`` seconds and moves every active vehicle's
offset by a bounded random walk step. Offsets are expressed as a percent
of the route length and stay within [-bound, +bound].

The random source is injectable so tests can drive exact sequences;
``tick()`` can be called directly without starting the thread.
"""

from __future__ import annotations

import random
import threading
from typing import Callable, Iterable, Protocol

from loguru import logger


class RandomWalk(Protocol):
    """Anything with a ``random() -> float in [0, 1)`` method."""

    def random(self) -> float: ...


class SequenceWalk:
    """Deterministic RandomWalk replaying a fixed list of samples."""

    def __init__(self, samples: Iterable[float]) -> None:
        self._samples = list(samples) or [0.5]
        self._idx = 0

    def random(self) -> float:
        value = self._samples[self._idx % len(self._samples)]
        self._idx += 1
        return value


class GpsDriftSimulator:
    """Owns per-vehicle drift offsets and the timer that perturbs them."""

    def __init__(
        self,
        vehicle_ids: Callable[[], Iterable[str]],
        interval: float = 1.0,
        step: float = 0.5,
        bound: float = 2.0,
        rng: RandomWalk | None = None,
    ) -> None:
        self._vehicle_ids = vehicle_ids
        self.interval = interval
        self.step = step
        self.bound = abs(bound)
        self._rng = rng or random.Random()
        self._offsets: dict[str, float] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def offset(self, vehicle_id: str) -> float:
        with self._lock:
            return self._offsets.get(vehicle_id, 0.0)

    def offsets(self) -> dict[str, float]:
        with self._lock:
            return dict(self._offsets)

    def tick(self) -> dict[str, float]:
        """Advance every active vehicle one random-walk step."""
        ids = list(self._vehicle_ids())
        with self._lock:
            for vid in ids:
                shift = (self._rng.random() - 0.5) * self.step
                current = self._offsets.get(vid, 0.0)
                self._offsets[vid] = max(-self.bound, min(self.bound, current + shift))
            snapshot = dict(self._offsets)
        logger.debug(f"GPS drift tick: {len(ids)} vehicle(s)")
        return snapshot

    def reset(self) -> None:
        with self._lock:
            self._offsets.clear()

    # -- Lifecycle ----------------------------------------------------------

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="gps-drift", daemon=True)
        self._thread.start()
        logger.info(f"GPS drift simulator started ({self.interval:.1f}s interval)")

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=max(2.0, self.interval * 2))
            self._thread = None
            logger.info("GPS drift simulator stopped")

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.tick()
            except Exception as e:
                logger.warning(f"GPS drift tick failed: {e}")
