"""
fluidkeys - Position Allocator
Rejection sampler for path start points. A candidate is accepted only if
it keeps `min_distance` from each of the last `memory_size` accepted
points, so simultaneous paths do not pile up on one spot.
"""

from collections import deque
from typing import NamedTuple, Optional, Tuple

import numpy as np

from config import PositionConfig
from errors import PositionSamplingExhausted
from logging_utils import log_event


class Point(NamedTuple):
    x: float
    y: float


class PositionAllocator:
    """Owns the process-wide Position Memory."""

    def __init__(self, config: PositionConfig, rng: Optional[np.random.Generator] = None):
        self.config = config
        self.rng = rng if rng is not None else np.random.default_rng()
        self.width = float(config.viewport_width)
        self.height = float(config.viewport_height)
        self._memory: deque = deque(maxlen=max(0, int(config.memory_size)))
        self.fallback_count = 0

    @property
    def memory(self) -> Tuple[Point, ...]:
        return tuple(self._memory)

    def reset(self) -> None:
        self._memory.clear()

    def resize(self, width: float, height: float) -> None:
        """Update viewport bounds (parentResize). Memory is kept."""
        self.width = float(width)
        self.height = float(height)
        log_event("DEBUG", "PositionAllocator", "Viewport resized",
                  width=self.width, height=self.height)

    def bounds(self) -> Tuple[float, float, float, float]:
        """(x_min, x_max, y_min, y_max) of the sampling rectangle.
        An axis narrower than two margins collapses to its center."""
        margin = self.config.margin
        x_min, x_max = margin, self.width - margin
        y_min, y_max = margin, self.height - margin
        if x_max < x_min:
            x_min = x_max = self.width / 2.0
        if y_max < y_min:
            y_min = y_max = self.height / 2.0
        return x_min, x_max, y_min, y_max

    def _draw(self) -> Point:
        x_min, x_max, y_min, y_max = self.bounds()
        x = float(self.rng.uniform(x_min, x_max)) if x_max > x_min else x_min
        y = float(self.rng.uniform(y_min, y_max)) if y_max > y_min else y_min
        return Point(x, y)

    def _is_spaced(self, candidate: Point) -> bool:
        if not self._memory:
            return True
        remembered = np.asarray(self._memory, dtype=float)
        dists = np.hypot(remembered[:, 0] - candidate.x, remembered[:, 1] - candidate.y)
        return bool(np.all(dists >= self.config.min_distance))

    def _sample(self) -> Point:
        candidate = None
        attempts = max(1, int(self.config.max_attempts))
        for _ in range(attempts):
            candidate = self._draw()
            if self._is_spaced(candidate):
                return candidate
        raise PositionSamplingExhausted(attempts, candidate)

    def allocate(self) -> Point:
        """Return a start point, remembering it for future spacing checks.

        When every attempt is rejected the last sample is used anyway."""
        try:
            point = self._sample()
        except PositionSamplingExhausted as exc:
            point = exc.fallback
            self.fallback_count += 1
            log_event("WARN", "PositionAllocator", "Sampling exhausted, using last sample",
                      attempts=exc.attempts, x=f"{point.x:.1f}", y=f"{point.y:.1f}")
        self._memory.append(point)
        return point
