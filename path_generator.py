"""
fluidkeys - Path Generator
Procedural motion paths for a single key press.

Each path follows one of four parametric families around its start point
(circle, spiral, s-curve, wave). On top of the raw parametric point a
smooth 1D gradient noise field pushes the position around a little, so
two plays of the same pattern never trace the same line.

position_at() and color_at() are pure: the noise table is rebuilt from
the path's seed, never resampled per call.
"""

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, Optional, Union

import numpy as np

from config import PathConfig, PatternKind
from palettes import Palette
from position_allocator import Point


TWO_PI = 2.0 * math.pi

# Offset between the x and y noise channels so they are uncorrelated
_NOISE_Y_OFFSET = 97.31


# ---------------------------------------------------------------------------
# Pattern parameters (one dataclass per PatternKind)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CircleParams:
    radius: float
    direction: int          # +1 counter-clockwise, -1 clockwise
    breath: float           # radius oscillation as a fraction of radius
    breath_cycles: float    # breathing cycles over the path
    start_angle: float
    turns: float = 1.0


@dataclass(frozen=True)
class SpiralParams:
    start_radius: float
    end_radius: float       # > start_radius expands, < contracts
    direction: int
    turns: float
    start_angle: float


@dataclass(frozen=True)
class SCurveParams:
    amplitude: float
    length: float
    heading: float          # forward axis angle (radians)


@dataclass(frozen=True)
class WaveParams:
    amplitude: float
    wavelength: float
    travel: float
    heading: float
    phase: float = 0.0


PatternParams = Union[CircleParams, SpiralParams, SCurveParams, WaveParams]


# ---------------------------------------------------------------------------
# Pattern handlers: (params, start, t in [0, 1]) -> raw (x, y)
# ---------------------------------------------------------------------------

def _circle(params: CircleParams, start: Point, t: float):
    r = params.radius * (1.0 + params.breath * math.sin(TWO_PI * params.breath_cycles * t))
    angle = params.start_angle + params.direction * TWO_PI * params.turns * t
    return start.x + r * math.cos(angle), start.y + r * math.sin(angle)


def _spiral(params: SpiralParams, start: Point, t: float):
    r = params.start_radius + (params.end_radius - params.start_radius) * t
    angle = params.start_angle + params.direction * TWO_PI * params.turns * t
    return start.x + r * math.cos(angle), start.y + r * math.sin(angle)


def _along_heading(start: Point, heading: float, forward: float, lateral: float):
    ux, uy = math.cos(heading), math.sin(heading)
    return (start.x + forward * ux - lateral * uy,
            start.y + forward * uy + lateral * ux)


def _s_curve(params: SCurveParams, start: Point, t: float):
    forward = params.length * (t - 0.5)
    lateral = params.amplitude * math.sin(TWO_PI * t)
    return _along_heading(start, params.heading, forward, lateral)


def _wave(params: WaveParams, start: Point, t: float):
    forward = params.travel * (t - 0.5)
    lateral = params.amplitude * math.sin(TWO_PI * forward / params.wavelength + params.phase)
    return _along_heading(start, params.heading, forward, lateral)


PATTERN_HANDLERS: Dict[PatternKind, Callable] = {
    PatternKind.CIRCLE: _circle,
    PatternKind.SPIRAL: _spiral,
    PatternKind.S_CURVE: _s_curve,
    PatternKind.WAVE: _wave,
}


def _direction(rng: np.random.Generator) -> int:
    return 1 if rng.random() < 0.5 else -1


def random_params(kind: PatternKind, config: PathConfig, rng: np.random.Generator) -> PatternParams:
    """Draw randomized parameters for `kind` from the configured ranges."""
    if kind is PatternKind.CIRCLE:
        return CircleParams(
            radius=float(rng.uniform(config.circle_radius_min, config.circle_radius_max)),
            direction=_direction(rng),
            breath=config.circle_breath,
            breath_cycles=float(rng.uniform(1.0, 2.5)),
            start_angle=float(rng.uniform(0.0, TWO_PI)),
        )
    if kind is PatternKind.SPIRAL:
        start_radius = float(rng.uniform(config.spiral_radius_min, config.spiral_radius_max))
        # Pick expand vs contract explicitly so growth never lands on ~1.0
        if rng.random() < 0.5:
            growth = float(rng.uniform(1.3, config.spiral_growth_max))
        else:
            growth = float(rng.uniform(config.spiral_growth_min, 0.75))
        return SpiralParams(
            start_radius=start_radius,
            end_radius=start_radius * growth,
            direction=_direction(rng),
            turns=float(rng.uniform(1.25, 2.0)),
            start_angle=float(rng.uniform(0.0, TWO_PI)),
        )
    if kind is PatternKind.S_CURVE:
        return SCurveParams(
            amplitude=config.s_curve_amplitude,
            length=config.s_curve_length,
            heading=float(rng.uniform(0.0, TWO_PI)),
        )
    if kind is PatternKind.WAVE:
        return WaveParams(
            amplitude=config.wave_amplitude,
            wavelength=config.wave_length,
            travel=config.wave_travel,
            heading=float(rng.uniform(0.0, TWO_PI)),
            phase=float(rng.uniform(0.0, TWO_PI)),
        )
    raise ValueError(f"Unsupported pattern kind: {kind!r}")


# ---------------------------------------------------------------------------
# Coherent noise
# ---------------------------------------------------------------------------

class GradientNoise:
    """Seeded 1D gradient (Perlin-style) noise, output roughly in [-1, 1]."""

    def __init__(self, seed: int):
        rng = np.random.default_rng(seed)
        perm = rng.permutation(256)
        self._perm = np.concatenate([perm, perm])
        self._grad = rng.uniform(-1.0, 1.0, 256)

    def __call__(self, x: float) -> float:
        x0 = math.floor(x)
        xi = int(x0) & 255
        xf = x - x0
        u = xf * xf * xf * (xf * (xf * 6 - 15) + 10)
        g0 = self._grad[self._perm[xi]]
        g1 = self._grad[self._perm[xi + 1]]
        n0 = g0 * xf
        n1 = g1 * (xf - 1.0)
        return 2.0 * float(n0 + u * (n1 - n0))


@lru_cache(maxsize=256)
def _noise_for(seed: int) -> GradientNoise:
    return GradientNoise(seed)


# ---------------------------------------------------------------------------
# Path
# ---------------------------------------------------------------------------

@dataclass
class MotionPath:
    """One independently animating motion + color sequence."""
    id: int
    key_id: str
    kind: PatternKind
    params: PatternParams
    start: Point
    palette: Palette
    total_frames: int
    noise_seed: int
    noise_scale: float = 0.025
    noise_amplitude: float = 18.0
    frame_index: int = 0
    primed_at: Optional[float] = None
    begun: bool = False         # begin() sent for this pointer
    session_id: Optional[int] = None

    @property
    def finished(self) -> bool:
        return self.frame_index >= self.total_frames

    @property
    def progress(self) -> float:
        return min(1.0, self.frame_index / self.total_frames)


def generate(kind: PatternKind, params: PatternParams, start_point: Point, palette: Palette, *,
             path_id: int, total_frames: int, noise_seed: int,
             noise_scale: float = 0.025, noise_amplitude: float = 18.0,
             key_id: str = "") -> MotionPath:
    if kind not in PATTERN_HANDLERS:
        raise ValueError(f"Unsupported pattern kind: {kind!r}")
    if total_frames < 1:
        raise ValueError("total_frames must be >= 1")
    return MotionPath(
        id=path_id,
        key_id=key_id or palette.key,
        kind=kind,
        params=params,
        start=Point(*start_point),
        palette=palette,
        total_frames=int(total_frames),
        noise_seed=int(noise_seed),
        noise_scale=noise_scale,
        noise_amplitude=noise_amplitude,
    )


def create_path(key_id: str, palette: Palette, start_point: Point, config: PathConfig,
                rng: np.random.Generator, path_id: int,
                kind: Optional[PatternKind] = None) -> MotionPath:
    """Seed a new path: random kind (unless given), params and noise seed."""
    if kind is None:
        kinds = list(PatternKind)
        kind = kinds[int(rng.integers(len(kinds)))]
    params = random_params(kind, config, rng)
    return generate(
        kind, params, start_point, palette,
        path_id=path_id,
        total_frames=config.total_frames,
        noise_seed=int(rng.integers(0, 2**31 - 1)),
        noise_scale=config.noise_scale,
        noise_amplitude=config.noise_amplitude,
        key_id=key_id,
    )


def position_at(path: MotionPath, frame_index: int) -> Point:
    """Noisy position of `path` at `frame_index` (clamped to [0, total_frames])."""
    frame = max(0, min(int(frame_index), path.total_frames))
    t = frame / path.total_frames
    x, y = PATTERN_HANDLERS[path.kind](path.params, path.start, t)
    if path.noise_amplitude:
        noise = _noise_for(path.noise_seed)
        n = frame * path.noise_scale
        x += path.noise_amplitude * noise(n)
        y += path.noise_amplitude * noise(n + _NOISE_Y_OFFSET)
    return Point(x, y)


def color_at(palette: Union[Palette, np.ndarray], frame_index: int, total_frames: int) -> np.ndarray:
    """Linear interpolation across the palette; 0-1 RGB floats.

    frame_index == total_frames yields exactly the last palette color."""
    colors = getattr(palette, "colors", palette)
    colors = np.asarray(colors, dtype=float)
    last = len(colors) - 1
    progress = min(1.0, max(0.0, frame_index / total_frames))
    color_progress = progress * last
    index = int(math.floor(color_progress))
    blend = color_progress - index
    nxt = min(index + 1, last)
    return colors[index] + (colors[nxt] - colors[index]) * blend
