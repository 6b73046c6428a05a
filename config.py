# fluidkeys Configuration
# All default values and constants

from dataclasses import dataclass, field, is_dataclass
from enum import Enum


CURRENT_CONFIG_VERSION = 1

class PatternKind(Enum):
    """Parametric motion families a path can follow"""
    CIRCLE = "circle"        # Orbit around the start point, breathing radius
    SPIRAL = "spiral"        # Expanding or contracting spiral
    S_CURVE = "s_curve"      # One lateral S swing over a forward travel
    WAVE = "wave"            # Travelling sine wave

PATTERN_RANDOM = "random"

@dataclass
class SessionConfig:
    """Trigger grouping"""
    max_keys_per_session: int = 7     # Paths admitted over a session's lifetime
    pattern_kind: str = PATTERN_RANDOM  # 'random' or a PatternKind value

@dataclass
class PositionConfig:
    """Start point rejection sampling"""
    margin: float = 80.0              # Keep start points this far from the viewport edge (px)
    min_distance: float = 180.0       # Minimum spacing to remembered points (px)
    max_attempts: int = 20            # Rejection-sampling attempts before fallback
    memory_size: int = 5              # Remembered recent start points
    viewport_width: float = 1280.0
    viewport_height: float = 720.0

@dataclass
class PathConfig:
    """Motion path shape"""
    total_frames: int = 120           # Ticks per path (~1.8s at 15ms)
    noise_scale: float = 0.025        # Noise field step per frame
    noise_amplitude: float = 18.0     # Noise displacement (px)
    circle_radius_min: float = 100.0
    circle_radius_max: float = 120.0
    circle_breath: float = 0.15       # Radius oscillation as fraction of radius
    spiral_radius_min: float = 40.0
    spiral_radius_max: float = 110.0
    spiral_growth_min: float = 0.4    # End radius = start radius * growth
    spiral_growth_max: float = 2.2
    s_curve_amplitude: float = 70.0
    s_curve_length: float = 240.0
    wave_amplitude: float = 60.0
    wave_length: float = 180.0        # Wavelength (px)
    wave_travel: float = 360.0        # Forward distance covered over the path (px)

@dataclass
class SchedulerConfig:
    """Frame tick timing"""
    tick_ms: int = 15                 # ~67 Hz
    prime_color_repeats: int = 3      # set_color calls before a path's first begin
    prime_delay_ms: int = 50          # Wait after priming before first motion (0 = same tick)

@dataclass
class IdleConfig:
    """Idle surface clearing"""
    enabled: bool = True
    check_interval_ms: int = 5000
    idle_threshold_ms: int = 5000

@dataclass
class ConnectionConfig:
    """TCP connection to the renderer bridge"""
    host: str = "127.0.0.1"
    port: int = 8766
    auto_connect: bool = True
    reconnect_delay_ms: int = 3000
    dry_run: bool = False             # When True, log commands instead of sending

@dataclass
class ControlConfig:
    """Inbound control message server"""
    host: str = "127.0.0.1"
    port: int = 8765

@dataclass
class PaletteConfig:
    """Optional palette overrides"""
    palette_file: str = ""            # JSON file of key -> 10 RGB triples ('' = built-in only)

@dataclass
class Config:
    """Master configuration"""
    version: int = 1                  # Schema version for persisted configs
    session: SessionConfig = field(default_factory=SessionConfig)
    position: PositionConfig = field(default_factory=PositionConfig)
    path: PathConfig = field(default_factory=PathConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    idle: IdleConfig = field(default_factory=IdleConfig)
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    control: ControlConfig = field(default_factory=ControlConfig)
    palette: PaletteConfig = field(default_factory=PaletteConfig)

    # Global
    log_level: str = "INFO"           # Logging level (DEBUG/INFO/WARNING/ERROR)
    random_seed: int | None = None    # Fixed seed for reproducible runs


def apply_dict_to_dataclass(target, data) -> None:
    """Recursively apply values from a dict onto a dataclass instance.
    Unknown keys are ignored; Enum fields are coerced when possible."""
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if not hasattr(target, key):
            continue

        current = getattr(target, key)

        if is_dataclass(current) and isinstance(value, dict):
            apply_dict_to_dataclass(current, value)
            continue

        if isinstance(current, Enum):
            try:
                setattr(target, key, current.__class__(value))
            except ValueError:
                print(f"[Config] Warning: Could not convert {key} to {current.__class__.__name__}, keeping default")
            continue

        setattr(target, key, value)


def _clamp(value, low, high, default):
    try:
        value = type(default)(value)
    except (TypeError, ValueError):
        value = default
    return max(low, min(high, value))


def migrate_config(config: Config, loaded_version) -> None:
    """Upgrade older config structures to the current schema.
    Fills defaults for missing fields, clamps ranges and bumps version."""
    try:
        version = int(loaded_version) if loaded_version is not None else 0
    except (TypeError, ValueError):
        version = 0

    if version < 1:
        # v0 files predate the priming workaround settings
        if getattr(config.scheduler, 'prime_color_repeats', None) is None:
            config.scheduler.prime_color_repeats = 3
        if getattr(config.scheduler, 'prime_delay_ms', None) is None:
            config.scheduler.prime_delay_ms = 50
        if getattr(config.palette, 'palette_file', None) is None:
            config.palette.palette_file = ""

    valid_kinds = {kind.value for kind in PatternKind} | {PATTERN_RANDOM}
    if config.session.pattern_kind not in valid_kinds:
        config.session.pattern_kind = PATTERN_RANDOM

    config.session.max_keys_per_session = _clamp(config.session.max_keys_per_session, 1, 64, 7)
    config.position.max_attempts = _clamp(config.position.max_attempts, 1, 1000, 20)
    config.position.memory_size = _clamp(config.position.memory_size, 0, 100, 5)
    config.position.margin = _clamp(config.position.margin, 0.0, 10000.0, 80.0)
    config.path.total_frames = _clamp(config.path.total_frames, 1, 100000, 120)
    config.scheduler.tick_ms = _clamp(config.scheduler.tick_ms, 1, 1000, 15)
    config.scheduler.prime_color_repeats = _clamp(config.scheduler.prime_color_repeats, 0, 20, 3)
    config.scheduler.prime_delay_ms = _clamp(config.scheduler.prime_delay_ms, 0, 2000, 50)
    config.idle.check_interval_ms = _clamp(config.idle.check_interval_ms, 100, 600000, 5000)

    config.version = CURRENT_CONFIG_VERSION
