"""
fluidkeys - Palette Table
Maps lowercase <note><octave> key ids ("c4", "f#5") to a fixed sequence
of 10 RGB colors. Every path walks its palette from first to last color
over its lifetime.

The octave-4 palettes are hand-authored. Octave 3 is a darker shade and
octave 5 a lighter shade of the same colors. A JSON file may add or
replace entries; after load the table never changes.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import numpy as np

from errors import UnknownKey
from logging_utils import log_event


PALETTE_SIZE = 10

RGB = Tuple[int, int, int]

NOTE_NAMES = ("c", "c#", "d", "d#", "e", "f", "f#", "g", "g#", "a", "a#", "b")
OCTAVES = (3, 4, 5)

_OCTAVE_3_SHADE = 0.72   # multiply toward black
_OCTAVE_5_TINT = 0.35    # blend toward white

# Octave-4 palettes (RGB 0-255), first color -> last color over a path
NOTE_PALETTES: Dict[str, Tuple[RGB, ...]] = {
    "c": ((255, 64, 64), (255, 96, 48), (255, 128, 40), (255, 160, 48), (255, 190, 70),
          (250, 210, 96), (240, 170, 120), (220, 120, 140), (190, 80, 150), (150, 50, 160)),
    "c#": ((255, 40, 110), (245, 60, 140), (230, 80, 170), (210, 100, 200), (180, 120, 225),
           (150, 140, 240), (120, 160, 250), (100, 180, 250), (90, 200, 240), (80, 220, 230)),
    "d": ((255, 150, 30), (255, 175, 40), (255, 200, 55), (250, 220, 75), (230, 235, 95),
          (200, 240, 110), (160, 235, 120), (120, 225, 130), (80, 210, 140), (50, 190, 150)),
    "d#": ((200, 255, 60), (170, 250, 80), (140, 240, 100), (110, 230, 130), (90, 215, 160),
           (75, 195, 190), (65, 170, 215), (60, 145, 235), (65, 120, 245), (80, 95, 250)),
    "e": ((255, 230, 40), (255, 215, 60), (255, 195, 80), (255, 170, 95), (255, 145, 110),
          (250, 120, 130), (235, 100, 155), (210, 85, 180), (180, 75, 205), (145, 70, 225)),
    "f": ((40, 220, 90), (45, 210, 120), (50, 200, 150), (55, 190, 175), (60, 175, 200),
          (70, 160, 220), (85, 140, 235), (105, 120, 245), (130, 100, 250), (160, 85, 250)),
    "f#": ((0, 230, 170), (20, 220, 190), (40, 205, 210), (60, 190, 225), (80, 170, 238),
           (105, 150, 245), (130, 130, 248), (160, 115, 245), (190, 100, 235), (220, 90, 220)),
    "g": ((30, 200, 255), (45, 180, 255), (60, 160, 255), (80, 140, 250), (100, 125, 245),
          (125, 110, 240), (150, 100, 230), (180, 95, 215), (210, 95, 195), (240, 100, 170)),
    "g#": ((60, 120, 255), (80, 110, 255), (100, 100, 250), (125, 95, 245), (150, 90, 235),
           (175, 90, 220), (200, 95, 200), (225, 105, 175), (245, 120, 150), (255, 140, 120)),
    "a": ((120, 70, 255), (140, 80, 250), (165, 90, 240), (190, 100, 225), (210, 115, 205),
          (230, 130, 180), (245, 150, 155), (255, 170, 130), (255, 195, 110), (255, 220, 95)),
    "a#": ((190, 50, 240), (205, 60, 220), (220, 70, 200), (235, 85, 180), (245, 100, 155),
           (250, 120, 130), (252, 140, 110), (250, 165, 95), (245, 190, 85), (235, 215, 80)),
    "b": ((240, 50, 200), (245, 60, 175), (250, 70, 150), (252, 85, 125), (252, 100, 100),
          (250, 120, 80), (245, 145, 65), (235, 170, 55), (220, 195, 50), (200, 220, 50)),
}


@dataclass(frozen=True, eq=False)
class Palette:
    """Immutable 10-color palette. `colors` holds the 0-1 normalized form."""
    key: str
    rgb: Tuple[RGB, ...]
    colors: np.ndarray = field(repr=False, init=False)

    def __post_init__(self):
        if len(self.rgb) != PALETTE_SIZE:
            raise ValueError(f"Palette {self.key!r} needs {PALETTE_SIZE} colors, got {len(self.rgb)}")
        colors = np.asarray(self.rgb, dtype=float) / 255.0
        colors.setflags(write=False)
        object.__setattr__(self, "colors", colors)

    def __len__(self) -> int:
        return len(self.rgb)


def normalize_key(raw: str) -> str:
    """Normalize an inbound key name. Only used at the protocol boundary."""
    return raw.strip().lower()


def _shade(rgb: Iterable[RGB], factor: float) -> Tuple[RGB, ...]:
    arr = np.asarray(list(rgb), dtype=float) * factor
    return tuple(tuple(int(round(c)) for c in row) for row in np.clip(arr, 0, 255))


def _tint(rgb: Iterable[RGB], amount: float) -> Tuple[RGB, ...]:
    arr = np.asarray(list(rgb), dtype=float)
    arr = arr + (255.0 - arr) * amount
    return tuple(tuple(int(round(c)) for c in row) for row in np.clip(arr, 0, 255))


def build_default_palettes() -> Dict[str, Tuple[RGB, ...]]:
    """Expand the octave-4 note palettes across OCTAVES."""
    table: Dict[str, Tuple[RGB, ...]] = {}
    for note in NOTE_NAMES:
        base = NOTE_PALETTES[note]
        table[f"{note}3"] = _shade(base, _OCTAVE_3_SHADE)
        table[f"{note}4"] = tuple(base)
        table[f"{note}5"] = _tint(base, _OCTAVE_5_TINT)
    return table


def _valid_rgb_list(value) -> bool:
    if not isinstance(value, list) or len(value) != PALETTE_SIZE:
        return False
    for color in value:
        if not isinstance(color, (list, tuple)) or len(color) != 3:
            return False
        for channel in color:
            if isinstance(channel, bool) or not isinstance(channel, (int, float)):
                return False
            if channel < 0 or channel > 255:
                return False
    return True


def load_palette_overrides(palette_file: Path) -> Dict[str, Tuple[RGB, ...]]:
    """Read {key: [[r, g, b] x10]} from disk. Bad entries are skipped."""
    try:
        with open(palette_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        log_event("WARN", "Palette", "Could not read palette file", path=palette_file, error=e)
        return {}

    if not isinstance(data, dict):
        log_event("WARN", "Palette", "Palette file is not an object", path=palette_file)
        return {}

    overrides: Dict[str, Tuple[RGB, ...]] = {}
    for key, value in data.items():
        if not _valid_rgb_list(value):
            log_event("WARN", "Palette", "Skipping invalid palette", key=key)
            continue
        overrides[str(key)] = tuple(tuple(int(c) for c in color) for color in value)
    return overrides


class PaletteTable:
    """Read-only key -> Palette mapping."""

    def __init__(self, entries: Optional[Dict[str, Tuple[RGB, ...]]] = None):
        source = build_default_palettes() if entries is None else entries
        self._palettes: Dict[str, Palette] = {
            key: Palette(key, tuple(tuple(c) for c in rgb)) for key, rgb in source.items()
        }

    @classmethod
    def from_file(cls, palette_file: Optional[Path]) -> "PaletteTable":
        """Built-in palettes with overrides from `palette_file` applied on top."""
        entries = build_default_palettes()
        if palette_file:
            overrides = load_palette_overrides(Path(palette_file))
            entries.update(overrides)
            log_event("INFO", "Palette", "Loaded overrides", path=palette_file, count=len(overrides))
        return cls(entries)

    def lookup(self, key_id: str) -> Optional[Palette]:
        """Palette for `key_id`, or None when the key has no palette."""
        return self._palettes.get(key_id)

    def get(self, key_id: str) -> Palette:
        palette = self._palettes.get(key_id)
        if palette is None:
            raise UnknownKey(key_id)
        return palette

    def keys(self):
        return self._palettes.keys()

    def __contains__(self, key_id: str) -> bool:
        return key_id in self._palettes

    def __len__(self) -> int:
        return len(self._palettes)
