import json
import tempfile
import unittest
from pathlib import Path

import numpy as np

from errors import UnknownKey
from palettes import (
    NOTE_NAMES,
    NOTE_PALETTES,
    OCTAVES,
    PALETTE_SIZE,
    Palette,
    PaletteTable,
    build_default_palettes,
    normalize_key,
)


class TestPaletteTable(unittest.TestCase):
    def test_every_note_and_octave_has_ten_colors(self):
        table = PaletteTable()
        self.assertEqual(len(table), len(NOTE_NAMES) * len(OCTAVES))
        for note in NOTE_NAMES:
            for octave in OCTAVES:
                palette = table.lookup(f"{note}{octave}")
                self.assertIsNotNone(palette)
                self.assertEqual(len(palette), PALETTE_SIZE)
                self.assertEqual(palette.colors.shape, (PALETTE_SIZE, 3))

    def test_colors_are_normalized(self):
        palette = PaletteTable().lookup("c4")
        self.assertTrue(np.all(palette.colors >= 0.0))
        self.assertTrue(np.all(palette.colors <= 1.0))
        np.testing.assert_allclose(palette.colors[0], np.array(NOTE_PALETTES["c"][0]) / 255.0)

    def test_octaves_shade_and_tint(self):
        table = PaletteTable()
        low = table.lookup("g3").colors
        mid = table.lookup("g4").colors
        high = table.lookup("g5").colors
        self.assertTrue(np.all(low <= mid))
        self.assertTrue(np.all(high >= mid))

    def test_lookup_miss_returns_none(self):
        table = PaletteTable()
        self.assertIsNone(table.lookup("h9"))
        # No normalization inside the table
        self.assertIsNone(table.lookup("C4"))

    def test_get_miss_raises_unknown_key(self):
        with self.assertRaises(UnknownKey) as ctx:
            PaletteTable().get("zz")
        self.assertEqual(ctx.exception.key_id, "zz")

    def test_palette_is_read_only(self):
        palette = PaletteTable().lookup("a4")
        with self.assertRaises(ValueError):
            palette.colors[0, 0] = 0.5

    def test_palette_rejects_wrong_size(self):
        with self.assertRaises(ValueError):
            Palette("x", ((0, 0, 0),) * 9)

    def test_normalize_key(self):
        self.assertEqual(normalize_key("  C#4 "), "c#4")

    def test_overrides_from_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            palette_file = Path(tmpdir) / "palettes.json"
            custom = [[i * 20, 0, 255 - i * 20] for i in range(10)]
            payload = {
                "c4": custom,
                "x1": [[0, 0, 0]] * 10,
                "bad_len": [[0, 0, 0]] * 3,
                "bad_range": [[0, 0, 300]] * 10,
            }
            with open(palette_file, "w", encoding="utf-8") as f:
                json.dump(payload, f)

            table = PaletteTable.from_file(palette_file)

        self.assertEqual(table.lookup("c4").rgb[1], (20, 0, 235))
        self.assertIn("x1", table)
        self.assertNotIn("bad_len", table)
        self.assertNotIn("bad_range", table)
        self.assertEqual(len(table), len(build_default_palettes()) + 1)

    def test_unreadable_file_keeps_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            palette_file = Path(tmpdir) / "palettes.json"
            with open(palette_file, "w", encoding="utf-8") as f:
                f.write("{nope")
            table = PaletteTable.from_file(palette_file)
        self.assertEqual(len(table), len(build_default_palettes()))


if __name__ == "__main__":
    unittest.main()
