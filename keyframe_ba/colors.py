"""Colours derived from identifiers, for drawing tracks and landmarks."""

from __future__ import annotations

import math

__all__ = ["hsv_to_bgr", "color_by_index", "random_color"]

_DEFAULT_COLOR = (123, 22, 234)

# Which of (v, p, q, t) goes to blue, green and red in each hue sector.
_SECTOR_DATA = (
    (1, 3, 0),
    (1, 0, 2),
    (3, 0, 1),
    (0, 2, 1),
    (0, 1, 3),
    (2, 1, 0),
)


def _to_byte(value: float) -> int:
    return min(255, max(0, round(value)))


def hsv_to_bgr(hue: float, saturation: float, value: float) -> tuple[int, int, int]:
    """Convert an 8-bit HSV colour (hue in [0, 180), s and v in [0, 255]) to BGR."""
    h = float(_to_byte(hue))
    s = _to_byte(saturation) / 255.0
    v = _to_byte(value) / 255.0

    if s == 0.0:
        b = g = r = v
    else:
        h *= 6.0 / 180.0
        while h < 0.0:
            h += 6.0
        while h >= 6.0:
            h -= 6.0
        sector = math.floor(h)
        h -= sector
        if not 0 <= sector < 6:
            sector, h = 0, 0.0
        tab = (v, v * (1.0 - s), v * (1.0 - s * h), v * (1.0 - s * (1.0 - h)))
        bi, gi, ri = _SECTOR_DATA[sector]
        b, g, r = tab[bi], tab[gi], tab[ri]

    return (_to_byte(b * 255.0), _to_byte(g * 255.0), _to_byte(r * 255.0))


def color_by_index(identifier: int, num_colors: int) -> tuple[int, int, int]:
    """BGR colour cycling through num_colors hues; identifier 0 has a fixed colour."""
    if num_colors <= 0:
        raise ValueError(f"number of colours must be positive, got {num_colors}")
    identifier &= 0xFFFFFFFF
    if identifier == 0:
        return _DEFAULT_COLOR
    mod_id = (identifier - 1) % num_colors
    d_h = 180 // num_colors
    return hsv_to_bgr(mod_id * d_h, 200, 200)


class _MultiplyWithCarry:
    """Multiply-with-carry generator; the same seed always gives the same sequence."""

    def __init__(self, seed: int):
        seed &= 0xFFFFFFFFFFFFFFFF
        self.state = seed if seed else 0xFFFFFFFF

    def next(self) -> int:
        self.state = ((self.state & 0xFFFFFFFF) * 4164903690 + (self.state >> 32)) & (
            0xFFFFFFFFFFFFFFFF
        )
        return self.state & 0xFFFFFFFF

    def uniform(self, low: int, high: int) -> int:
        if low == high:
            return low
        return self.next() % (high - low) + low


def random_color(identifier: int) -> tuple[int, int, int]:
    """Pseudo-random BGR colour that depends only on the identifier."""
    rng = _MultiplyWithCarry(identifier & 0xFFFFFFFF)
    return (rng.uniform(0, 256), rng.uniform(0, 256), rng.uniform(0, 256))