"""Conversion between Philips Hue xy chromaticity and RGB colours."""

import math
import re
from typing import Sequence, Tuple

from errors import InvalidArgumentError
from models import Colour

XY = Tuple[float, float]
Gamut = Tuple[XY, XY, XY]  # red, green, blue corners

GAMUT_A: Gamut = ((0.704, 0.296), (0.2151, 0.7106), (0.138, 0.08))
GAMUT_B: Gamut = ((0.675, 0.322), (0.409, 0.518), (0.167, 0.04))
GAMUT_C: Gamut = ((0.692, 0.308), (0.17, 0.7), (0.153, 0.048))

_GAMUT_BY_MODEL = {
    **{m: GAMUT_A for m in ("LST001", "LLC005", "LLC006", "LLC007", "LLC010",
                            "LLC011", "LLC012", "LLC013", "LLC014")},
    **{m: GAMUT_B for m in ("LCT001", "LCT002", "LCT003", "LCT007", "LLM001")},
    **{m: GAMUT_C for m in ("LCT010", "LCT011", "LCT012", "LCT014", "LCT015",
                            "LCT016", "LLC020", "LST002")},
}

# Chromaticity used for black, which has no hue of its own
WHITE_POINT: XY = (0.3127, 0.329)

_HEX_COLOUR = re.compile(r"^#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")

_EPSILON = 1e-9


def gamut_for_model(model: str) -> Gamut:
    """Gamut triangle of the given light model. Unknown models are assumed to be gamut C."""
    return _GAMUT_BY_MODEL.get(model, GAMUT_C)


def _gamma_encode(v: float) -> float:
    return 12.92 * v if v <= 0.0031308 else 1.055 * math.pow(v, 1.0 / 2.4) - 0.055


def _gamma_decode(v: float) -> float:
    return math.pow((v + 0.055) / 1.055, 2.4) if v > 0.04045 else v / 12.92


def to_rgb(xy: Sequence[float], bri: float) -> Colour:
    """
    Convert a light's xy chromaticity and raw brightness (0-254) to RGB.

    Channels are normalised against the strongest one, so the brightness only
    matters when it is zero. Channels that come out negative (outside the
    gamut) wrap to 255, mirroring what the bridge's own apps show.
    """
    x, y = float(xy[0]), float(xy[1])
    if y <= 0:
        return (0, 0, 0)

    Y = bri / 255.0
    X = (Y / y) * x
    Z = (Y / y) * (1.0 - x - y)

    r = X * 1.612 - Y * 0.203 - Z * 0.302
    g = -X * 0.509 + Y * 1.412 + Z * 0.066
    b = X * 0.026 - Y * 0.072 + Z * 0.962

    r, g, b = _gamma_encode(r), _gamma_encode(g), _gamma_encode(b)

    max_value = max(r, g, b)
    if max_value <= 0:
        return (0, 0, 0)

    channels = []
    for v in (r, g, b):
        c = math.floor((v / max_value) * 255)
        channels.append(255 if c < 0 else c)
    return (channels[0], channels[1], channels[2])


def _cross(p: XY, q: XY) -> float:
    return p[0] * q[1] - p[1] * q[0]


def in_gamut(xy: XY, gamut: Gamut) -> bool:
    """Whether xy lies inside (or on the edge of) the gamut triangle."""
    red, green, blue = gamut
    v1 = (green[0] - red[0], green[1] - red[1])
    v2 = (blue[0] - red[0], blue[1] - red[1])
    q = (xy[0] - red[0], xy[1] - red[1])

    denominator = _cross(v1, v2)
    s = _cross(q, v2) / denominator
    t = _cross(v1, q) / denominator
    return s >= -_EPSILON and t >= -_EPSILON and s + t <= 1.0 + _EPSILON


def _closest_point_on_segment(a: XY, b: XY, p: XY) -> XY:
    ab = (b[0] - a[0], b[1] - a[1])
    ap = (p[0] - a[0], p[1] - a[1])
    length = ab[0] * ab[0] + ab[1] * ab[1]
    t = (ap[0] * ab[0] + ap[1] * ab[1]) / length
    t = min(1.0, max(0.0, t))
    return (a[0] + ab[0] * t, a[1] + ab[1] * t)


def clamp_to_gamut(xy: XY, gamut: Gamut) -> XY:
    """Project xy onto the closest point of the gamut triangle when it lies outside."""
    if in_gamut(xy, gamut):
        return xy

    red, green, blue = gamut
    candidates = [
        _closest_point_on_segment(red, green, xy),
        _closest_point_on_segment(blue, red, xy),
        _closest_point_on_segment(green, blue, xy),
    ]
    return min(candidates, key=lambda c: (c[0] - xy[0]) ** 2 + (c[1] - xy[1]) ** 2)


def to_xy(colour: Sequence[int], model: str) -> XY:
    """Convert an RGB colour (0-255 per channel) to xy within the gamut of the light model."""
    r, g, b = (_gamma_decode(c / 255.0) for c in colour)

    X = r * 0.664511 + g * 0.154324 + b * 0.162028
    Y = r * 0.283881 + g * 0.668433 + b * 0.047685
    Z = r * 0.000088 + g * 0.072310 + b * 0.986039

    total = X + Y + Z
    xy = WHITE_POINT if total <= 0 else (X / total, Y / total)
    return clamp_to_gamut(xy, gamut_for_model(model))


def validate_rgb(colour: Sequence[int]) -> Colour:
    if len(colour) != 3:
        raise InvalidArgumentError(f"Colours must have three components, got {len(colour)}.")
    for c in colour:
        if isinstance(c, bool) or not isinstance(c, int) or c < 0 or c > 255:
            raise InvalidArgumentError(f"Colour components must be integers in [0, 255], got {c!r}.")
    return (colour[0], colour[1], colour[2])


def parse_hex_colour(value: str) -> Colour:
    """Parse a colour given as "RRGGBB" (optionally prefixed with #)."""
    match = _HEX_COLOUR.match(value)
    if not match:
        raise InvalidArgumentError(f'Colours must be given as "RRGGBB", got "{value}".')
    r, g, b = (int(part, 16) for part in match.groups())
    return (r, g, b)
