from __future__ import annotations

import colorsys
import math

from tsview_graphs.config import PaletteConfig


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def hsv_to_rgb_string(hue: float, saturation: float, value: float) -> str:
    channels = colorsys.hsv_to_rgb(hue, saturation, value)
    red, green, blue = (round_half_up(channel * 255) for channel in channels)
    return f"rgb({red},{green},{blue})"


def series_colors(count: int, palette: PaletteConfig | None = None) -> list[str]:
    """Evenly spaced hues, alternated between halves of the wheel for contrast."""
    palette = palette or PaletteConfig()
    half = math.ceil(count / 2)
    colors: list[str] = []
    for i in range(1, count + 1):
        idx = math.ceil(i / 2) if i % 2 else half + i // 2
        hue = idx / (1 + count)
        colors.append(hsv_to_rgb_string(hue, palette.saturation, palette.value))
    return colors
