from __future__ import annotations

from tsview_graphs.config import PaletteConfig
from tsview_graphs.features.colors import hsv_to_rgb_string, round_half_up, series_colors


def test_series_colors_single_series() -> None:
    assert series_colors(1) == ["rgb(0,128,128)"]


def test_series_colors_are_distinct_and_deterministic() -> None:
    colors = series_colors(12)

    assert colors == series_colors(12)
    assert len(colors) == 12
    assert len(set(colors)) == 12
    assert all(color.startswith("rgb(") for color in colors)


def test_series_colors_alternate_halves_of_the_wheel() -> None:
    colors = series_colors(4)

    # Hues 1/5, 3/5, 2/5, 4/5 in series order.
    assert colors == [
        hsv_to_rgb_string(1 / 5, 1.0, 0.5),
        hsv_to_rgb_string(3 / 5, 1.0, 0.5),
        hsv_to_rgb_string(2 / 5, 1.0, 0.5),
        hsv_to_rgb_string(4 / 5, 1.0, 0.5),
    ]


def test_series_colors_empty() -> None:
    assert series_colors(0) == []


def test_series_colors_use_palette() -> None:
    assert series_colors(1, PaletteConfig(saturation=1.0, value=1.0)) == ["rgb(0,255,255)"]


def test_channels_round_half_up() -> None:
    assert round_half_up(62.5) == 63
    assert round_half_up(2.5) == 3
    assert round_half_up(127.49) == 127
    assert hsv_to_rgb_string(0.0, 1.0, 0.5) == "rgb(128,0,0)"
