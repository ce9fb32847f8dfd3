from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from tsview_graphs.config import LegendConfig

AxisMode = Literal["band", "stacked", "samples", "histogram"]
ALLOWED_AXIS_MODES = frozenset({"band", "stacked", "samples", "histogram"})


def legend_width(max_label_length: int, config: LegendConfig | None = None) -> int:
    config = config or LegendConfig()
    overflow = max_label_length - config.label_length_threshold
    if overflow > 0:
        return config.base_width + overflow * config.pixels_per_char
    return config.base_width


@dataclass(frozen=True)
class ChartUpdate:
    """Everything the rendering layer may change on one chart in a single update."""

    series: list[list[Any]]
    labels: list[str]
    colors: list[str]
    visibility: list[bool]
    axis_mode: AxisMode
    legend_width: int | None = None
    title: str | None = None
    unit: str = ""

    def __post_init__(self) -> None:
        if self.axis_mode not in ALLOWED_AXIS_MODES:
            raise ValueError(f"Unsupported axis_mode: {self.axis_mode!r}")
        n_series = max(len(self.labels) - 1, 0)
        if len(self.colors) != n_series:
            raise ValueError(f"{len(self.colors)} colors for {n_series} series")
        if len(self.visibility) != n_series:
            raise ValueError(f"{len(self.visibility)} visibility flags for {n_series} series")

    def to_options(self) -> dict[str, Any]:
        """Dygraph-style option map for a chart ``updateOptions`` call."""
        options: dict[str, Any] = {
            "file": self.series or None,
            "labels": list(self.labels),
            "colors": list(self.colors),
            "visibility": list(self.visibility),
            "customBars": self.axis_mode == "band",
            "stackedGraph": self.axis_mode == "stacked",
            "stepPlot": self.axis_mode == "histogram",
        }
        if self.legend_width is not None:
            options["labelsDivWidth"] = self.legend_width
        if self.title is not None:
            options["title"] = self.title
        if self.unit:
            options["xlabel" if self.axis_mode == "histogram" else "ylabel"] = self.unit
        return options


@dataclass(frozen=True)
class LowerChartsUpdate:
    record_id: str
    samples: ChartUpdate
    histogram: ChartUpdate
    config_html: str
