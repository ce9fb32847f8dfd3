from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

AGGREGATE_NAMES = [
    "min",
    "p1",
    "p5",
    "p10",
    "p25",
    "p50",
    "mean",
    "p75",
    "p90",
    "p95",
    "p99",
    "max",
]
# Logical aggregate index -> column within a metric's 12-wide storage block.
STORAGE_COLUMNS = [2, 3, 6, 4, 5, 7, 1, 8, 9, 10, 11, 0]
BLOCK_WIDTH = len(AGGREGATE_NAMES)
BUCKET_COUNT = 101
MIN_BUCKET_WIDTH = 0.1


def inverse_permutation(permutation: list[int]) -> list[int]:
    """Storage column -> logical aggregate index for a storage permutation."""
    if sorted(permutation) != list(range(len(permutation))):
        raise ValueError(f"Not a permutation of 0..{len(permutation) - 1}: {permutation!r}")
    inverse = [0] * len(permutation)
    for logical, storage in enumerate(permutation):
        inverse[storage] = logical
    return inverse


# Column within a storage block -> logical aggregate index.
LOGICAL_COLUMNS = inverse_permutation(STORAGE_COLUMNS)


class AggregatesConfig(BaseModel):
    names: list[str] = Field(default_factory=lambda: list(AGGREGATE_NAMES))
    storage_columns: list[int] = Field(default_factory=lambda: list(STORAGE_COLUMNS))
    default_line: str = "mean"
    default_shadow_low: str = "min"
    default_shadow_high: str = "max"

    @model_validator(mode="after")
    def _check_layout(self) -> AggregatesConfig:
        width = len(self.names)
        if width == 0:
            raise ValueError("aggregates.names must not be empty")
        if len(set(self.names)) != width:
            raise ValueError("aggregates.names must be unique")
        if len(self.storage_columns) != width:
            raise ValueError(
                f"aggregates.storage_columns has {len(self.storage_columns)} entries "
                f"for {width} aggregate names"
            )
        # Raises for anything that is not a bijection onto 0..width-1.
        inverse_permutation(self.storage_columns)
        for field_name in ("default_line", "default_shadow_low", "default_shadow_high"):
            value = getattr(self, field_name)
            if value not in self.names:
                raise ValueError(f"aggregates.{field_name} {value!r} is not a known aggregate")
        return self

    @property
    def block_width(self) -> int:
        return len(self.names)

    def logical_index(self, name: str) -> int:
        try:
            return self.names.index(name)
        except ValueError:
            raise ValueError(f"Unknown aggregate name: {name!r}") from None


class LabelsConfig(BaseModel):
    axis_label: str = "x"
    sort_last_marker: str = "~"
    path_separator: str = Field(default="/", min_length=1)
    hash_algorithm: Literal["md5", "sha256", "blake2b"] = "md5"


class HistogramConfig(BaseModel):
    bucket_count: int = Field(default=BUCKET_COUNT, ge=2)
    min_bucket_width: float = Field(default=MIN_BUCKET_WIDTH, gt=0.0)


class PaletteConfig(BaseModel):
    saturation: float = Field(default=1.0, gt=0.0, le=1.0)
    value: float = Field(default=0.5, gt=0.0, le=1.0)


class LegendConfig(BaseModel):
    base_width: int = Field(default=250, ge=1)
    label_length_threshold: int = Field(default=40, ge=0)
    pixels_per_char: int = Field(default=5, ge=0)


class DrillDownConfig(BaseModel):
    max_entries: int | None = Field(default=None, ge=1)
    default_unit: str = "unknown"


class BackendConfig(BaseModel):
    base_url: str | None = None
    timeout_seconds: float = Field(default=60.0, gt=0.0)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    aggregates: AggregatesConfig = Field(default_factory=AggregatesConfig)
    labels: LabelsConfig = Field(default_factory=LabelsConfig)
    histogram: HistogramConfig = Field(default_factory=HistogramConfig)
    palette: PaletteConfig = Field(default_factory=PaletteConfig)
    legend: LegendConfig = Field(default_factory=LegendConfig)
    drilldown: DrillDownConfig = Field(default_factory=DrillDownConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)


DEFAULT_CONFIG_PATH = Path("configs/default.yaml")


def load_config(path: Path) -> AppConfig:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    config = AppConfig.model_validate(data)
    config.backend.base_url = config.backend.base_url or os.getenv("TSVIEW_BASE_URL")
    return config
