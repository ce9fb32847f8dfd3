from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from tsview_graphs.errors import MalformedDataError
from tsview_graphs.features.aggregates import AggregateRow


def metric_names_from_flat_list(flat_list: list[str]) -> list[str]:
    """Collapse ``metric.aggregate`` column names into one name per metric.

    Columns of one metric are adjacent, so a name is emitted whenever the
    metric part differs from the previous column's.
    """
    names: list[str] = []
    previous: str | None = None
    for element in flat_list:
        metric = element.rpartition(".")[0] if "." in element else element
        if metric != previous:
            names.append(metric)
        previous = metric
    return names


def union_config_pairs(
    column_names: list[str] | None, configs: list[list[Any] | None] | None
) -> list[str]:
    """Distinct ``name=value`` strings across all config rows, sorted."""
    if column_names is None or configs is None:
        return []
    seen: set[str] = set()
    for row in configs:
        if row is None:
            continue
        for name, value in zip(column_names, row):
            if value is None:
                continue
            seen.add(f"{name}={value}")
    return sorted(seen)


class AggregatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    aggregates: list[list[Any]] = Field(default_factory=list)
    aggregates_column_names: list[str] = Field(
        default_factory=list, alias="aggregatesColumnNames"
    )
    ids: list[str | int] = Field(default_factory=list)
    configs: list[list[Any] | None] | None = None
    configs_column_names: list[str] | None = Field(default=None, alias="configsColumnNames")
    message: str | None = None

    def rows(self) -> list[AggregateRow]:
        return [AggregateRow.from_wire(row) for row in self.aggregates]

    def raw_labels(self, block_width: int, axis_label: str = "x") -> list[str]:
        """Metric labels with a leading axis label, validated against the row width."""
        names = metric_names_from_flat_list(self.aggregates_column_names)
        if not self.aggregates:
            return [axis_label, *names]
        n_cells = len(self.aggregates[0]) - 1
        if n_cells % block_width != 0:
            raise MalformedDataError(
                f"Aggregate row has {n_cells} cells, not a multiple of {block_width}"
            )
        n_metrics = n_cells // block_width
        if len(names) == n_metrics:
            return [axis_label, *names]
        if len(names) == n_metrics + 1:
            return names
        raise MalformedDataError(
            f"{len(names)} aggregate column names for {n_metrics} metrics in each row"
        )

    def record_ids(self) -> dict[Any, str]:
        """Ordinal -> record id for drill-down lookups."""
        if len(self.ids) != len(self.aggregates):
            raise MalformedDataError(
                f"{len(self.ids)} record ids for {len(self.aggregates)} aggregate rows"
            )
        return {row[0]: str(record_id) for row, record_id in zip(self.aggregates, self.ids)}

    def config_pairs(self) -> list[str]:
        return union_config_pairs(self.configs_column_names, self.configs)


class DrillDownPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    points: list[list[Any]] = Field(default_factory=list)
    points_column_names: list[str] = Field(default_factory=list, alias="pointsColumnNames")
    config_pairs: dict[str, str] | None = Field(default=None, alias="configPairs")
    unit: str | None = None
