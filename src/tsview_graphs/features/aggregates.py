from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import pandas as pd

from tsview_graphs.config import AggregatesConfig
from tsview_graphs.errors import MalformedDataError
from tsview_graphs.matrix import plain_cell, to_cell_matrix

AggregateSelector = int | str


@dataclass(frozen=True)
class AggregateRow:
    ordinal: Any
    cells: Sequence[Any]

    @classmethod
    def from_wire(cls, row: Sequence[Any]) -> AggregateRow:
        """Split a backend row of the form ``[ordinal, *cells]``."""
        if len(row) == 0:
            raise MalformedDataError("Aggregate row is empty")
        return cls(ordinal=row[0], cells=list(row[1:]))


class AggregateMatrixExtractor:
    """Decode per-metric percentile blocks into line or band series."""

    def __init__(self, config: AggregatesConfig | None = None) -> None:
        self.config = config or AggregatesConfig()
        self.storage_columns = list(self.config.storage_columns)

    @property
    def block_width(self) -> int:
        return self.config.block_width

    def resolve(self, selector: AggregateSelector) -> int:
        if isinstance(selector, str):
            return self.config.logical_index(selector)
        index = int(selector)
        if index < 0 or index >= self.block_width:
            raise ValueError(
                f"Aggregate index must be in [0, {self.block_width - 1}], got {selector!r}"
            )
        return index

    def metric_count(self, rows: Sequence[AggregateRow]) -> int:
        if not rows:
            return 0
        width = len(rows[0].cells)
        if width % self.block_width != 0:
            raise MalformedDataError(
                f"Aggregate row has {width} cells, not a multiple of {self.block_width}"
            )
        for position, row in enumerate(rows):
            if len(row.cells) != width:
                raise MalformedDataError(
                    f"Aggregate row {position} has {len(row.cells)} cells, expected {width}"
                )
        return width // self.block_width

    def extract(
        self,
        rows: Sequence[AggregateRow],
        line_index: AggregateSelector,
        shadow_low: AggregateSelector,
        shadow_high: AggregateSelector,
        stacked: bool,
    ) -> list[list[Any]]:
        line = self.storage_columns[self.resolve(line_index)]
        low = self.storage_columns[self.resolve(shadow_low)]
        high = self.storage_columns[self.resolve(shadow_high)]
        n_metrics = self.metric_count(rows)
        if not rows:
            return []

        # (rows, metrics, block) view of the flat cell matrix.
        blocks = to_cell_matrix([row.cells for row in rows]).reshape(
            len(rows), n_metrics, self.block_width
        )

        series_rows: list[list[Any]] = []
        if stacked:
            selected = blocks[:, :, line]
            for row, values in zip(rows, selected):
                series_rows.append([row.ordinal, *[plain_cell(value) for value in values]])
            return series_rows

        bands = blocks[:, :, [low, line, high]]
        for row, metric_bands in zip(rows, bands):
            series_rows.append(
                [row.ordinal, *[[plain_cell(value) for value in band] for band in metric_bands]]
            )
        return series_rows


def to_frame(series_rows: list[list[Any]], labels: Sequence[str]) -> pd.DataFrame:
    """Tabulate extracted rows; band cells expand to low/mid/high columns."""
    if not series_rows:
        return pd.DataFrame(columns=list(labels))
    axis_label, *metric_labels = labels
    records: list[dict[str, Any]] = []
    for row in series_rows:
        record: dict[str, Any] = {axis_label: row[0]}
        for label, value in zip(metric_labels, row[1:]):
            if isinstance(value, list):
                record[f"{label}.low"] = value[0]
                record[f"{label}.mid"] = value[1]
                record[f"{label}.high"] = value[2]
            else:
                record[label] = value
        records.append(record)
    return pd.DataFrame.from_records(records)
