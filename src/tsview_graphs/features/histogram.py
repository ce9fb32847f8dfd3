from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import numpy as np
import pandas as pd

from tsview_graphs.config import HistogramConfig
from tsview_graphs.matrix import to_float_matrix

LOGGER = logging.getLogger(__name__)


class HistogramEngine:
    def __init__(self, config: HistogramConfig | None = None) -> None:
        self.config = config or HistogramConfig()

    @property
    def bucket_count(self) -> int:
        return self.config.bucket_count

    def _visible_columns(self, n_columns: int, visibility: Sequence[bool]) -> np.ndarray:
        # Column 0 is the x-axis; metric column j maps to visibility[j - 1].
        mask = np.zeros(n_columns, dtype=bool)
        for column in range(1, n_columns):
            if column - 1 < len(visibility) and visibility[column - 1]:
                mask[column] = True
        return mask

    def min_max(
        self, sample_matrix: Sequence[Sequence[Any]], visibility: Sequence[bool]
    ) -> tuple[float | None, float | None]:
        matrix = to_float_matrix(sample_matrix)
        if matrix.size == 0:
            return None, None
        return self._value_range(matrix, self._visible_columns(matrix.shape[1], visibility))

    def _value_range(
        self, matrix: np.ndarray, visible: np.ndarray
    ) -> tuple[float | None, float | None]:
        values = matrix[:, visible]
        values = values[np.isfinite(values)]
        if values.size == 0:
            return None, None
        return float(values.min()), float(values.max())

    def compute(
        self, sample_matrix: Sequence[Sequence[Any]], visibility: Sequence[bool]
    ) -> list[list[float | int]]:
        """Bucket visible sample columns into ``bucket_count`` rows plus a trailing edge row.

        Row ``i`` is ``[min + i * width, count_col1, count_col2, ...]``. Hidden
        columns keep zero counts so row width always matches the sample table.
        """
        if len(sample_matrix) == 0:
            return []

        matrix = to_float_matrix(sample_matrix)
        n_columns = matrix.shape[1]
        visible = self._visible_columns(n_columns, visibility)
        minimum, maximum = self._value_range(matrix, visible)
        if minimum is None or maximum is None:
            minimum = maximum = 0.0

        bucket_width = (maximum - minimum) / (self.bucket_count - 1)
        bucket_width = max(bucket_width, self.config.min_bucket_width)
        LOGGER.debug(
            "Histogram range [%s, %s] with bucket width %s", minimum, maximum, bucket_width
        )

        counts = np.zeros((self.bucket_count + 1, n_columns), dtype=int)
        for column in np.flatnonzero(visible):
            values = matrix[:, column]
            values = values[np.isfinite(values)]
            if values.size == 0:
                continue
            # Round half up. The maximum maps to (max - min) / width <= B - 1, which
            # stays below B - 0.5 after float error, so it lands in the last
            # regular bucket and the trailing row is never counted.
            indices = np.floor((values - minimum) / bucket_width + 0.5).astype(int)
            indices = np.clip(indices, 0, self.bucket_count - 1)
            np.add.at(counts[:, column], indices, 1)

        bucket_rows: list[list[float | int]] = []
        for i in range(self.bucket_count + 1):
            row: list[float | int] = [minimum + i * bucket_width]
            row.extend(int(value) for value in counts[i, 1:])
            bucket_rows.append(row)
        return bucket_rows


def to_frame(bucket_rows: list[list[float | int]], labels: Sequence[str]) -> pd.DataFrame:
    columns = ["bucket_lower_bound", *labels[1:]]
    if not bucket_rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(bucket_rows, columns=columns)
