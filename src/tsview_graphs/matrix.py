from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

import numpy as np
import pandas as pd


def to_float_matrix(rows: Sequence[Sequence[Any]]) -> np.ndarray:
    """Coerce a row-major table to a float matrix; nulls become NaN."""
    if len(rows) == 0:
        return np.empty((0, 0), dtype=float)
    frame = pd.DataFrame([list(row) for row in rows])
    return frame.apply(pd.to_numeric, errors="coerce").to_numpy(dtype=float)


def to_cell_matrix(rows: Sequence[Sequence[Any]]) -> np.ndarray:
    """Object matrix of the cells as received, so integers stay integers."""
    matrix = np.empty((len(rows), len(rows[0]) if rows else 0), dtype=object)
    for position, row in enumerate(rows):
        matrix[position, :] = list(row)
    return matrix


def plain_cell(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return None
    return value
