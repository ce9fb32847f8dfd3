from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

TABLE_FORMATS = ("csv", "parquet")


def table_format(path: Path) -> str:
    """Table format implied by a file extension."""
    fmt = path.suffix.lstrip(".").lower()
    if fmt not in TABLE_FORMATS:
        raise ValueError(f"Unsupported table extension: {path.suffix or '<none>'}")
    return fmt


def write_table(df: pd.DataFrame, path: Path, fmt: str | None = None) -> Path:
    fmt = fmt or table_format(path)
    if fmt not in TABLE_FORMATS:
        raise ValueError(f"Unsupported table format: {fmt}")
    path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "parquet":
        df.to_parquet(path, index=False)
    else:
        df.to_csv(path, index=False)
    return path


def _json_default(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return value.tolist()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def write_chart_json(data: dict[str, Any], path: Path) -> Path:
    """Write chart options or drill-down output; nulls stay ``null``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(data, indent=2, sort_keys=True, default=_json_default)
    path.write_text(text, encoding="utf-8")
    return path
