from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from tsview_graphs.io.payloads import AggregatePayload, DrillDownPayload


def _load_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def load_aggregate_payload(path: Path) -> AggregatePayload:
    """Read a saved ``srcs/v1`` response."""
    return AggregatePayload.model_validate(_load_json(path))


def load_drilldown_payload(path: Path) -> DrillDownPayload:
    """Read a saved ``record/v1/<id>`` response."""
    return DrillDownPayload.model_validate(_load_json(path))
