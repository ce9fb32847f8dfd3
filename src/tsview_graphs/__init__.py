"""Data core for time-series aggregate, sample and histogram charts."""

from importlib.metadata import PackageNotFoundError, version

from tsview_graphs.errors import (
    AggregateLoadError,
    AlignmentError,
    MalformedDataError,
    TsviewGraphsError,
)
from tsview_graphs.pipeline.session import GraphSession

try:
    __version__ = version("tsview-graphs")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

__all__ = [
    "AggregateLoadError",
    "AlignmentError",
    "GraphSession",
    "MalformedDataError",
    "TsviewGraphsError",
    "__version__",
]
