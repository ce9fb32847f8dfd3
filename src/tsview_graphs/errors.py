from __future__ import annotations

from typing import Literal

LoadFailureKind = Literal["timeout", "authentication", "http", "backend", "empty"]


class TsviewGraphsError(Exception):
    """Base class for errors raised by the graph data core."""


class MalformedDataError(TsviewGraphsError):
    """Aggregate payload does not match the fixed 12-wide block layout."""


class AlignmentError(TsviewGraphsError):
    """A sample label has no forward match in the aggregate label list."""


class AggregateLoadError(TsviewGraphsError):
    def __init__(self, kind: LoadFailureKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"
