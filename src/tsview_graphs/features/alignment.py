from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from tsview_graphs.errors import AlignmentError


@dataclass(frozen=True)
class IndexRemap:
    """Big-list position (axis included) -> small-list series index (axis excluded)."""

    positions: dict[int, int] = field(default_factory=dict)

    def series_positions(self) -> dict[int, int]:
        """Same mapping keyed by big-list series index instead of position."""
        return {position - 1: index for position, index in self.positions.items()}

    def __len__(self) -> int:
        return len(self.positions)


@dataclass(frozen=True)
class Alignment:
    remap: IndexRemap
    colors: list[str]


def align_labels(big_labels: Sequence[str], small_labels: Sequence[str]) -> IndexRemap:
    """Match each small label to its position in ``big_labels``.

    Both lists start with the axis label and share one sort order, so a single
    forward scan suffices. A small label with no match ahead of the scan
    pointer means that ordering contract was broken upstream.
    """
    positions: dict[int, int] = {}
    y = 1
    for i in range(1, len(small_labels)):
        label = small_labels[i]
        while y < len(big_labels) and big_labels[y] != label:
            y += 1
        if y >= len(big_labels):
            raise AlignmentError(
                f"No label match for {label!r} (sample column {i}) in the aggregate labels"
            )
        positions[y] = i - 1
        y += 1
    return IndexRemap(positions=positions)


def project_colors(big_colors: Sequence[str], remap: IndexRemap) -> list[str]:
    colors: list[str] = []
    for position in sorted(remap.positions):
        colors.append(big_colors[position - 1])
    return colors


def project_visibility(big_visibility: Sequence[bool], remap: IndexRemap) -> list[bool]:
    projected = [False] * len(remap)
    for series, index in remap.series_positions().items():
        if series < len(big_visibility):
            projected[index] = bool(big_visibility[series])
    return projected


class SeriesAligner:
    def align(self, big_labels: Sequence[str], small_labels: Sequence[str]) -> IndexRemap:
        return align_labels(big_labels, small_labels)

    def align_with_colors(
        self,
        big_labels: Sequence[str],
        small_labels: Sequence[str],
        big_colors: Sequence[str],
    ) -> Alignment:
        remap = self.align(big_labels, small_labels)
        return Alignment(remap=remap, colors=project_colors(big_colors, remap))

    def project_visibility(
        self, big_visibility: Sequence[bool], remap: IndexRemap
    ) -> list[bool]:
        return project_visibility(big_visibility, remap)
