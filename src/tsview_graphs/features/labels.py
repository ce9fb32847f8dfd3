from __future__ import annotations

import base64
import hashlib
import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from tsview_graphs.config import LabelsConfig

LOGGER = logging.getLogger(__name__)

HASH_BYTES = 6
# 6 digest bytes encode to exactly 8 base64 characters with no padding.
HASH_WIDTH = 8


def label_hash(label: str, algorithm: str = "md5") -> str:
    """Return the 8-character URL-safe identity of a metric label.

    The identity is the first 48 bits of the label's digest. For n labels the
    chance of any collision is roughly n**2 / 2**49, which stays below 1e-6
    for label sets under ten thousand entries.
    """
    digest = hashlib.new(algorithm, label.encode("utf-8"), usedforsecurity=False).digest()
    return base64.urlsafe_b64encode(digest[:HASH_BYTES]).decode("ascii")


class VisibilitySet:
    """Selected metric identities, persisted as concatenated fixed-width hashes."""

    def __init__(self, hashes: Iterable[str] = ()) -> None:
        # dict keeps insertion order so the serialized fragment is stable.
        self._members: dict[str, None] = {}
        for value in hashes:
            self.add(value)

    @classmethod
    def from_fragment(cls, text: str | None) -> VisibilitySet:
        selection = cls()
        if not text:
            return selection
        for start in range(0, len(text), HASH_WIDTH):
            chunk = text[start : start + HASH_WIDTH]
            if len(chunk) != HASH_WIDTH:
                LOGGER.warning("Ignoring truncated selection hash %r", chunk)
                continue
            selection.add(chunk)
        return selection

    def to_fragment(self) -> str:
        return "".join(self._members)

    def add(self, value: str) -> None:
        if len(value) != HASH_WIDTH:
            raise ValueError(f"Selection hash must be {HASH_WIDTH} characters, got {value!r}")
        self._members[value] = None

    def discard(self, value: str) -> None:
        self._members.pop(value, None)

    def clear(self) -> None:
        self._members.clear()

    def __contains__(self, value: object) -> bool:
        return value in self._members

    def __iter__(self) -> Iterator[str]:
        return iter(self._members)

    def __len__(self) -> int:
        return len(self._members)


def parse_legacy_visibility(text: str | None) -> list[bool]:
    """'101' -> [True, False, True]; any character other than '1' is unselected."""
    if not text:
        return []
    return [char == "1" for char in text]


@dataclass(frozen=True)
class IndexedLabels:
    axis_label: str
    short_labels: tuple[str, ...]
    full_labels: tuple[str, ...]
    hashes: tuple[str, ...]
    multi_group: bool
    max_label_length: int
    visibility: tuple[bool, ...]
    converted_legacy: bool = False

    @property
    def display_labels(self) -> tuple[str, ...]:
        return self.full_labels if self.multi_group else self.short_labels

    def labels_with_axis(self) -> list[str]:
        return [self.axis_label, *self.display_labels]

    def __len__(self) -> int:
        return len(self.hashes)


class LabelIndexer:
    def __init__(
        self,
        config: LabelsConfig | None = None,
        visibility: VisibilitySet | None = None,
    ) -> None:
        self.config = config or LabelsConfig()
        self.visibility = visibility if visibility is not None else VisibilitySet()
        self.labels: IndexedLabels | None = None
        self._legacy_visibility: list[bool] = []

    def load_selection(self, display: str | None, legacy: str | None = None) -> None:
        """Replace the selection with the persisted ``display`` and legacy fragments."""
        self.visibility = VisibilitySet.from_fragment(display)
        self._legacy_visibility = parse_legacy_visibility(legacy)

    def hash(self, label: str) -> str:
        return label_hash(label, self.config.hash_algorithm)

    def _strip_marker(self, label: str) -> str:
        marker = self.config.sort_last_marker
        if not marker:
            return label
        return label.replace(marker, "", 1)

    def index(
        self,
        raw_labels: Sequence[str],
        legacy_visibility: Sequence[bool] | None = None,
    ) -> IndexedLabels:
        if legacy_visibility is not None:
            self._legacy_visibility = list(legacy_visibility)
        legacy = self._legacy_visibility
        # The positional form is only honoured once, then forgotten.
        self._legacy_visibility = []

        separator = self.config.path_separator
        axis_label = raw_labels[0] if raw_labels else self.config.axis_label
        full_labels: list[str] = []
        short_labels: list[str] = []
        hashes: list[str] = []
        groups: set[str] = set()
        for position, raw_label in enumerate(raw_labels[1:]):
            label = self._strip_marker(raw_label)
            label_id = self.hash(label)
            if position < len(legacy) and legacy[position]:
                self.visibility.add(label_id)
            group, _, leaf = label.rpartition(separator)
            groups.add(group)
            full_labels.append(label)
            short_labels.append(leaf)
            hashes.append(label_id)

        multi_group = len(groups) > 1
        display = full_labels if multi_group else short_labels
        self.labels = IndexedLabels(
            axis_label=axis_label,
            short_labels=tuple(short_labels),
            full_labels=tuple(full_labels),
            hashes=tuple(hashes),
            multi_group=multi_group,
            max_label_length=max((len(label) for label in display), default=0),
            visibility=tuple(label_id in self.visibility for label_id in hashes),
            converted_legacy=any(legacy),
        )
        if self.labels.converted_legacy:
            LOGGER.info("Converted positional selection for %d labels", sum(legacy))
        return self.labels

    def _require_labels(self) -> IndexedLabels:
        if self.labels is None:
            raise RuntimeError("No labels indexed yet")
        return self.labels

    def visibility_vector(self) -> list[bool]:
        labels = self._require_labels()
        return [label_id in self.visibility for label_id in labels.hashes]

    def set_visible(self, position: int, value: bool) -> None:
        label_id = self._require_labels().hashes[position]
        if value:
            self.visibility.add(label_id)
        else:
            self.visibility.discard(label_id)

    def set_all_visible(self, positions: Iterable[int] | None, value: bool) -> None:
        """Apply ``value`` to the given series positions, or every series when None."""
        labels = self._require_labels()
        targets = range(len(labels)) if positions is None else positions
        for position in targets:
            self.set_visible(position, value)

    def display_fragment(self) -> str:
        return self.visibility.to_fragment()
