from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from tsview_graphs.drilldown.configs import render_config_pairs
from tsview_graphs.features.alignment import IndexRemap, SeriesAligner
from tsview_graphs.io.payloads import DrillDownPayload

LOGGER = logging.getLogger(__name__)

EntryState = Literal["absent", "pending", "cached"]
Fetcher = Callable[[str], Awaitable[DrillDownPayload]]


@dataclass(frozen=True)
class DatasetContext:
    aggregate_labels: tuple[str, ...] = ()
    aggregate_colors: tuple[str, ...] = ()
    source: str = ""
    multi_group: bool = False
    separator: str = "/"


@dataclass(frozen=True)
class DrillDownBundle:
    record_id: str
    sample_matrix: list[list[Any]]
    labels: list[str]
    remap: IndexRemap
    colors: list[str]
    rendered_config: str
    unit: str


class DrillDownCache:
    """Per-record memo of drill-down samples and their derived chart artifacts.

    Entries belong to one aggregate dataset: ``reset`` must be called with the
    new aggregate labels and colors on every aggregate load. Concurrent lookups
    of the same record share a single fetch. A fetch that fails leaves the
    record absent so a later lookup retries it.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        aligner: SeriesAligner | None = None,
        *,
        max_entries: int | None = None,
        default_unit: str = "unknown",
    ) -> None:
        self.fetcher = fetcher
        self.aligner = aligner or SeriesAligner()
        self.max_entries = max_entries
        self.default_unit = default_unit
        self._entries: OrderedDict[str, DrillDownBundle] = OrderedDict()
        self._inflight: dict[str, asyncio.Future[DrillDownBundle]] = {}
        self.context = DatasetContext()

    def reset(
        self,
        aggregate_labels: Sequence[str],
        aggregate_colors: Sequence[str],
        *,
        source: str = "",
        multi_group: bool = False,
        separator: str = "/",
    ) -> None:
        if self._inflight:
            LOGGER.debug("Detaching %d in-flight drill-down fetches", len(self._inflight))
        self._entries.clear()
        self._inflight = {}
        self.context = DatasetContext(
            aggregate_labels=tuple(aggregate_labels),
            aggregate_colors=tuple(aggregate_colors),
            source=source,
            multi_group=multi_group,
            separator=separator,
        )

    def state(self, record_id: str) -> EntryState:
        if record_id in self._entries:
            return "cached"
        if record_id in self._inflight:
            return "pending"
        return "absent"

    def peek(self, record_id: str) -> DrillDownBundle | None:
        bundle = self._entries.get(record_id)
        if bundle is not None:
            self._entries.move_to_end(record_id)
        return bundle

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._entries

    async def get(self, record_id: str) -> DrillDownBundle:
        cached = self.peek(record_id)
        if cached is not None:
            return cached
        future = self._inflight.get(record_id)
        if future is None:
            future = asyncio.ensure_future(self._load(record_id, self.context))
            self._inflight[record_id] = future
            future.add_done_callback(
                lambda done, key=record_id: self._forget_inflight(key, done)
            )
        # Shield so one cancelled waiter does not cancel the shared fetch.
        return await asyncio.shield(future)

    def request(
        self,
        record_id: str,
        on_ready: Callable[[DrillDownBundle], None],
    ) -> DrillDownBundle | None:
        """Return a cached bundle now, or fetch and hand it to ``on_ready`` later.

        Must be called from a running event loop when the record is not cached.
        """
        cached = self.peek(record_id)
        if cached is not None:
            return cached
        task = asyncio.ensure_future(self.get(record_id))
        task.add_done_callback(lambda done: self._deliver(record_id, done, on_ready))
        return None

    def _deliver(
        self,
        record_id: str,
        done: asyncio.Future[DrillDownBundle],
        on_ready: Callable[[DrillDownBundle], None],
    ) -> None:
        if done.cancelled():
            return
        error = done.exception()
        if error is not None:
            LOGGER.error("Drill-down for record %s failed: %s", record_id, error)
            return
        on_ready(done.result())

    def _forget_inflight(self, record_id: str, done: asyncio.Future[DrillDownBundle]) -> None:
        if self._inflight.get(record_id) is done:
            del self._inflight[record_id]

    async def _load(self, record_id: str, context: DatasetContext) -> DrillDownBundle:
        payload = await self.fetcher(record_id)
        bundle = self.build_bundle(record_id, payload, context)
        if context is not self.context:
            LOGGER.debug("Dropping drill-down for record %s from a previous dataset", record_id)
            return bundle
        self._store(record_id, bundle)
        return bundle

    def sample_labels(
        self, payload: DrillDownPayload, context: DatasetContext | None = None
    ) -> list[str]:
        context = context or self.context
        labels = list(payload.points_column_names)
        if context.multi_group and context.source and labels:
            # Aggregate labels are full paths when several groups are shown.
            axis, *metrics = labels
            labels = [axis, *[f"{context.source}{context.separator}{label}" for label in metrics]]
        return labels

    def build_bundle(
        self,
        record_id: str,
        payload: DrillDownPayload,
        context: DatasetContext | None = None,
    ) -> DrillDownBundle:
        context = context or self.context
        labels = self.sample_labels(payload, context)
        alignment = self.aligner.align_with_colors(
            context.aggregate_labels, labels, context.aggregate_colors
        )
        return DrillDownBundle(
            record_id=record_id,
            sample_matrix=payload.points,
            labels=labels,
            remap=alignment.remap,
            colors=alignment.colors,
            rendered_config=render_config_pairs(payload.config_pairs),
            unit=payload.unit or self.default_unit,
        )

    def _store(self, record_id: str, bundle: DrillDownBundle) -> None:
        self._entries[record_id] = bundle
        self._entries.move_to_end(record_id)
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                LOGGER.debug("Evicted drill-down record %s", evicted)
