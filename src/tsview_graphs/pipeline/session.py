from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from tsview_graphs.config import AppConfig
from tsview_graphs.drilldown.cache import DrillDownBundle, DrillDownCache, Fetcher
from tsview_graphs.errors import AggregateLoadError
from tsview_graphs.features.aggregates import (
    AggregateMatrixExtractor,
    AggregateRow,
    AggregateSelector,
)
from tsview_graphs.features.alignment import SeriesAligner
from tsview_graphs.features.colors import series_colors
from tsview_graphs.features.histogram import HistogramEngine
from tsview_graphs.features.labels import IndexedLabels, LabelIndexer
from tsview_graphs.io.payloads import AggregatePayload, DrillDownPayload
from tsview_graphs.report.contracts import ChartUpdate, LowerChartsUpdate, legend_width

LOGGER = logging.getLogger(__name__)


async def _missing_fetcher(record_id: str) -> DrillDownPayload:
    raise RuntimeError(f"No drill-down fetcher configured (record {record_id})")


class GraphSession:
    """Aggregate, sample and histogram chart state for one viewer page."""

    def __init__(
        self,
        config: AppConfig | None = None,
        fetcher: Fetcher | None = None,
        *,
        stacked: bool = False,
    ) -> None:
        self.config = config or AppConfig()
        self.extractor = AggregateMatrixExtractor(self.config.aggregates)
        self.indexer = LabelIndexer(self.config.labels)
        self.histogram = HistogramEngine(self.config.histogram)
        self.aligner = SeriesAligner()
        self.cache = DrillDownCache(
            fetcher or _missing_fetcher,
            self.aligner,
            max_entries=self.config.drilldown.max_entries,
            default_unit=self.config.drilldown.default_unit,
        )
        self.stacked = stacked
        self.line: AggregateSelector = self.config.aggregates.default_line
        self.shadow_low: AggregateSelector = self.config.aggregates.default_shadow_low
        self.shadow_high: AggregateSelector = self.config.aggregates.default_shadow_high
        self.source = ""
        self.rows: list[AggregateRow] = []
        self.record_ids: dict[Any, str] = {}
        self.colors: list[str] = []
        self.configs: list[str] = []
        self.labels: IndexedLabels | None = None
        self.current: DrillDownBundle | None = None

    def select_metrics(self, display: str | None, legacy: str | None = None) -> None:
        """Load the persisted selection; call before ``load_aggregate``."""
        self.indexer.load_selection(display, legacy)

    def display_fragment(self) -> str:
        return self.indexer.display_fragment()

    def load_aggregate(
        self,
        payload: AggregatePayload,
        *,
        source: str = "",
        line: AggregateSelector | None = None,
        shadow_low: AggregateSelector | None = None,
        shadow_high: AggregateSelector | None = None,
    ) -> ChartUpdate:
        if payload.message:
            raise AggregateLoadError("backend", payload.message)
        if not payload.aggregates:
            raise AggregateLoadError("empty", "No data to plot!")

        rows = payload.rows()
        raw_labels = payload.raw_labels(
            self.extractor.block_width, axis_label=self.config.labels.axis_label
        )
        record_ids = payload.record_ids()
        selectors = (
            self.line if line is None else line,
            self.shadow_low if shadow_low is None else shadow_low,
            self.shadow_high if shadow_high is None else shadow_high,
        )
        # Validates the row layout and selectors before any session state is replaced.
        series = self._extract(rows, *selectors)
        self.line, self.shadow_low, self.shadow_high = selectors

        labels = self.indexer.index(raw_labels)
        self.rows = rows
        self.record_ids = record_ids
        self.source = source
        self.labels = labels
        self.colors = series_colors(len(labels), self.config.palette)
        self.configs = payload.config_pairs()
        self.current = None
        self.cache.reset(
            labels.labels_with_axis(),
            self.colors,
            source=source,
            multi_group=labels.multi_group,
            separator=self.config.labels.path_separator,
        )
        LOGGER.info(
            "Loaded %d aggregate rows for %d metrics from %s",
            len(rows),
            len(labels),
            source or "<unnamed source>",
        )
        return self._aggregate_update(series)

    def _extract(
        self,
        rows: list[AggregateRow],
        line: AggregateSelector,
        shadow_low: AggregateSelector,
        shadow_high: AggregateSelector,
        stacked: bool | None = None,
    ) -> list[list[Any]]:
        return self.extractor.extract(
            rows,
            line,
            shadow_low,
            shadow_high,
            self.stacked if stacked is None else stacked,
        )

    def _aggregate_update(self, series: list[list[Any]]) -> ChartUpdate:
        labels = self._require_labels()
        return ChartUpdate(
            series=series,
            labels=labels.labels_with_axis(),
            colors=list(self.colors),
            visibility=self.indexer.visibility_vector(),
            axis_mode="stacked" if self.stacked else "band",
            legend_width=legend_width(labels.max_label_length, self.config.legend),
            title=f"Aggregate: {self.source}" if self.source else "Aggregate",
        )

    def _require_labels(self) -> IndexedLabels:
        if self.labels is None:
            raise RuntimeError("No aggregate data loaded")
        return self.labels

    def update_aggregate(
        self,
        line: AggregateSelector,
        shadow_low: AggregateSelector,
        shadow_high: AggregateSelector,
    ) -> ChartUpdate:
        series = self._extract(self.rows, line, shadow_low, shadow_high)
        self.line = line
        self.shadow_low = shadow_low
        self.shadow_high = shadow_high
        return self._aggregate_update(series)

    def set_stacked(self, stacked: bool) -> ChartUpdate:
        series = self._extract(
            self.rows, self.line, self.shadow_low, self.shadow_high, stacked=stacked
        )
        self.stacked = stacked
        return self._aggregate_update(series)

    def record_id_for(self, ordinal: Any) -> str | None:
        return self.record_ids.get(ordinal)

    async def drill_down(self, ordinal: Any) -> LowerChartsUpdate | None:
        record_id = self.record_id_for(ordinal)
        if record_id is None:
            return None
        bundle = await self.cache.get(record_id)
        return self.show_bundle(bundle)

    def show_bundle(self, bundle: DrillDownBundle) -> LowerChartsUpdate:
        """Make ``bundle`` the current drill-down and build both lower chart updates."""
        self.current = bundle
        visibility = self.lower_visibility(bundle)
        width = legend_width(self._require_labels().max_label_length, self.config.legend)
        samples = ChartUpdate(
            series=bundle.sample_matrix,
            labels=list(bundle.labels),
            colors=list(bundle.colors),
            visibility=visibility,
            axis_mode="samples",
            legend_width=width,
            title=f"Points: {self.source}" if self.source else "Points",
            unit=bundle.unit,
        )
        return LowerChartsUpdate(
            record_id=bundle.record_id,
            samples=samples,
            histogram=self._histogram_update(bundle, visibility),
            config_html=bundle.rendered_config,
        )

    def lower_visibility(self, bundle: DrillDownBundle | None = None) -> list[bool]:
        bundle = bundle or self.current
        if bundle is None:
            return []
        return self.aligner.project_visibility(self.indexer.visibility_vector(), bundle.remap)

    def _histogram_update(self, bundle: DrillDownBundle, visibility: list[bool]) -> ChartUpdate:
        return ChartUpdate(
            series=self.histogram.compute(bundle.sample_matrix, visibility),
            labels=list(bundle.labels),
            colors=list(bundle.colors),
            visibility=visibility,
            axis_mode="histogram",
            legend_width=legend_width(self._require_labels().max_label_length, self.config.legend),
            title=f"Histogram of Points: {self.source}" if self.source else "Histogram of Points",
            unit=bundle.unit,
        )

    def refresh_histogram(self) -> ChartUpdate | None:
        if self.current is None:
            return None
        return self._histogram_update(self.current, self.lower_visibility())

    def set_visibility_for_metric(self, position: int, value: bool) -> ChartUpdate | None:
        """Toggle one aggregate series; returns the refreshed histogram, if any."""
        self.indexer.set_visible(position, value)
        return self.refresh_histogram()

    def set_visibility_for_all(
        self, positions: Iterable[int] | None, value: bool
    ) -> ChartUpdate | None:
        self.indexer.set_all_visible(positions, value)
        return self.refresh_histogram()

    def aggregate_visibility(self) -> list[bool]:
        return self.indexer.visibility_vector()
