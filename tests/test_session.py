from __future__ import annotations

import asyncio

import pytest

from tsview_graphs.errors import AggregateLoadError, MalformedDataError
from tsview_graphs.features.labels import label_hash
from tsview_graphs.io.payloads import AggregatePayload, DrillDownPayload
from tsview_graphs.pipeline.session import GraphSession


def _block(base: int) -> list[float]:
    return [float(base + column) for column in range(12)]


def _aggregate_payload() -> AggregatePayload:
    return AggregatePayload(
        aggregates=[
            [1, *_block(0), *_block(100), *_block(200)],
            [2, *_block(10), *_block(110), *_block(210)],
        ],
        aggregates_column_names=[
            "web/cpu.min",
            "web/mem.min",
            "web/~disk.min",
        ],
        ids=["rec-1", "rec-2"],
        configs=[["web1"], ["web2"]],
        configs_column_names=["host"],
    )


def _drilldown_payload() -> DrillDownPayload:
    return DrillDownPayload(
        points=[[0, 1.0, 5.0], [1, 2.0, 6.0], [2, 3.0, 7.0]],
        points_column_names=["x", "cpu", "disk"],
        config_pairs={"host": "web1"},
        unit="percent",
    )


class _Fetcher:
    def __init__(self) -> None:
        self.calls: list[str] = []

    async def __call__(self, record_id: str) -> DrillDownPayload:
        self.calls.append(record_id)
        return _drilldown_payload()


def test_load_aggregate_builds_band_update() -> None:
    session = GraphSession()

    update = session.load_aggregate(_aggregate_payload(), source="web")

    assert update.axis_mode == "band"
    assert update.labels == ["x", "cpu", "mem", "disk"]
    assert update.series[0] == [1, [2.0, 1.0, 0.0], [102.0, 101.0, 100.0], [202.0, 201.0, 200.0]]
    assert update.title == "Aggregate: web"
    assert update.legend_width == 250
    assert len(update.colors) == 3
    assert update.visibility == [False, False, False]
    assert session.configs == ["host=web1", "host=web2"]
    assert session.record_id_for(2) == "rec-2"


def test_load_aggregate_rejects_backend_message() -> None:
    payload = _aggregate_payload()
    payload.message = "No such source"

    with pytest.raises(AggregateLoadError) as exc_info:
        GraphSession().load_aggregate(payload)

    assert exc_info.value.kind == "backend"
    assert str(exc_info.value) == "backend: No such source"


def test_load_aggregate_rejects_empty_payload() -> None:
    with pytest.raises(AggregateLoadError) as exc_info:
        GraphSession().load_aggregate(AggregatePayload())

    assert exc_info.value.kind == "empty"


def test_malformed_load_keeps_previous_state() -> None:
    session = GraphSession()
    session.load_aggregate(_aggregate_payload(), source="web")
    bad = AggregatePayload(
        aggregates=[[1, 1.0, 2.0]], aggregates_column_names=["a.min"], ids=["r"]
    )

    with pytest.raises(MalformedDataError):
        session.load_aggregate(bad, source="other")

    assert session.source == "web"
    assert session.labels is not None
    assert len(session.labels) == 3


def test_stacked_and_aggregate_switches_reuse_rows() -> None:
    session = GraphSession()
    session.load_aggregate(_aggregate_payload())

    stacked = session.set_stacked(True)
    assert stacked.axis_mode == "stacked"
    assert stacked.series[1] == [2, 11.0, 111.0, 211.0]

    switched = session.update_aggregate("p50", "p25", "p75")
    assert switched.axis_mode == "stacked"
    assert switched.series[0] == [1, 7.0, 107.0, 207.0]


def test_persisted_selection_marks_visible_series() -> None:
    session = GraphSession()
    session.select_metrics(label_hash("web/mem"))

    update = session.load_aggregate(_aggregate_payload())

    assert update.visibility == [False, True, False]


def test_legacy_selection_is_converted_to_display_fragment() -> None:
    session = GraphSession()
    session.select_metrics(None, legacy="101")

    update = session.load_aggregate(_aggregate_payload())

    assert update.visibility == [True, False, True]
    assert session.display_fragment() == label_hash("web/cpu") + label_hash("web/disk")


def test_drill_down_aligns_samples_and_builds_histogram() -> None:
    fetcher = _Fetcher()
    session = GraphSession(fetcher=fetcher)
    session.select_metrics(label_hash("web/cpu"))
    session.load_aggregate(_aggregate_payload(), source="web")

    lower = asyncio.run(session.drill_down(1))

    assert lower is not None
    assert lower.record_id == "rec-1"
    assert lower.samples.axis_mode == "samples"
    assert lower.samples.colors == [session.colors[0], session.colors[2]]
    assert lower.samples.visibility == [True, False]
    assert lower.samples.to_options()["ylabel"] == "percent"
    assert lower.histogram.axis_mode == "histogram"
    assert lower.histogram.to_options()["xlabel"] == "percent"
    assert sum(row[1] for row in lower.histogram.series) == 3
    assert all(row[2] == 0 for row in lower.histogram.series)
    assert lower.config_html == "host=web1"
    assert fetcher.calls == ["rec-1"]


def test_drill_down_unknown_ordinal_returns_none() -> None:
    session = GraphSession(fetcher=_Fetcher())
    session.load_aggregate(_aggregate_payload())

    assert asyncio.run(session.drill_down(99)) is None


def test_visibility_toggle_refreshes_histogram() -> None:
    session = GraphSession(fetcher=_Fetcher())
    session.load_aggregate(_aggregate_payload())
    assert session.refresh_histogram() is None
    asyncio.run(session.drill_down(1))

    histogram = session.set_visibility_for_metric(2, True)

    assert histogram is not None
    assert histogram.visibility == [False, True]
    assert sum(row[2] for row in histogram.series) == 3
    assert histogram.series[0][0] == 5.0

    histogram = session.set_visibility_for_all(None, False)
    assert histogram is not None
    assert session.aggregate_visibility() == [False, False, False]
    assert all(row[1] == 0 and row[2] == 0 for row in histogram.series)


def test_reload_resets_drilldown_cache() -> None:
    fetcher = _Fetcher()
    session = GraphSession(fetcher=fetcher)
    session.load_aggregate(_aggregate_payload())
    asyncio.run(session.drill_down(1))
    assert "rec-1" in session.cache

    session.load_aggregate(_aggregate_payload())

    assert "rec-1" not in session.cache
    assert session.current is None
    asyncio.run(session.drill_down(1))
    assert fetcher.calls == ["rec-1", "rec-1"]


def test_unknown_selector_on_switch_keeps_previous_selectors() -> None:
    session = GraphSession()
    session.load_aggregate(_aggregate_payload())

    with pytest.raises(ValueError):
        session.update_aggregate("p50", "bogus", "max")

    assert (session.line, session.shadow_low, session.shadow_high) == ("mean", "min", "max")
    stacked = session.set_stacked(True)
    assert stacked.series[0] == [1, 1.0, 101.0, 201.0]


def test_unknown_selector_on_load_keeps_session_usable() -> None:
    session = GraphSession()
    session.load_aggregate(_aggregate_payload(), source="web")

    with pytest.raises(ValueError):
        session.load_aggregate(_aggregate_payload(), source="other", line="nope")

    assert session.line == "mean"
    assert session.source == "web"
    reloaded = session.load_aggregate(_aggregate_payload(), source="other")
    assert reloaded.series[0][1] == [2.0, 1.0, 0.0]


def test_unknown_selector_on_stacked_switch_keeps_mode() -> None:
    session = GraphSession()
    session.load_aggregate(_aggregate_payload())
    session.line = "p42"

    with pytest.raises(ValueError):
        session.set_stacked(True)

    assert session.stacked is False


def test_package_exports_session_and_errors() -> None:
    import tsview_graphs

    assert tsview_graphs.GraphSession is GraphSession
    assert issubclass(tsview_graphs.AggregateLoadError, tsview_graphs.TsviewGraphsError)
