from __future__ import annotations

from pathlib import Path

import typer

from tsview_graphs.config import DEFAULT_CONFIG_PATH, AppConfig, load_config
from tsview_graphs.errors import TsviewGraphsError
from tsview_graphs.features.aggregates import to_frame as aggregate_frame
from tsview_graphs.features.histogram import to_frame as histogram_frame
from tsview_graphs.io.read import load_aggregate_payload, load_drilldown_payload
from tsview_graphs.io.write import table_format, write_chart_json, write_table
from tsview_graphs.logging import configure_logging
from tsview_graphs.pipeline.session import GraphSession
from tsview_graphs.report.contracts import ChartUpdate

app = typer.Typer(no_args_is_help=True, add_completion=False)


def _load_app_config(config_path: Path | None) -> AppConfig:
    if config_path is None:
        if DEFAULT_CONFIG_PATH.exists():
            return load_config(DEFAULT_CONFIG_PATH)
        return AppConfig()
    return load_config(config_path)


def _table_format(path: Path | None) -> str | None:
    if path is None:
        return None
    try:
        return table_format(path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--table") from exc


def _aggregate_selector(value: str) -> int | str:
    return int(value) if value.isdigit() else value


def _load_session(
    aggregate: Path,
    cfg: AppConfig,
    *,
    display: str | None,
    legacy: str | None,
    source: str,
    line: str | None = None,
    low: str | None = None,
    high: str | None = None,
    stacked: bool = False,
) -> tuple[GraphSession, ChartUpdate]:
    session = GraphSession(cfg, stacked=stacked)
    session.select_metrics(display, legacy)
    try:
        update = session.load_aggregate(
            load_aggregate_payload(aggregate),
            source=source,
            line=None if line is None else _aggregate_selector(line),
            shadow_low=None if low is None else _aggregate_selector(low),
            shadow_high=None if high is None else _aggregate_selector(high),
        )
    except TsviewGraphsError as exc:
        typer.echo(f"Aggregate load failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    return session, update


@app.command()
def extract(
    aggregate: Path = typer.Option(..., exists=True, readable=True, resolve_path=True),
    out: Path = typer.Option(Path("out/aggregate.json"), resolve_path=True),
    config: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    line: str | None = typer.Option(None, help="Line aggregate name or logical index."),
    low: str | None = typer.Option(None, help="Lower shadow aggregate name or index."),
    high: str | None = typer.Option(None, help="Upper shadow aggregate name or index."),
    stacked: bool = typer.Option(False, help="Emit stacked single values instead of bands."),
    source: str = typer.Option("", help="Source path shown in chart titles."),
    display: str | None = typer.Option(None, help="Persisted selection fragment."),
    table: Path | None = typer.Option(
        None, resolve_path=True, help="Optional .csv or .parquet export of the series."
    ),
) -> None:
    """Decode a saved aggregate response into chart-ready series."""
    configure_logging()
    table_fmt = _table_format(table)
    cfg = _load_app_config(config)
    _, update = _load_session(
        aggregate,
        cfg,
        display=display,
        legacy=None,
        source=source,
        line=line,
        low=low,
        high=high,
        stacked=stacked,
    )
    write_chart_json(update.to_options(), out)
    if table is not None:
        write_table(aggregate_frame(update.series, update.labels), table, fmt=table_fmt)
    typer.echo(f"Extracted {len(update.series)} rows for {len(update.labels) - 1} metrics: {out}")


@app.command()
def labels(
    aggregate: Path = typer.Option(..., exists=True, readable=True, resolve_path=True),
    config: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    display: str | None = typer.Option(None, help="Persisted selection fragment."),
    legacy: str | None = typer.Option(None, help="Legacy positional selection, e.g. 1011."),
) -> None:
    """List metric labels with their identities and selection state."""
    configure_logging()
    cfg = _load_app_config(config)
    session, update = _load_session(aggregate, cfg, display=display, legacy=legacy, source="")
    indexed = session.labels
    if indexed is None:  # pragma: no cover
        raise typer.Exit(code=1)
    for label, label_id, visible in zip(indexed.display_labels, indexed.hashes, update.visibility):
        typer.echo(f"{label_id} {'*' if visible else ' '} {label}")
    typer.echo(f"display={session.display_fragment()}")
    if indexed.converted_legacy:
        typer.echo("legacy selection converted")


@app.command()
def drilldown(
    aggregate: Path = typer.Option(..., exists=True, readable=True, resolve_path=True),
    record: Path = typer.Option(..., exists=True, readable=True, resolve_path=True),
    record_id: str = typer.Option("record", help="Identifier stored on the bundle."),
    out: Path = typer.Option(Path("out/drilldown.json"), resolve_path=True),
    config: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    source: str = typer.Option("", help="Source path of the record."),
    display: str | None = typer.Option(None, help="Persisted selection fragment."),
    table: Path | None = typer.Option(
        None, resolve_path=True, help="Optional .csv or .parquet export of the histogram."
    ),
) -> None:
    """Align a saved record response to its aggregate view and bucket its samples."""
    configure_logging()
    table_fmt = _table_format(table)
    cfg = _load_app_config(config)
    session, _ = _load_session(aggregate, cfg, display=display, legacy=None, source=source)
    try:
        bundle = session.cache.build_bundle(record_id, load_drilldown_payload(record))
    except TsviewGraphsError as exc:
        typer.echo(f"Drill-down failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    lower = session.show_bundle(bundle)
    write_chart_json(
        {
            "record_id": lower.record_id,
            "samples": lower.samples.to_options(),
            "histogram": lower.histogram.to_options(),
            "config_html": lower.config_html,
            "remap": {str(key): value for key, value in bundle.remap.positions.items()},
        },
        out,
    )
    if table is not None:
        write_table(
            histogram_frame(lower.histogram.series, lower.histogram.labels),
            table,
            fmt=table_fmt,
        )
    typer.echo(f"Drill-down for {record_id}: {len(bundle.remap)} aligned series: {out}")


if __name__ == "__main__":
    app()
