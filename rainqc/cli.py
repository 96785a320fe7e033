"""
Command-line interface for the Rainfall QC toolkit.

This module provides a Rich-enhanced, argparse-based CLI for detecting
and correcting outliers in station rainfall series. It:

* Loads configuration from an optional YAML file, with flag overrides.
* Reads station documents (JSON, or CSV when a ``data`` section is set).
* Runs outlier detection and correction per station.
* Writes corrected documents, per-station JSON reports, optional charts
  and a Markdown summary.
* Optionally renders a terminal plot of the last corrected station.

The main entry point is :func:`main`, which is wired to the console
script ``rain-qc`` in pyproject.toml.
"""

from __future__ import annotations

import argparse
import logging
import os
import re
from typing import Dict, Iterable, List, Match, Optional, Sequence, cast

import plotille
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme
from rich_argparse import RichHelpFormatter
from tqdm import tqdm

from rainqc.config import OutlierConfig, RunConfig, load_config
from rainqc.errors import ConfigurationError, StationDataError
from rainqc.io import ensure_dir, output_paths, read_csv_station, read_station, write_json
from rainqc.logging_config import configure_logging
from rainqc.plotting import plot_station_corrections
from rainqc.report import METHOD_LABELS, build_report, generate_summary
from rainqc.station import OutlierBatch, StationResult

logger = logging.getLogger(__name__)

# Console with a simple theme for status messages.
custom_theme = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "bold red",
        "step": "magenta",
    }
)
console: Console = Console(theme=custom_theme)

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    """
    Build and return the argument parser for the Rainfall QC CLI.

    Returns
    -------
    argparse.ArgumentParser
        The configured argument parser instance.
    """
    parser = argparse.ArgumentParser(
        prog="rain-qc",
        description="Rainfall QC Toolkit - detect and correct rainfall outliers.",
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument(
        "inputs",
        nargs="+",
        help="Station JSON files (or CSV files when the config has a data section).",
    )
    parser.add_argument(
        "-c",
        "--config",
        help="Path to YAML config file.",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        help="Maximum plausible rainfall in mm for one reading (default: 25).",
    )
    parser.add_argument(
        "--window-size",
        type=int,
        help="Readings on each side used for the local median (default: 6).",
    )
    parser.add_argument(
        "--no-auto-correct",
        action="store_true",
        help="Report outliers without correcting them.",
    )
    parser.add_argument(
        "--alert-threshold",
        type=int,
        help="Alert when a station has more outliers than this (default: 5).",
    )
    parser.add_argument(
        "-o",
        "--output-dir",
        help="Directory for corrected documents and reports (default: next to inputs).",
    )
    parser.add_argument(
        "--report",
        help="Path for the Markdown run summary.",
    )
    parser.add_argument(
        "--charts",
        action="store_true",
        help="Write a PNG chart for each station with outliers.",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable progress bars (for very quiet or non-TTY runs).",
    )
    parser.add_argument(
        "--no-chart-preview",
        action="store_true",
        help="Disable inline terminal chart preview.",
    )
    parser.add_argument(
        "--log-level",
        help="Logging level (default: $RAINQC_LOG_LEVEL or WARNING).",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> RunConfig:
    """
    Load the YAML config, if any, and apply command-line overrides.

    Raises
    ------
    ConfigurationError
        If the resulting outlier options are invalid.
    """
    cfg = load_config(args.config) if args.config else RunConfig()

    options = cfg.outlier.as_dict()
    if args.threshold is not None:
        options["threshold"] = args.threshold
    if args.window_size is not None:
        options["windowSize"] = args.window_size
    if args.alert_threshold is not None:
        options["alertThreshold"] = args.alert_threshold
    if args.no_auto_correct:
        options["autoCorrect"] = False
    cfg.outlier = OutlierConfig.from_mapping(options)

    if args.output_dir is not None:
        cfg.output.output_dir = args.output_dir
    if args.report is not None:
        cfg.output.report_path = args.report
    return cfg


def _print_header(cfg: RunConfig, n_inputs: int) -> None:
    console.print(
        Panel.fit(
            "Rainfall QC Toolkit\n\n"
            f"Stations: [bold]{n_inputs}[/bold]   "
            f"threshold={cfg.outlier.threshold}mm, "
            f"window={cfg.outlier.window_size}, "
            f"auto-correct={'on' if cfg.outlier.auto_correct else 'off'}",
            title="Rain QC",
            border_style="step",
        )
    )


def _load_input(path: str, cfg: RunConfig) -> dict:
    if path.lower().endswith(".csv"):
        if cfg.data is None:
            raise StationDataError(f"{path}: CSV input needs a 'data' section in the config")
        return read_csv_station(path, cfg.data)
    return read_station(path)


def _print_station_table(results: Sequence[StationResult]) -> None:
    """
    Print a table with one row per station.

    Parameters
    ----------
    results
        Station results in input order.
    """
    table = Table(title="Stations", show_lines=True)
    table.add_column("Station", style="cyan", no_wrap=True)
    table.add_column("Readings", style="white", no_wrap=True)
    table.add_column("Outliers", style="white", no_wrap=True)
    table.add_column("Corrected", style="white", no_wrap=True)
    table.add_column("Malformed", style="white", no_wrap=True)
    table.add_column("Methods", style="white")

    for r in results:
        if r.correction is None:
            table.add_row(r.station_name, "-", "-", "-", "-", f"[error]{r.error}[/error]")
            continue
        methods = ", ".join(
            f"{METHOD_LABELS.get(m, m)} x{n}" for m, n in r.correction.methods_used.items()
        )
        table.add_row(
            r.station_name,
            str(len(r.correction.corrected_data)),
            str(r.outlier_count),
            str(r.corrections_applied),
            str(len(r.correction.record_errors)),
            methods or "-",
        )

    console.print(table)


def _preview_chart_terminal(result: StationResult) -> None:
    """
    Render a coloured line plot of the corrected series in the terminal.

    The preview uses plotille to draw a simple ASCII chart and applies Rich
    styling so that axis numbers are bold white.

    Parameters
    ----------
    result
        Station result whose corrected series is plotted.
    """
    if result.correction is None:
        return
    df = result.correction.to_frame()
    if df.empty:
        console.print("[warning]No data available for terminal plot.[/warning]")
        return

    max_points: int = 200
    truncated = len(df) > max_points
    view = df.iloc[:max_points]

    y_vals = view["rainfall_mm"].astype(float).to_list()
    x_vals = list(range(len(y_vals)))

    fig: plotille.Figure = plotille.Figure()
    fig.width = 80
    fig.height = 20
    fig.x_label = "Sample index"
    fig.y_label = "rainfall_mm"
    fig.color_mode = "byte"  # enable 256-color output

    # plotille is untyped, so we ignore the "partially unknown" warning here.
    fig.set_x_limits(  # type: ignore[reportUnknownMemberType]
        min_=0,
        max_=max(len(x_vals) - 1, 1),
    )
    fig.plot(  # type: ignore[reportUnknownMemberType]
        x_vals,
        y_vals,
        label="corrected",
        lc=63,  # bright-ish colour in 256-color space
    )

    plot_str: str = cast(str, fig.show(legend=True))

    console.print(
        Panel.fit(
            f"Corrected series for {result.station_name} (plotille).\n"
            "Use --charts for a PNG with raw and corrected values.",
            title="Chart preview",
            border_style="step",
        )
    )

    text: Text = Text.from_ansi(plot_str)
    plain: str = text.plain

    # Style numeric tokens (axis numbers, tick labels) as bold white.
    for match in re.finditer(r"-?\d+(?:\.\d+)?", plain):
        match_span: Match[str] = match
        start, end = match_span.span()
        text.stylize("bold white", start, end)

    console.print(text)

    if truncated:
        console.print(
            "[warning]Preview truncated to first "
            f"{max_points} samples for readability.[/warning]"
        )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Run the Rainfall QC command-line interface.

    This function orchestrates:

    * Argument parsing and configuration loading.
    * Reading each station input.
    * Outlier detection and correction.
    * Writing corrected documents, reports and charts.
    * Summary tables and optional terminal chart preview.

    Returns
    -------
    int
        ``0`` on success, ``1`` if any input failed, ``2`` on configuration
        errors.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        cfg = resolve_config(args)
    except (ConfigurationError, KeyError, TypeError, OSError, yaml.YAMLError) as exc:
        console.print(f"[error]Invalid configuration: {exc}[/error]")
        return EXIT_CONFIG_ERROR

    _print_header(cfg, len(args.inputs))

    batch = OutlierBatch(cfg.outlier)
    results: List[StationResult] = []
    written: Dict[str, str] = {}
    chart_paths: Dict[str, str] = {}
    failed_inputs = 0

    console.print("\n[step]Processing stations...[/step]")
    if args.no_progress:
        input_iter: Iterable[str] = args.inputs
    else:
        input_iter = tqdm(args.inputs, desc="Stations", unit="station")

    for path in input_iter:
        try:
            document = _load_input(path, cfg)
        except (OSError, ValueError) as exc:
            # json.JSONDecodeError and StationDataError are ValueErrors.
            logger.error("Could not read %s: %s", path, exc)
            console.print(f"[error]Could not read {path}: {exc}[/error]")
            failed_inputs += 1
            continue

        result = batch.process(document)
        results.append(result)
        if result.error is not None:
            failed_inputs += 1
            continue
        if not result.had_outliers:
            continue

        corrected_path, report_path = output_paths(path, cfg.output.output_dir)
        if cfg.outlier.auto_correct:
            write_json(corrected_path, result.document)
            written[f"{result.station_name} (corrected)"] = corrected_path
        write_json(report_path, build_report([result], cfg.outlier))
        written[f"{result.station_name} (report)"] = report_path

        if args.charts:
            chart_paths[result.station] = plot_station_corrections(result, cfg.output.charts_dir)
            written[f"{result.station_name} (chart)"] = chart_paths[result.station]

    console.print("\n[step]Summarising...[/step]")
    _print_station_table(results)

    stats = batch.stats
    if stats.total_outliers == 0:
        console.print("[success]No outliers detected.[/success]")
    else:
        console.print(
            f"[warning]{stats.total_outliers} outliers in "
            f"{stats.stations_with_outliers} of {stats.stations_processed} stations; "
            f"{stats.corrections_applied} corrected.[/warning]"
        )
    for alert in stats.alerts:
        console.print(f"[error]ALERT[/error] {alert['stationName']}: {alert['message']}")

    if cfg.output.report_path:
        ensure_dir(cfg.output.report_path)
        generate_summary(
            results,
            stats,
            cfg.outlier,
            cfg.output.report_path,
            chart_paths={
                station: os.path.relpath(p, os.path.dirname(os.path.abspath(cfg.output.report_path)))
                for station, p in chart_paths.items()
            },
        )
        written["Summary report"] = cfg.output.report_path

    if written:
        out_table = Table(title="Outputs", show_lines=True)
        out_table.add_column("Artifact", style="cyan", no_wrap=True)
        out_table.add_column("Path", style="white")
        for label, p in written.items():
            out_table.add_row(label, p)
        console.print(out_table)

    if not args.no_chart_preview:
        corrected = [r for r in results if r.corrections_applied]
        if corrected:
            _preview_chart_terminal(corrected[-1])

    if failed_inputs:
        console.print(
            Panel.fit(
                f"[error]{failed_inputs} input(s) could not be processed.[/error]",
                title="Done",
                border_style="error",
            )
        )
        return EXIT_INPUT_ERROR

    console.print(
        Panel.fit(
            "[success]QC complete.[/success]\n"
            "Corrected readings keep their raw value in original_rainfall_mm.",
            title="Done",
            border_style="success",
        )
    )
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
