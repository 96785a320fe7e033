"""
Plotting helpers for the Rainfall QC toolkit.

This module provides a quick-look chart of a station's rainfall series,
showing the raw readings, the corrected values and the flagged outliers,
and saves it to disk.
"""

from __future__ import annotations

import os

import matplotlib.pyplot as plt
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from rainqc.io import ensure_dir
from rainqc.rules import FLAG_OUTLIER
from rainqc.station import StationResult


def plot_station_corrections(result: StationResult, out_dir: str) -> str:
    """
    Plot a station's rainfall with outlier corrections and save it as PNG.

    The raw series is drawn as a line, corrected values are overlaid as
    markers, and each outlier's original value is marked with a cross.

    Parameters
    ----------
    result
        Processed station result. Must have a correction result.
    out_dir
        Directory in which the chart PNG file should be written.

    Returns
    -------
    str
        The filesystem path of the saved PNG chart.
    """
    if result.correction is None:
        raise ValueError(f"Station {result.station} has no correction result to plot")

    ensure_dir(os.path.join(out_dir, "chart.png"))
    df = result.correction.to_frame()
    raw = df["original_rainfall_mm"].fillna(df["rainfall_mm"])

    fig: Figure
    ax: Axes
    fig, ax = plt.subplots(figsize=(10, 4)) # pyright: ignore[reportUnknownMemberType]

    ax.plot(df.index, raw, label="raw rainfall_mm", linewidth=1)  # type: ignore[reportUnknownMemberType]

    mask = df["qc_flag"] == FLAG_OUTLIER
    flagged = df[mask]
    if not flagged.empty:
        ax.scatter(  # type: ignore[reportUnknownMemberType]
            flagged.index,
            raw[mask],
            marker="x",
            color="red",
            label="Outlier",
        )
        ax.scatter(  # type: ignore[reportUnknownMemberType]
            flagged.index,
            flagged["rainfall_mm"],
            marker="o",
            label="Corrected",
        )

    ax.axhline(result.correction.threshold, linestyle="--", linewidth=0.8, label="Threshold")  # type: ignore[reportUnknownMemberType]
    ax.set_title(f"{result.station_name} - rainfall outliers")  # type: ignore[reportUnknownMemberType]
    ax.set_xlabel("Time")  # type: ignore[reportUnknownMemberType]
    ax.set_ylabel("rainfall_mm")  # type: ignore[reportUnknownMemberType]
    ax.legend()  # type: ignore[reportUnknownMemberType]
    fig.tight_layout()  # type: ignore[reportUnknownMemberType]

    out_path = os.path.join(out_dir, f"{result.station}_outliers.png")
    fig.savefig(out_path, dpi=150)  # type: ignore[reportUnknownMemberType]
    plt.close(fig)

    return out_path
