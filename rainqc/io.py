"""
Input/output helpers for the Rainfall QC toolkit.

This module provides small utility functions for:

* Reading station documents from JSON, or building them from a CSV.
* Writing corrected documents and reports as JSON.
* Ensuring that directories for output paths exist on disk.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional, Tuple

import pandas as pd

from rainqc.config import DataConfig
from rainqc.errors import StationDataError


def read_station(path: str) -> Dict[str, Any]:
    """
    Read a station document from a JSON file.

    Parameters
    ----------
    path
        Path to a JSON file holding one station mapping with a ``data`` list.

    Returns
    -------
    dict
        The parsed station document.

    Raises
    ------
    StationDataError
        If the file does not hold a JSON object.
    """
    with open(path, "r", encoding="utf-8") as file:
        document = json.load(file)

    if not isinstance(document, dict):
        raise StationDataError(f"{path} does not contain a station object")
    return document


def read_csv_station(path: str, cfg: DataConfig, station: Optional[str] = None) -> Dict[str, Any]:
    """
    Read a rainfall CSV into a station document.

    The CSV is parsed using the time and value columns specified in the
    configuration. Rows are sorted by time; timestamps that cannot be parsed
    are kept as their raw text so the detector reports them as malformed.

    Parameters
    ----------
    path
        Path to the CSV file.
    cfg
        Column mapping for the CSV.
    station
        Station identifier. Defaults to the file name without extension.

    Returns
    -------
    dict
        Station document with readings under ``data``.
    """
    df = pd.read_csv(path, dtype={cfg.time_column: str})  # type: ignore[reportGeneralTypeIssues]
    missing = [c for c in (cfg.time_column, cfg.value_column) if c not in df.columns]
    if missing:
        raise StationDataError(f"{path}: missing column(s) {', '.join(missing)}")

    parsed = pd.to_datetime(
        df[cfg.time_column],
        format=cfg.datetime_format,
        errors="coerce",
    )
    df = df.assign(_parsed=parsed).sort_values("_parsed", kind="stable", na_position="last")

    readings = []
    for _, row in df.iterrows():
        ts = row["_parsed"]
        reading: Dict[str, Any] = {
            "timestamp": ts.isoformat() if not pd.isna(ts) else row[cfg.time_column],
            "rainfall_mm": None if pd.isna(row[cfg.value_column]) else row[cfg.value_column],
        }
        if cfg.total_column and cfg.total_column in df.columns and not pd.isna(row[cfg.total_column]):
            reading["total_mm"] = float(row[cfg.total_column])
        readings.append(reading)

    station_id = station or os.path.splitext(os.path.basename(path))[0]
    return {"station": station_id, "stationName": station_id, "data": readings}


def _json_default(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "item"):
        return value.item()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def write_json(path: str, payload: Any) -> None:
    """Write ``payload`` as indented JSON, creating parent directories."""
    ensure_dir(path)
    with open(path, "w", encoding="utf-8") as file:
        json.dump(payload, file, indent=2, default=_json_default)


def output_paths(input_path: str, out_dir: Optional[str] = None) -> Tuple[str, str]:
    """
    Return ``(corrected document path, outlier report path)`` for an input.

    Outputs go next to the input unless ``out_dir`` is given.
    """
    stem = os.path.splitext(os.path.basename(input_path))[0]
    directory = out_dir if out_dir is not None else os.path.dirname(input_path)
    return (
        os.path.join(directory, f"{stem}-corrected.json"),
        os.path.join(directory, f"{stem}-outlier-report.json"),
    )


def ensure_dir(path: str) -> None:
    """
    Ensure that the directory for a given file path exists.

    This function creates the parent directory (and any missing
    intermediate directories) for the provided path, if it does not
    already exist. If the path has no directory component, nothing
    is created.

    Parameters
    ----------
    path
        File path whose parent directory should be ensured.
    """
    dir_name = os.path.dirname(path)
    if not dir_name:
        # Just a filename in the current directory; nothing to create.
        return

    os.makedirs(dir_name, exist_ok=True)
