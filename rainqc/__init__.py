"""
Public interface for the Rainfall QC toolkit package.

This package detects and corrects implausible readings in station
rainfall time series (Environment Agency and Natural Resources Wales
gauges, normalised to one JSON document per station), including:

* Dataclasses for configuration (outlier options, CSV input, outputs).
* The outlier detector and its ordered correction strategies.
* Station and batch processing with correction metadata.
* Report, IO and plotting helpers used by the CLI.

Most users will interact with the command-line entry point
``rain-qc``. The symbols re-exported here are intended for
programmatic use in tests, notebooks, or the ingestion scripts.
"""

from __future__ import annotations

from importlib import metadata
from typing import List

from rainqc.config import OutlierConfig, RunConfig, load_config
from rainqc.errors import ConfigurationError, RainQCError, RecordError, StationDataError
from rainqc.rules import (
    Correction,
    CorrectionMethod,
    CorrectionResult,
    Outlier,
    detect_and_correct,
)
from rainqc.station import OutlierBatch, StationResult, process_station
from rainqc.io import read_station, write_json

# Try to obtain the installed package version, falling back for dev checkouts.
try:
    __version__: str = metadata.version("rainfall-qc-toolkit")
except metadata.PackageNotFoundError:  # pragma: no cover - dev fallback
    __version__ = "0.0.0+dev"

__all__: List[str] = [
    "__version__",
    # Config
    "OutlierConfig",
    "RunConfig",
    "load_config",
    # Errors
    "RainQCError",
    "ConfigurationError",
    "RecordError",
    "StationDataError",
    # Detector
    "detect_and_correct",
    "CorrectionResult",
    "CorrectionMethod",
    "Correction",
    "Outlier",
    # Stations
    "process_station",
    "OutlierBatch",
    "StationResult",
    # IO helpers
    "read_station",
    "write_json",
]
