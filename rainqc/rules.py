"""
Outlier detection and correction for rainfall time series.

A station's series is a list of readings (mappings with ``timestamp`` and
``rainfall_mm``). The detector applies one practical QC rule and repairs
what it finds:

* Detection: a reading is an outlier when its ``rainfall_mm`` exceeds the
  configured threshold for a single interval. This is a point test on the
  value; elapsed time between readings is not considered.
* Correction: each outlier is replaced by the first usable candidate from
  an ordered list of strategies (local median, linear interpolation,
  adjacent value, zero).

Per-reading flag codes follow the same convention as the other QC tools:
``0`` means "OK" and non-zero codes name the reason a reading was set aside.
"""

from __future__ import annotations

import copy
import math
import numbers
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from rainqc.config import OutlierConfig
from rainqc.errors import RecordError

# Flag codes (0 = OK, >0 = set aside).
FLAG_OK: int = 0
FLAG_OUTLIER: int = 1
FLAG_MALFORMED: int = 2

# Readings arrive with at most a few decimals; this drops float noise such
# as 25.3 - 25.0 == 0.3000000000000007.
EXCEEDS_BY_DECIMALS: int = 6

Reading = Dict[str, Any]


class CorrectionMethod(str, Enum):
    """Replacement strategies, in the order they are tried."""

    LOCAL_MEDIAN = "local_median"
    LINEAR_INTERPOLATION = "linear_interpolation"
    ADJACENT_VALUE = "adjacent_value"
    ZERO_FALLBACK = "zero_fallback"


@dataclass(frozen=True, slots=True)
class Outlier:
    """A reading whose value exceeded the threshold."""

    index: int
    timestamp: Any
    rainfall_mm: float
    exceeds_by: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "timestamp": _timestamp_text(self.timestamp),
            "rainfall_mm": self.rainfall_mm,
            "exceedsBy": self.exceeds_by,
        }


@dataclass(frozen=True, slots=True)
class Correction:
    """The replacement applied to one outlier."""

    index: int
    timestamp: Any
    original: float
    corrected: float
    method: CorrectionMethod

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "timestamp": _timestamp_text(self.timestamp),
            "original": self.original,
            "corrected": self.corrected,
            "method": self.method.value,
        }


@dataclass(slots=True)
class CorrectionResult:
    """Outcome of :func:`detect_and_correct` for one series."""

    corrected_data: List[Reading]
    threshold: float
    outliers: List[Outlier] = field(default_factory=list)
    corrections: List[Correction] = field(default_factory=list)
    record_errors: List[RecordError] = field(default_factory=list)
    flags: List[int] = field(default_factory=list)

    @property
    def had_outliers(self) -> bool:
        return bool(self.outliers)

    @property
    def corrections_applied(self) -> int:
        return len(self.corrections)

    @property
    def methods_used(self) -> dict[str, int]:
        """Count of corrections per method name, in strategy order."""
        counts: dict[str, int] = {}
        for method, _ in STRATEGIES:
            n = sum(1 for c in self.corrections if c.method is method)
            if n:
                counts[method.value] = n
        return counts

    def summary(self) -> dict[str, Any]:
        return {
            "hadOutliers": self.had_outliers,
            "outliersFound": len(self.outliers),
            "correctionsApplied": self.corrections_applied,
            "correctionMethods": self.methods_used,
            "recordErrors": len(self.record_errors),
        }

    def to_frame(self) -> pd.DataFrame:
        """
        Return the well-formed readings as a DataFrame indexed by timestamp.

        Columns are ``rainfall_mm`` (after correction), ``original_rainfall_mm``
        (NaN where unchanged) and ``qc_flag``. Malformed readings are dropped.
        """
        rows = []
        for index, reading in enumerate(self.corrected_data):
            if self.flags[index] == FLAG_MALFORMED:
                continue
            rows.append(
                {
                    "timestamp": pd.Timestamp(_reading_timestamp(reading)),
                    "rainfall_mm": float(reading["rainfall_mm"]),
                    "original_rainfall_mm": float(
                        reading.get("original_rainfall_mm", math.nan)
                    ),
                    "qc_flag": self.flags[index],
                }
            )

        frame = pd.DataFrame(
            rows,
            columns=["timestamp", "rainfall_mm", "original_rainfall_mm", "qc_flag"],
        )
        return frame.set_index("timestamp")


def _timestamp_text(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _reading_timestamp(reading: Mapping[str, Any]) -> Any:
    """Return the raw timestamp of a reading, or None when it has none."""
    if reading.get("timestamp") is not None:
        return reading["timestamp"]
    if reading.get("dateTime") is not None:
        return reading["dateTime"]
    if reading.get("date") is not None and reading.get("time") is not None:
        return f"{reading['date']} {reading['time']}"
    return None


def _parse_rainfall(value: Any) -> float:
    if value is None:
        raise ValueError("missing rainfall_mm")
    if isinstance(value, bool):
        raise ValueError(f"non-numeric rainfall_mm {value!r}")
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError as exc:
            raise ValueError(f"non-numeric rainfall_mm {value!r}") from exc
    elif isinstance(value, numbers.Real):
        parsed = float(value)
    else:
        raise ValueError(f"non-numeric rainfall_mm {value!r}")

    if not math.isfinite(parsed):
        raise ValueError(f"non-finite rainfall_mm {value!r}")
    if parsed < 0:
        raise ValueError(f"negative rainfall_mm {value!r}")
    return parsed


def _parse_reading(index: int, reading: Any) -> Union[float, RecordError]:
    """Return the rainfall value of a well-formed reading, else a RecordError."""
    if not isinstance(reading, Mapping):
        return RecordError(index, f"reading is not a mapping ({type(reading).__name__})")

    raw_ts = _reading_timestamp(reading)
    if raw_ts is None or (isinstance(raw_ts, str) and not raw_ts.strip()):
        return RecordError(index, "missing timestamp")
    try:
        parsed_ts = pd.Timestamp(raw_ts)
    except (TypeError, ValueError, OverflowError):
        return RecordError(index, f"unparseable timestamp {raw_ts!r}")
    if pd.isna(parsed_ts):
        return RecordError(index, f"unparseable timestamp {raw_ts!r}")

    try:
        return _parse_rainfall(reading.get("rainfall_mm"))
    except ValueError as exc:
        return RecordError(index, str(exc))


def _nearest_valid(valid: np.ndarray, index: int, step: int) -> Optional[int]:
    """Walk from ``index`` in direction ``step`` to the nearest valid position."""
    pos = index + step
    while 0 <= pos < valid.size:
        if valid[pos]:
            return pos
        pos += step
    return None


def local_median(values: np.ndarray, valid: np.ndarray, index: int, window: int) -> Optional[float]:
    """
    Median of the valid readings within ``window`` positions of ``index``.

    For an even number of neighbours the lower middle value is used, so the
    replacement is always a value that was actually observed.
    """
    start = max(0, index - window)
    end = min(values.size, index + window + 1)
    neighbours = values[start:end][valid[start:end]]
    if neighbours.size == 0:
        return None
    return float(np.quantile(neighbours, 0.5, method="lower"))


def linear_interpolation(
    values: np.ndarray, valid: np.ndarray, index: int, window: int
) -> Optional[float]:
    """
    Interpolate between the nearest valid readings on either side.

    Weights come from sequence position rather than elapsed time, which is
    a simplification when readings are irregularly spaced.
    """
    prev = _nearest_valid(valid, index, -1)
    nxt = _nearest_valid(valid, index, 1)
    if prev is None or nxt is None:
        return None
    frac = (index - prev) / (nxt - prev)
    return float(values[prev] + (values[nxt] - values[prev]) * frac)


def adjacent_value(values: np.ndarray, valid: np.ndarray, index: int, window: int) -> Optional[float]:
    """Copy the nearest valid reading, preferring the previous one."""
    for step in (-1, 1):
        pos = _nearest_valid(valid, index, step)
        if pos is not None:
            return float(values[pos])
    return None


def zero_fallback(values: np.ndarray, valid: np.ndarray, index: int, window: int) -> Optional[float]:
    return 0.0


Strategy = Callable[[np.ndarray, np.ndarray, int, int], Optional[float]]

STRATEGIES: Tuple[Tuple[CorrectionMethod, Strategy], ...] = (
    (CorrectionMethod.LOCAL_MEDIAN, local_median),
    (CorrectionMethod.LINEAR_INTERPOLATION, linear_interpolation),
    (CorrectionMethod.ADJACENT_VALUE, adjacent_value),
    (CorrectionMethod.ZERO_FALLBACK, zero_fallback),
)


def choose_replacement(
    values: np.ndarray, valid: np.ndarray, index: int, window: int
) -> Tuple[CorrectionMethod, float]:
    """Return the first strategy that yields a value for ``index``."""
    for method, strategy in STRATEGIES:
        candidate = strategy(values, valid, index, window)
        if candidate is not None:
            return method, candidate
    return CorrectionMethod.ZERO_FALLBACK, 0.0


def _adjust_totals(readings: List[Any], from_index: int, difference: float) -> None:
    """Shift running ``total_mm`` values from ``from_index`` onwards, floored at 0."""
    for reading in readings[from_index:]:
        if not isinstance(reading, dict) or "total_mm" not in reading:
            continue
        total = reading["total_mm"]
        if isinstance(total, bool) or not isinstance(total, numbers.Real):
            continue
        reading["total_mm"] = max(0.0, float(total) + difference)


def detect_and_correct(
    series: Sequence[Any],
    config: Union[OutlierConfig, Mapping[str, Any], None] = None,
) -> CorrectionResult:
    """
    Detect rainfall outliers in one station's series and correct them.

    Outliers are corrected left to right in a single pass. Once corrected,
    a reading counts as a valid neighbour for outliers further along the
    series. The input is never modified; ``corrected_data`` is a deep copy.

    Parameters
    ----------
    series
        Readings in ascending time order. May be empty.
    config
        :class:`OutlierConfig`, a plain mapping of options, or None for the
        defaults.

    Returns
    -------
    CorrectionResult
        Corrected copy of the series, outlier and correction records,
        per-reading flags and any malformed-reading errors.

    Raises
    ------
    ConfigurationError
        If the options are invalid. Raised before any reading is examined.
    """
    if config is None:
        cfg = OutlierConfig()
    elif isinstance(config, OutlierConfig):
        cfg = config
    else:
        cfg = OutlierConfig.from_mapping(config)
    cfg.validate()

    corrected_data: List[Any] = copy.deepcopy(list(series))
    n = len(corrected_data)
    result = CorrectionResult(corrected_data=corrected_data, threshold=cfg.threshold)
    if n == 0:
        return result

    # Malformed readings keep 0.0 here; their flag keeps them out of every mask.
    values = np.zeros(n, dtype=float)
    flags = np.full(n, FLAG_OK, dtype="int64")

    for i, reading in enumerate(corrected_data):
        parsed = _parse_reading(i, reading)
        if isinstance(parsed, RecordError):
            result.record_errors.append(parsed)
            flags[i] = FLAG_MALFORMED
        else:
            values[i] = parsed

    outlier_mask = (flags == FLAG_OK) & (values > cfg.threshold)
    flags[outlier_mask] = FLAG_OUTLIER
    valid = flags == FLAG_OK
    outlier_positions = [int(i) for i in np.flatnonzero(outlier_mask)]

    for i in outlier_positions:
        result.outliers.append(
            Outlier(
                index=i,
                timestamp=_reading_timestamp(corrected_data[i]),
                rainfall_mm=float(values[i]),
                exceeds_by=round(float(values[i] - cfg.threshold), EXCEEDS_BY_DECIMALS),
            )
        )

    result.flags = [int(f) for f in flags]
    if not cfg.auto_correct:
        return result

    for i in outlier_positions:
        method, candidate = choose_replacement(values, valid, i, cfg.window_size)
        replacement = min(candidate, cfg.threshold)
        original = float(values[i])

        reading = corrected_data[i]
        reading.setdefault("original_rainfall_mm", original)
        reading["rainfall_mm"] = replacement
        reading["corrected"] = True

        values[i] = replacement
        valid[i] = True

        if cfg.adjust_totals:
            _adjust_totals(corrected_data, i, replacement - original)

        result.corrections.append(
            Correction(
                index=i,
                timestamp=_reading_timestamp(reading),
                original=original,
                corrected=replacement,
                method=method,
            )
        )

    return result
