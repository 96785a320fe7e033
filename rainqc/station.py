"""
Station-level outlier processing.

Upstream collaborators hand over one JSON document per station, with the
readings under ``data``. This module runs the detector over those
documents, attaches the ``outlierDetection`` metadata block that the
storage and HTTP layers serve, and keeps running statistics when many
stations are processed in one run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from rainqc.config import OutlierConfig
from rainqc.errors import StationDataError
from rainqc.rules import CorrectionResult, detect_and_correct

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StationResult:
    """Result of processing one station document."""

    station: str
    station_name: str
    document: Dict[str, Any]
    correction: Optional[CorrectionResult] = None
    error: Optional[str] = None

    @property
    def had_outliers(self) -> bool:
        return self.correction is not None and self.correction.had_outliers

    @property
    def outlier_count(self) -> int:
        return len(self.correction.outliers) if self.correction else 0

    @property
    def corrections_applied(self) -> int:
        return self.correction.corrections_applied if self.correction else 0


def station_identity(document: Mapping[str, Any]) -> tuple[str, str]:
    """Return ``(station id, display name)`` for a station document."""
    station = document.get("station") or document.get("stationId") or "unknown"
    name = document.get("stationName") or document.get("name") or station
    return str(station), str(name)


def process_station(
    document: Mapping[str, Any],
    config: Optional[OutlierConfig] = None,
    detected_at: Optional[datetime] = None,
) -> StationResult:
    """
    Detect and correct outliers in a single station document.

    Parameters
    ----------
    document
        Station mapping with a list of readings under ``data``.
    config
        Detector options; defaults are used when omitted.
    detected_at
        Timestamp recorded in the metadata block. Defaults to now (UTC).

    Returns
    -------
    StationResult
        The result holds a copy of ``document`` with ``data`` replaced by
        the corrected readings. When outliers were found it also has an
        ``outlierDetection`` block.

    Raises
    ------
    StationDataError
        If ``document`` is not a mapping or has no list under ``data``.
    ConfigurationError
        If ``config`` is invalid.
    """
    if not isinstance(document, Mapping):
        raise StationDataError("Station document must be a mapping")
    readings = document.get("data")
    if not isinstance(readings, list):
        raise StationDataError("Invalid station data structure: 'data' must be a list")

    cfg = config or OutlierConfig()
    station, name = station_identity(document)
    logger.info("Analysing station %s", name, extra={"station": station})

    correction = detect_and_correct(readings, cfg)

    for err in correction.record_errors:
        logger.warning(
            "Skipped malformed reading: %s",
            err.reason,
            extra={"station": station, "index": err.index},
        )

    out_doc: Dict[str, Any] = dict(document)
    out_doc["data"] = correction.corrected_data

    if correction.had_outliers:
        for outlier in correction.outliers:
            logger.info(
                "Outlier at %s: %smm exceeds %smm by %smm",
                outlier.timestamp,
                outlier.rainfall_mm,
                cfg.threshold,
                outlier.exceeds_by,
                extra={"station": station, "index": outlier.index},
            )
        for fix in correction.corrections:
            logger.info(
                "Corrected %s: %smm -> %smm",
                fix.timestamp,
                fix.original,
                fix.corrected,
                extra={"station": station, "index": fix.index, "method": fix.method.value},
            )

        when = detected_at or datetime.now(timezone.utc)
        out_doc["outlierDetection"] = {
            "detectedAt": when.isoformat(),
            "threshold": cfg.threshold,
            "outliersFound": len(correction.outliers),
            "correctionsMade": correction.corrections_applied,
            "correctionMethods": correction.methods_used,
            "recordErrors": len(correction.record_errors),
        }

    return StationResult(
        station=station,
        station_name=name,
        document=out_doc,
        correction=correction,
    )


@dataclass(slots=True)
class BatchStats:
    """Counters accumulated over a batch of stations."""

    stations_processed: int = 0
    stations_with_outliers: int = 0
    total_outliers: int = 0
    corrections_applied: int = 0
    record_errors: int = 0
    failed_stations: int = 0
    alerts: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def correction_rate(self) -> Optional[float]:
        """Percentage of outliers corrected, or None when none were found."""
        if self.total_outliers == 0:
            return None
        return 100.0 * self.corrections_applied / self.total_outliers

    def as_dict(self) -> Dict[str, Any]:
        return {
            "stationsProcessed": self.stations_processed,
            "stationsWithOutliers": self.stations_with_outliers,
            "totalOutliers": self.total_outliers,
            "correctionsApplied": self.corrections_applied,
            "recordErrors": self.record_errors,
            "failedStations": self.failed_stations,
            "alerts": list(self.alerts),
        }


class OutlierBatch:
    """
    Run outlier detection over many stations, keeping statistics.

    Configuration is validated once, up front. Per-station failures are
    logged and returned as results with ``error`` set so that one bad
    document does not stop the batch.
    """

    def __init__(self, config: Optional[OutlierConfig] = None) -> None:
        self.config = config or OutlierConfig()
        self.config.validate()
        self.stats = BatchStats()

    def process(self, document: Any, detected_at: Optional[datetime] = None) -> StationResult:
        station, name = (
            station_identity(document) if isinstance(document, Mapping) else ("unknown", "unknown")
        )
        try:
            result = process_station(document, self.config, detected_at=detected_at)
        except StationDataError as exc:
            logger.error("Could not process %s: %s", name, exc, extra={"station": station})
            self.stats.failed_stations += 1
            return StationResult(
                station=station,
                station_name=name,
                document=dict(document) if isinstance(document, Mapping) else {},
                error=str(exc),
            )

        self.stats.stations_processed += 1
        self.stats.record_errors += len(result.correction.record_errors)

        if result.had_outliers:
            self.stats.stations_with_outliers += 1
            self.stats.total_outliers += result.outlier_count
            self.stats.corrections_applied += result.corrections_applied

            if result.outlier_count > self.config.alert_threshold:
                logger.warning(
                    "%d outliers found in %s (alert threshold %d)",
                    result.outlier_count,
                    name,
                    self.config.alert_threshold,
                    extra={"station": station},
                )
                self.stats.alerts.append(
                    {
                        "station": station,
                        "stationName": name,
                        "count": result.outlier_count,
                        "message": (
                            f"{result.outlier_count} outliers exceed the alert "
                            f"threshold of {self.config.alert_threshold}"
                        ),
                    }
                )

        return result

    def process_many(self, documents: Iterable[Any]) -> List[StationResult]:
        return [self.process(doc) for doc in documents]

    def reset(self) -> None:
        self.stats = BatchStats()
