from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence

from rainqc.config import OutlierConfig
from rainqc.rules import CorrectionMethod
from rainqc.station import BatchStats, StationResult

METHOD_LABELS = {
    CorrectionMethod.LOCAL_MEDIAN.value: "Local median",
    CorrectionMethod.LINEAR_INTERPOLATION.value: "Linear interpolation",
    CorrectionMethod.ADJACENT_VALUE.value: "Adjacent value",
    CorrectionMethod.ZERO_FALLBACK.value: "Zero fallback",
}


def build_report(
    results: Sequence[StationResult],
    config: OutlierConfig,
    generated_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Build the JSON outlier report for one or more processed stations."""
    when = generated_at or datetime.now(timezone.utc)
    processed = [r for r in results if r.correction is not None]
    with_outliers = [r for r in processed if r.had_outliers]

    return {
        "generatedAt": when.isoformat(),
        "threshold": config.threshold,
        "summary": {
            "stationsProcessed": len(processed),
            "stationsWithOutliers": len(with_outliers),
            "totalOutliersFound": sum(r.outlier_count for r in processed),
            "totalCorrections": sum(r.corrections_applied for r in processed),
            "totalRecordErrors": sum(len(r.correction.record_errors) for r in processed),
        },
        "stationDetails": [
            {
                "station": r.station,
                "stationName": r.station_name,
                "outliersFound": r.outlier_count,
                "outliers": [o.to_dict() for o in r.correction.outliers],
                "corrections": [
                    {
                        "timestamp": c.to_dict()["timestamp"],
                        "originalValue": c.original,
                        "correctedValue": c.corrected,
                        "method": c.method.value,
                    }
                    for c in r.correction.corrections
                ],
            }
            for r in with_outliers
        ],
    }


def generate_summary(
    results: Sequence[StationResult],
    stats: BatchStats,
    config: OutlierConfig,
    report_path: str,
    chart_paths: Optional[Mapping[str, str]] = None,
    generated_at: Optional[datetime] = None,
) -> str:
    chart_paths = chart_paths or {}
    method_counts: Dict[str, int] = {}
    for r in results:
        if r.correction is None:
            continue
        for method, n in r.correction.methods_used.items():
            method_counts[method] = method_counts.get(method, 0) + n

    lines = []
    lines.append("# Rainfall outlier summary")
    lines.append("")
    when = generated_at or datetime.now(timezone.utc)
    lines.append(f"Generated: {when.isoformat(timespec='seconds')}")
    lines.append("")
    lines.append("## Settings")
    lines.append(f"- Threshold: {config.threshold} mm per reading")
    lines.append(f"- Window size: {config.window_size}")
    lines.append(f"- Auto-correct: {'yes' if config.auto_correct else 'no'}")
    lines.append("")

    lines.append("## Totals")
    lines.append(f"- Stations processed: {stats.stations_processed}")
    lines.append(f"- Stations with outliers: {stats.stations_with_outliers}")
    lines.append(f"- Outliers found: {stats.total_outliers}")
    lines.append(f"- Corrections applied: {stats.corrections_applied}")
    lines.append(f"- Malformed readings skipped: {stats.record_errors}")
    if stats.failed_stations:
        lines.append(f"- Stations that failed: {stats.failed_stations}")
    if stats.correction_rate is not None:
        lines.append(f"- Correction rate: {stats.correction_rate:.0f}%")
    lines.append("")

    if method_counts:
        lines.append("## Correction methods")
        for method, label in METHOD_LABELS.items():
            n = method_counts.get(method, 0)
            if n:
                lines.append(f"- {label}: {n}")
        lines.append("")

    lines.append("## Stations")
    for r in results:
        if r.error is not None:
            lines.append(f"- {r.station_name} ({r.station}): failed, {r.error}")
            continue
        lines.append(
            f"- {r.station_name} ({r.station}): "
            f"{r.outlier_count} outliers, {r.corrections_applied} corrected"
        )
        if r.station in chart_paths:
            lines.append(f"  ![{r.station}]({chart_paths[r.station]})")
    lines.append("")

    if stats.alerts:
        lines.append("## Alerts")
        for alert in stats.alerts:
            lines.append(f"- {alert['stationName']}: {alert['message']}")
        lines.append("")

    lines.append("## Notes for operator")
    lines.append("- Corrected readings keep their raw value in original_rainfall_mm.")
    lines.append("- Zero-fallback corrections had no usable neighbours; check the gauge.")
    lines.append("- Stations raising alerts may have a faulty tipping bucket or logger.")

    text = "\n".join(lines)

    with open(report_path, "w", encoding="utf-8") as f:
        f.write(text)

    return text
