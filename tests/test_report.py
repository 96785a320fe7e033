from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from rainqc.config import OutlierConfig
from rainqc.report import build_report, generate_summary
from rainqc.station import OutlierBatch

from conftest import make_series

GENERATED_AT = datetime(2025, 9, 25, 6, 0, tzinfo=timezone.utc)


def _run_batch(station_doc, config: OutlierConfig):
    batch = OutlierBatch(config)
    results = batch.process_many(
        [
            station_doc,
            {"station": "C1", "stationName": "Clean", "data": make_series([0.2, 0.0])},
            {"station": "BAD"},
        ]
    )
    return batch, results


def test_build_report(station_doc) -> None:
    cfg = OutlierConfig()
    _, results = _run_batch(station_doc, cfg)

    report = build_report(results, cfg, generated_at=GENERATED_AT)

    assert report["generatedAt"] == "2025-09-25T06:00:00+00:00"
    assert report["threshold"] == 25.0
    assert report["summary"] == {
        "stationsProcessed": 2,
        "stationsWithOutliers": 1,
        "totalOutliersFound": 1,
        "totalCorrections": 1,
        "totalRecordErrors": 0,
    }
    (detail,) = report["stationDetails"]
    assert detail["station"] == "031555"
    assert detail["stationName"] == "Exmouth"
    assert detail["outliers"][0]["exceedsBy"] == 20.0
    assert detail["corrections"] == [
        {
            "timestamp": "2025-09-24T09:30:00",
            "originalValue": 45.0,
            "correctedValue": 4.0,
            "method": "local_median",
        }
    ]


def test_generate_summary_writes_markdown(station_doc, tmp_path: Path) -> None:
    cfg = OutlierConfig(alert_threshold=0)
    batch, results = _run_batch(station_doc, cfg)
    report_path = tmp_path / "summary.md"

    text = generate_summary(
        results,
        batch.stats,
        cfg,
        str(report_path),
        chart_paths={"031555": "charts/031555_outliers.png"},
        generated_at=GENERATED_AT,
    )

    assert report_path.read_text(encoding="utf-8") == text
    assert "# Rainfall outlier summary" in text
    assert "Generated: 2025-09-25T06:00:00+00:00" in text
    assert "- Stations processed: 2" in text
    assert "- Outliers found: 1" in text
    assert "- Local median: 1" in text
    assert "- Exmouth (031555): 1 outliers, 1 corrected" in text
    assert "![031555](charts/031555_outliers.png)" in text
    assert "- BAD (BAD): failed" in text
    assert "## Alerts" in text
