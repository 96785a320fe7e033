from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone

import pytest

from rainqc.config import OutlierConfig
from rainqc.errors import StationDataError
from rainqc.station import OutlierBatch, process_station, station_identity

from conftest import make_series

DETECTED_AT = datetime(2025, 9, 24, 12, 0, tzinfo=timezone.utc)


def test_process_station_attaches_metadata(station_doc) -> None:
    before = copy.deepcopy(station_doc)

    result = process_station(station_doc, OutlierConfig(), detected_at=DETECTED_AT)

    assert station_doc == before
    assert result.station == "031555"
    assert result.station_name == "Exmouth"
    assert result.had_outliers is True
    assert result.document["data"][2]["rainfall_mm"] == 4
    assert result.document["outlierDetection"] == {
        "detectedAt": "2025-09-24T12:00:00+00:00",
        "threshold": 25.0,
        "outliersFound": 1,
        "correctionsMade": 1,
        "correctionMethods": {"local_median": 1},
        "recordErrors": 0,
    }


def test_clean_station_has_no_metadata_block() -> None:
    doc = {"station": "E1", "data": make_series([0.2, 0.4, 0.0])}

    result = process_station(doc)

    assert result.had_outliers is False
    assert "outlierDetection" not in result.document
    assert result.document["data"] == doc["data"]


@pytest.mark.parametrize("doc", [{"station": "E1"}, {"data": "nope"}, ["not", "a", "dict"]])
def test_invalid_station_structure(doc) -> None:
    with pytest.raises(StationDataError):
        process_station(doc)


def test_station_identity_fallbacks() -> None:
    assert station_identity({"stationId": "123", "name": "Bala"}) == ("123", "Bala")
    assert station_identity({"station": "456"}) == ("456", "456")
    assert station_identity({}) == ("unknown", "unknown")


def test_outliers_are_logged(station_doc, caplog) -> None:
    with caplog.at_level(logging.INFO, logger="rainqc.station"):
        process_station(station_doc)

    messages = [r.getMessage() for r in caplog.records]
    assert any("Outlier at" in m for m in messages)
    assert any("Corrected" in m and "45.0mm -> 4.0mm" in m for m in messages)
    assert all(getattr(r, "station", None) == "031555" for r in caplog.records)


def test_malformed_readings_logged_as_warnings(caplog) -> None:
    doc = {"station": "E2", "data": make_series([1.0, "??"])}

    with caplog.at_level(logging.WARNING, logger="rainqc.station"):
        result = process_station(doc)

    assert len(result.correction.record_errors) == 1
    assert any(r.levelno == logging.WARNING and r.index == 1 for r in caplog.records)


def test_batch_collects_statistics_and_alerts(station_doc) -> None:
    noisy = {"station": "N1", "stationName": "Noisy", "data": make_series([1, 30, 40, 2, 50])}
    clean = {"station": "C1", "data": make_series([1, 2, 3])}
    batch = OutlierBatch(OutlierConfig(alert_threshold=2))

    results = batch.process_many([station_doc, noisy, clean])

    assert [r.had_outliers for r in results] == [True, True, False]
    stats = batch.stats
    assert stats.stations_processed == 3
    assert stats.stations_with_outliers == 2
    assert stats.total_outliers == 4
    assert stats.corrections_applied == 4
    assert stats.correction_rate == 100.0
    assert [a["station"] for a in stats.alerts] == ["N1"]
    assert stats.as_dict()["alerts"][0]["count"] == 3


def test_batch_without_auto_correct_counts_no_corrections(station_doc) -> None:
    batch = OutlierBatch(OutlierConfig(auto_correct=False))

    batch.process(station_doc)

    assert batch.stats.total_outliers == 1
    assert batch.stats.corrections_applied == 0
    assert batch.stats.correction_rate == 0.0


def test_batch_survives_bad_station(station_doc) -> None:
    batch = OutlierBatch()

    results = batch.process_many([{"station": "BAD"}, station_doc])

    assert results[0].error is not None
    assert results[0].correction is None
    assert results[1].had_outliers is True
    assert batch.stats.failed_stations == 1
    assert batch.stats.stations_processed == 1


def test_batch_reset(station_doc) -> None:
    batch = OutlierBatch()
    batch.process(station_doc)

    batch.reset()

    assert batch.stats.stations_processed == 0
    assert batch.stats.correction_rate is None
