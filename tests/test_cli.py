from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from rainqc.cli import EXIT_CONFIG_ERROR, EXIT_INPUT_ERROR, EXIT_OK, main

from conftest import make_series


@pytest.fixture(autouse=True)
def _reset_rainqc_logger():
    yield
    rainqc_logger = logging.getLogger("rainqc")
    for handler in list(rainqc_logger.handlers):
        rainqc_logger.removeHandler(handler)
    rainqc_logger.setLevel(logging.NOTSET)


def _write_station(path: Path, doc) -> str:
    path.write_text(json.dumps(doc), encoding="utf-8")
    return str(path)


def test_corrects_station_and_writes_outputs(tmp_path: Path, station_doc) -> None:
    source = _write_station(tmp_path / "ea-031555.json", station_doc)
    out_dir = tmp_path / "out"
    summary = tmp_path / "reports" / "summary.md"

    code = main(
        [
            source,
            "--output-dir",
            str(out_dir),
            "--report",
            str(summary),
            "--no-progress",
        ]
    )

    assert code == EXIT_OK
    corrected = json.loads((out_dir / "ea-031555-corrected.json").read_text(encoding="utf-8"))
    assert [r["rainfall_mm"] for r in corrected["data"]] == [5, 3, 4, 4, 6]
    assert corrected["data"][2]["original_rainfall_mm"] == 45
    assert corrected["outlierDetection"]["outliersFound"] == 1

    report = json.loads((out_dir / "ea-031555-outlier-report.json").read_text(encoding="utf-8"))
    assert report["summary"]["totalCorrections"] == 1
    assert "Exmouth (031555)" in summary.read_text(encoding="utf-8")


def test_clean_station_writes_nothing(tmp_path: Path) -> None:
    source = _write_station(tmp_path / "clean.json", {"station": "C1", "data": make_series([1, 2])})

    code = main([source, "--no-progress", "--no-chart-preview"])

    assert code == EXIT_OK
    assert sorted(p.name for p in tmp_path.iterdir()) == ["clean.json"]


def test_no_auto_correct_only_writes_report(tmp_path: Path, station_doc) -> None:
    source = _write_station(tmp_path / "s.json", station_doc)

    code = main([source, "--no-auto-correct", "--no-progress", "--no-chart-preview"])

    assert code == EXIT_OK
    assert not (tmp_path / "s-corrected.json").exists()
    report = json.loads((tmp_path / "s-outlier-report.json").read_text(encoding="utf-8"))
    assert report["summary"]["totalOutliersFound"] == 1
    assert report["summary"]["totalCorrections"] == 0


def test_threshold_override(tmp_path: Path, station_doc) -> None:
    source = _write_station(tmp_path / "s.json", station_doc)

    code = main([source, "--threshold", "50", "--no-progress", "--no-chart-preview"])

    assert code == EXIT_OK
    assert not (tmp_path / "s-outlier-report.json").exists()


def test_yaml_config_and_csv_input(tmp_path: Path) -> None:
    csv_path = tmp_path / "gauge.csv"
    csv_path.write_text(
        "when,mm\n2025-09-24 09:00,0.4\n2025-09-24 09:15,33\n2025-09-24 09:30,0.6\n",
        encoding="utf-8",
    )
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "outlier:\n  threshold: 25\n  windowSize: 2\n"
        "data:\n  time_column: when\n  value_column: mm\n"
        f"output:\n  output_dir: {tmp_path / 'out'}\n",
        encoding="utf-8",
    )

    code = main([str(csv_path), "-c", str(config_path), "--no-progress", "--no-chart-preview"])

    assert code == EXIT_OK
    corrected = json.loads((tmp_path / "out" / "gauge-corrected.json").read_text(encoding="utf-8"))
    assert corrected["data"][1]["rainfall_mm"] == 0.4


def test_charts_and_terminal_preview(tmp_path: Path, station_doc, capsys) -> None:
    source = _write_station(tmp_path / "s.json", station_doc)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"outlier:\n  threshold: 25\noutput:\n  charts_dir: {tmp_path / 'charts'}\n",
        encoding="utf-8",
    )

    code = main([source, "-c", str(config_path), "--charts", "--no-progress"])

    assert code == EXIT_OK
    assert (tmp_path / "charts" / "031555_outliers.png").exists()
    assert "Chart preview" in capsys.readouterr().out


def test_invalid_threshold_exits_with_config_error(tmp_path: Path, station_doc) -> None:
    source = _write_station(tmp_path / "s.json", station_doc)

    assert main([source, "--threshold", "0", "--no-progress"]) == EXIT_CONFIG_ERROR


def test_missing_config_file(tmp_path: Path, station_doc) -> None:
    source = _write_station(tmp_path / "s.json", station_doc)

    code = main([source, "-c", str(tmp_path / "missing.yaml"), "--no-progress"])

    assert code == EXIT_CONFIG_ERROR


def test_bad_inputs_do_not_stop_the_run(tmp_path: Path, station_doc) -> None:
    good = _write_station(tmp_path / "good.json", station_doc)
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    no_data = _write_station(tmp_path / "nodata.json", {"station": "X"})

    code = main(
        [str(broken), no_data, str(tmp_path / "absent.json"), good, "--no-progress", "--no-chart-preview"]
    )

    assert code == EXIT_INPUT_ERROR
    assert (tmp_path / "good-corrected.json").exists()


def test_csv_missing_configured_column_does_not_stop_the_run(tmp_path: Path, station_doc) -> None:
    bad_csv = tmp_path / "bad.csv"
    bad_csv.write_text("when,rain\n2025-09-24 09:00,0.4\n", encoding="utf-8")
    good = _write_station(tmp_path / "good.json", station_doc)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "outlier:\n  threshold: 25\ndata:\n  time_column: when\n  value_column: mm\n",
        encoding="utf-8",
    )

    code = main(
        [str(bad_csv), good, "-c", str(config_path), "--no-progress", "--no-chart-preview"]
    )

    assert code == EXIT_INPUT_ERROR
    assert (tmp_path / "good-corrected.json").exists()


def test_csv_without_data_section_is_an_input_error(tmp_path: Path) -> None:
    csv_path = tmp_path / "gauge.csv"
    csv_path.write_text("when,mm\n2025-09-24 09:00,0.4\n", encoding="utf-8")

    assert main([str(csv_path), "--no-progress", "--no-chart-preview"]) == EXIT_INPUT_ERROR


def test_log_level_from_environment(monkeypatch) -> None:
    from rainqc.logging_config import resolve_log_level

    monkeypatch.setenv("RAINQC_LOG_LEVEL", " debug ")
    assert resolve_log_level() == "DEBUG"
    assert resolve_log_level("info") == "INFO"

    monkeypatch.delenv("RAINQC_LOG_LEVEL")
    assert resolve_log_level() == "WARNING"
