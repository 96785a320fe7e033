from __future__ import annotations

import logging

from rainqc.logging_config import ContextualFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("rainqc.station", logging.INFO, __file__, 1, "Corrected %s", ("x",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_appends_station_context() -> None:
    formatter = ContextualFormatter("%(message)s")

    text = formatter.format(_record(station="E1", index=3, unrelated="skip"))

    assert text == "Corrected x | station=E1 index=3"


def test_formatter_leaves_plain_records_alone() -> None:
    formatter = ContextualFormatter("%(message)s")

    assert formatter.format(_record(method=None)) == "Corrected x"
