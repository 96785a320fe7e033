from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Sequence

import matplotlib
import pytest

matplotlib.use("Agg")

START = datetime(2025, 9, 24, 9, 0)


def make_series(values: Sequence[Any], step_minutes: int = 15) -> List[Dict[str, Any]]:
    """Build readings at fixed 15-minute spacing from plain values."""
    return [
        {
            "timestamp": (START + timedelta(minutes=step_minutes * i)).isoformat(),
            "rainfall_mm": value,
        }
        for i, value in enumerate(values)
    ]


@pytest.fixture()
def station_doc() -> Dict[str, Any]:
    return {
        "station": "031555",
        "stationName": "Exmouth",
        "data": make_series([5, 3, 45, 4, 6]),
    }
