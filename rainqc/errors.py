"""
Exceptions raised (or collected) by the Rainfall QC toolkit.
"""

from __future__ import annotations


class RainQCError(Exception):
    """Base exception for all toolkit errors."""


class ConfigurationError(RainQCError, ValueError):
    """Raised when outlier detection options are invalid."""


class StationDataError(RainQCError, ValueError):
    """Raised when a station document does not have the expected structure."""


class RecordError(RainQCError):
    """
    A single malformed reading.

    The detector never raises these; it collects one per bad reading in
    ``CorrectionResult.record_errors`` and carries on with the rest of the
    series.
    """

    def __init__(self, index: int, reason: str) -> None:
        super().__init__(f"Reading {index}: {reason}")
        self.index = index
        self.reason = reason

    def to_dict(self) -> dict[str, object]:
        return {"index": self.index, "reason": self.reason}
