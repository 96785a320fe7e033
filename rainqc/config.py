"""
Configuration models and loader for the Rainfall QC toolkit.

This module defines small dataclasses that capture:

* Outlier detection options (threshold, auto-correction, window size).
* Optional CSV input configuration (time/value columns).
* Output configuration (directory for corrected documents, summary, charts).

It also provides a `load_config` helper that reads a YAML file and
returns a fully-populated `RunConfig` instance.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import yaml

from rainqc.errors import ConfigurationError

DEFAULT_THRESHOLD_MM: float = 25.0
DEFAULT_WINDOW_SIZE: int = 6
DEFAULT_ALERT_THRESHOLD: int = 5

# Mapping keys accepted by OutlierConfig.from_mapping, camelCase first.
_OPTION_KEYS: dict[str, tuple[str, ...]] = {
    "threshold": ("threshold",),
    "auto_correct": ("autoCorrect", "auto_correct"),
    "window_size": ("windowSize", "window_size"),
    "alert_threshold": ("alertThreshold", "alert_threshold"),
    "adjust_totals": ("adjustTotals", "adjust_totals"),
}


@dataclass(slots=True)
class OutlierConfig:
    """
    Options for the outlier detector.

    ``threshold`` is the largest plausible rainfall, in millimetres, for a
    single reading interval (nominally 15 minutes). ``window_size`` is the
    number of positions on each side of an outlier searched for the local
    median.
    """

    threshold: float = DEFAULT_THRESHOLD_MM
    auto_correct: bool = True
    window_size: int = DEFAULT_WINDOW_SIZE
    alert_threshold: int = DEFAULT_ALERT_THRESHOLD
    adjust_totals: bool = True

    def validate(self) -> None:
        """
        Check the options, raising before any data is processed.

        Raises
        ------
        ConfigurationError
            If ``threshold`` is not a positive finite number, ``window_size``
            is not an integer >= 1, ``alert_threshold`` is negative, or a
            boolean option is not a bool.
        """
        if (
            isinstance(self.threshold, bool)
            or not isinstance(self.threshold, (int, float))
            or not math.isfinite(self.threshold)
            or self.threshold <= 0
        ):
            raise ConfigurationError(
                f"threshold must be a positive number, got {self.threshold!r}"
            )

        if (
            isinstance(self.window_size, bool)
            or not isinstance(self.window_size, int)
            or self.window_size < 1
        ):
            raise ConfigurationError(
                f"window_size must be an integer >= 1, got {self.window_size!r}"
            )

        if (
            isinstance(self.alert_threshold, bool)
            or not isinstance(self.alert_threshold, int)
            or self.alert_threshold < 0
        ):
            raise ConfigurationError(
                "alert_threshold must be a non-negative integer, "
                f"got {self.alert_threshold!r}"
            )

        for name in ("auto_correct", "adjust_totals"):
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise ConfigurationError(f"{name} must be true or false, got {value!r}")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "OutlierConfig":
        """
        Build and validate a config from a plain mapping.

        Both the camelCase keys used in station JSON tooling
        (``autoCorrect``, ``windowSize``) and snake_case keys are accepted.
        Missing keys take their defaults.
        """
        values: dict[str, Any] = {}
        for attr, keys in _OPTION_KEYS.items():
            for key in keys:
                if key in raw:
                    values[attr] = raw[key]
                    break

        try:
            if "threshold" in values and not isinstance(values["threshold"], bool):
                values["threshold"] = float(values["threshold"])
            for attr in ("window_size", "alert_threshold"):
                if attr in values and isinstance(values[attr], str):
                    values[attr] = int(values[attr])
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid outlier option: {exc}") from exc

        cfg = cls(**values)
        cfg.validate()
        return cfg

    def as_dict(self) -> dict[str, Any]:
        return {
            "threshold": self.threshold,
            "autoCorrect": self.auto_correct,
            "windowSize": self.window_size,
            "alertThreshold": self.alert_threshold,
            "adjustTotals": self.adjust_totals,
        }


@dataclass(slots=True)
class DataConfig:
    """Column mapping used when a station arrives as CSV rather than JSON."""

    time_column: str
    value_column: str
    total_column: Optional[str] = None
    datetime_format: Optional[str] = None


@dataclass(slots=True)
class OutputConfig:
    """Configuration for outputs written by the CLI."""

    output_dir: Optional[str] = None
    report_path: Optional[str] = None
    charts_dir: str = "out/charts"


@dataclass(slots=True)
class RunConfig:
    """Top-level run configuration, as loaded from YAML."""

    outlier: OutlierConfig = field(default_factory=OutlierConfig)
    data: Optional[DataConfig] = None
    output: OutputConfig = field(default_factory=OutputConfig)


def _require_section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    """Return a mapping for a required top-level section or raise a KeyError."""
    try:
        section = raw[key]
    except KeyError as exc:
        raise KeyError(f"Missing required top-level section '{key}' in config") from exc

    if not isinstance(section, Mapping):
        raise TypeError(f"Config section '{key}' must be a mapping/dict")

    return section


def _optional_section(raw: Mapping[str, Any], key: str) -> Optional[Mapping[str, Any]]:
    if raw.get(key) is None:
        return None
    return _require_section(raw, key)


def load_config(path: str) -> RunConfig:
    """
    Load run configuration from a YAML file.

    The YAML file is expected to contain these top-level mappings:

    * ``outlier`` – parsed into :class:`OutlierConfig` (required)
    * ``data``    – parsed into :class:`DataConfig` (optional)
    * ``output``  – parsed into :class:`OutputConfig` (optional)

    Parameters
    ----------
    path
        Filesystem path to the YAML configuration file.

    Returns
    -------
    RunConfig
        Parsed and validated configuration.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist.
    KeyError
        If required sections or keys are missing in the YAML.
    TypeError
        If sections are not mappings/dicts as expected.
    ConfigurationError
        If the outlier options are invalid.
    yaml.YAMLError
        If the YAML file cannot be parsed.
    """
    with open(path, "r", encoding="utf-8") as file:
        raw: Any = yaml.safe_load(file)

    if not isinstance(raw, Mapping):
        raise TypeError("Top-level config must be a mapping/dict")

    outlier_cfg = OutlierConfig.from_mapping(_require_section(raw, "outlier"))

    data_cfg: Optional[DataConfig] = None
    data_section = _optional_section(raw, "data")
    if data_section is not None:
        data_cfg = DataConfig(
            time_column=str(data_section["time_column"]),
            value_column=str(data_section["value_column"]),
            total_column=data_section.get("total_column"),
            datetime_format=data_section.get("datetime_format"),
        )

    output_cfg = OutputConfig()
    out_section = _optional_section(raw, "output")
    if out_section is not None:
        output_cfg = OutputConfig(
            output_dir=out_section.get("output_dir"),
            report_path=out_section.get("report_path"),
            charts_dir=str(out_section.get("charts_dir", output_cfg.charts_dir)),
        )

    return RunConfig(outlier=outlier_cfg, data=data_cfg, output=output_cfg)
