"""CLI argument parsing and parameter conversion utilities."""

from __future__ import annotations

import re
from typing import Any

DURATION_RE = re.compile(r"^\s*(?P<amount>\d+(?:\.\d+)?)\s*(?P<unit>ms|s|m)?\s*$")

DURATION_UNITS = {None: 1.0, "s": 1.0, "ms": 0.001, "m": 60.0}


def parse_refresh_interval(refresh: str | int | float) -> float:
    """Parse a refresh interval into seconds.

    Parameters
    ----------
    refresh : str | int | float
        Seconds as a number, or a string with an optional unit
        ('5', '5s', '1.5m', '500ms')

    Returns
    -------
    float
        Interval in seconds

    Raises
    ------
    ValueError
        If the value is not a positive duration
    """
    if isinstance(refresh, bool):
        raise ValueError(f"Invalid refresh interval: {refresh}")

    if isinstance(refresh, (int, float)):
        seconds = float(refresh)
    else:
        match = DURATION_RE.match(str(refresh))
        if match is None:
            raise ValueError(
                f"Invalid refresh interval: '{refresh}'. Use seconds, e.g. 5 or 5s or 1m"
            )
        seconds = float(match.group("amount")) * DURATION_UNITS[match.group("unit")]

    if seconds <= 0:
        raise ValueError(f"Refresh interval must be positive, got: {refresh}")

    return seconds


def parse_log_level(log_level: str) -> str:
    """Normalize a log level name ('DEBUG', 'Info', ...) to lower case."""
    return str(log_level).strip().lower()


def apply_cli_overrides(
    config: dict[str, Any],
    project: str | None = None,
    region: str | None = None,
    refresh: str | int | float | None = None,
    provider: str | None = None,
    log_file: str | None = None,
    log_level: str | None = None,
    log_format: str | None = None,
) -> None:
    """Apply CLI option overrides to merged configuration.

    Parameters
    ----------
    config : dict[str, Any]
        Configuration dictionary to modify in-place
    project : str | None
        Project id
    region : str | None
        Region filter
    refresh : str | int | float | None
        Refresh interval
    provider : str | None
        Provider name
    log_file : str | None
        Log file path
    log_level : str | None
        Log level name
    log_format : str | None
        'text' or 'json'
    """
    if project is not None:
        config["project"] = str(project)

    if region is not None:
        config["region"] = str(region)

    if refresh is not None:
        config["refresh_interval"] = parse_refresh_interval(refresh)
        if config.get("max_refresh_interval", 0) < config["refresh_interval"]:
            config["max_refresh_interval"] = config["refresh_interval"]

    if provider is not None:
        config["provider"] = str(provider)

    if log_file is not None:
        config["log_file"] = str(log_file)

    if log_level is not None:
        config["log_level"] = parse_log_level(log_level)

    if log_format is not None:
        config["log_format"] = str(log_format).lower()


__all__ = [
    "apply_cli_overrides",
    "parse_log_level",
    "parse_refresh_interval",
]
