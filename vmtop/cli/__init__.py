"""CLI argument parsing and handling."""

from __future__ import annotations

from vmtop.cli.parsing import (
    apply_cli_overrides,
    parse_log_level,
    parse_refresh_interval,
)

__all__ = [
    "apply_cli_overrides",
    "parse_log_level",
    "parse_refresh_interval",
]
