"""Logging helpers for vmtop."""

from vmtop.logging.formatters import JsonFormatter, TuiFormatter
from vmtop.logging.handlers import TuiLogHandler, TuiLogMessage
from vmtop.logging.setup import build_file_handler, configure_logging

__all__ = [
    "JsonFormatter",
    "TuiFormatter",
    "TuiLogHandler",
    "TuiLogMessage",
    "build_file_handler",
    "configure_logging",
]
