"""Logging formatters for log files."""

import json
import logging
from datetime import UTC, datetime


class JsonFormatter(logging.Formatter):
    """Logging formatter that emits one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a JSON line.

        Parameters
        ----------
        record : logging.LogRecord
            Log record to format

        Returns
        -------
        str
            JSON object with timestamp, level, logger, message and, when
            present, the formatted exception
        """
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload)


class TuiFormatter(logging.Formatter):
    """Short formatter for the dashboard log panel: level tag and message."""

    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)

        if record.levelno >= logging.ERROR:
            return f"[error] {msg}"
        elif record.levelno >= logging.WARNING:
            return f"[warn] {msg}"

        return msg
