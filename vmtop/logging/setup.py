"""Process-level logging configuration."""

import logging
import sys
from pathlib import Path

from vmtop.constants import TEXT_LOG_FORMAT
from vmtop.logging.formatters import JsonFormatter

SDK_LOGGERS = ("botocore", "boto3", "urllib3", "google", "grpc")


def build_file_handler(log_file: str, log_format: str = "text") -> logging.Handler:
    """Create a file handler with the text or JSON formatter.

    Parameters
    ----------
    log_file : str
        Path of the log file; parent directories are created
    log_format : str
        'text' or 'json'

    Returns
    -------
    logging.Handler
        Configured file handler
    """
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(path, encoding="utf-8")
    if log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_LOG_FORMAT))
    return handler


def configure_logging(
    level: str = "info", log_file: str | None = None, log_format: str = "text"
) -> list[logging.Handler]:
    """Configure root logging before the dashboard starts.

    Messages go to stderr until the TUI takes over the root handlers; the
    optional file handler stays attached for the whole session.

    Parameters
    ----------
    level : str
        Level name ('debug', 'info', ...)
    log_file : str | None
        Optional log file
    log_format : str
        Format for the log file

    Returns
    -------
    list[logging.Handler]
        Handlers installed on the root logger
    """
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(logging.Formatter("%(message)s"))
    handlers: list[logging.Handler] = [stderr_handler]

    if log_file:
        handlers.append(build_file_handler(log_file, log_format))

    logging.basicConfig(level=level.upper(), handlers=handlers, force=True)

    for sdk_logger in SDK_LOGGERS:
        logging.getLogger(sdk_logger).setLevel(logging.WARNING)

    return handlers
