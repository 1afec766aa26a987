"""Logging handlers for TUI integration."""

import logging
import threading
from typing import TYPE_CHECKING

from textual.message import Message
from textual.widgets import Log

if TYPE_CHECKING:
    from vmtop.tui.app import VmtopTUI

logger = logging.getLogger(__name__)


class TuiLogMessage(Message):
    """Message delivering a log line to the TUI log widget."""

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__()


class TuiLogHandler(logging.Handler):
    """Logging handler that writes to the dashboard's Log widget.

    Records emitted on the app thread are written directly; records from the
    poller and command threads are posted as ``TuiLogMessage``.

    Parameters
    ----------
    app : VmtopTUI
        Textual app instance
    log_widget : Log
        Log widget to write to
    """

    def __init__(self, app: "VmtopTUI", log_widget: Log) -> None:
        super().__init__()
        self.app = app
        self.log_widget = log_widget

    def emit(self, record: logging.LogRecord) -> None:
        """Emit log record to TUI widget.

        Parameters
        ----------
        record : logging.LogRecord
            Log record to emit
        """
        msg = self.format(record)

        try:
            if not getattr(self.app, "_running", False):
                return

            if self.app._thread_id == threading.get_ident():
                self.log_widget.write_line(msg)
                return

            self.app.post_message(TuiLogMessage(msg))
        except (RuntimeError, AttributeError) as e:
            logger.debug("Error emitting log message to TUI: %s", e)
