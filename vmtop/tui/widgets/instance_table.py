"""Instance table widget rendering projected rows."""

from __future__ import annotations

from rich.table import Table
from rich.text import Text
from textual.widgets import Static

from vmtop.core.models import InstanceStatus
from vmtop.core.projector import Badge, Row, Spans

STATUS_STYLES = {
    InstanceStatus.RUNNING: "green",
    InstanceStatus.PROVISIONING: "yellow",
    InstanceStatus.STOPPING: "yellow",
    InstanceStatus.STOPPED: "red",
    InstanceStatus.TERMINATED: "red",
    InstanceStatus.UNKNOWN: "dim",
}

BADGE_STYLES = {
    "progress": "bold yellow",
    "error": "bold red",
    "success": "green",
}

MATCH_STYLE = "black on yellow"
CURRENT_MATCH_STYLE = "black on bright_yellow"

COLUMNS = ("NAME", "STATUS", "ZONE", "TYPE", "INTERNAL IP", "EXTERNAL IP", "OPERATION")

TABLE_CHROME_LINES = 3


def highlighted(value: str, spans: Spans, current: bool = False) -> Text:
    """Build a Text with search matches highlighted.

    Parameters
    ----------
    value : str
        Cell text
    spans : Spans
        (start, end) offsets of matches
    current : bool
        Whether the row holds the current match

    Returns
    -------
    Text
        Styled cell
    """
    text = Text(value)
    style = CURRENT_MATCH_STYLE if current else MATCH_STYLE
    for start, end in spans:
        text.stylize(style, start, end)
    return text


def badge_text(badge: Badge | None) -> Text:
    if badge is None:
        return Text("")
    return Text(badge.text, style=BADGE_STYLES.get(badge.level, ""))


def visible_window(rows: tuple[Row, ...], height: int) -> tuple[int, int]:
    """Return the [start, end) slice of rows to draw so the selection is visible.

    Parameters
    ----------
    rows : tuple[Row, ...]
        All projected rows
    height : int
        Number of rows that fit

    Returns
    -------
    tuple[int, int]
        Start and end indices
    """
    if height <= 0 or len(rows) <= height:
        return 0, len(rows)

    selected = next((i for i, row in enumerate(rows) if row.selected), 0)
    start = min(max(0, selected - height // 2), len(rows) - height)
    return start, start + height


class InstanceTable(Static):
    """Table of instances; redrawn from the render model on every change."""

    def show_rows(self, rows: tuple[Row, ...], empty_text: str | None = None) -> None:
        table = Table(expand=True, show_edge=False, header_style="bold")
        for column in COLUMNS:
            table.add_column(column, no_wrap=True)

        start, end = visible_window(rows, self.size.height - TABLE_CHROME_LINES)

        for row in rows[start:end]:
            table.add_row(
                highlighted(row.name, row.name_spans, row.current_match),
                Text(row.status.value, style=STATUS_STYLES[row.status]),
                Text(row.zone),
                Text(row.machine_type),
                highlighted(row.internal_ip, row.internal_ip_spans, row.current_match),
                highlighted(row.external_ip, row.external_ip_spans, row.current_match),
                badge_text(row.badge),
                style="reverse" if row.selected else None,
            )

        if not rows and empty_text:
            table.add_row(Text(empty_text, style="dim"), *[""] * (len(COLUMNS) - 1))

        self.update(table)
