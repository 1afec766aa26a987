"""Overlay panels for help, instance details and confirmations.

Only one overlay is visible at a time; which one follows the interaction
mode. Overlays never take focus, so every key still reaches the app's key
handler and the state machine decides what it means.
"""

from __future__ import annotations

from rich.console import Group
from rich.table import Table
from rich.text import Text
from textual.widgets import Static

from vmtop.core.projector import ConfirmModel, DetailModel
from vmtop.tui.widgets.instance_table import badge_text


class OverlayPanel(Static):
    """Static panel shown above the table."""

    DEFAULT_CLASSES = "overlay"

    def hide(self) -> None:
        if self.display:
            self.display = False


class HelpPanel(OverlayPanel):
    """Key binding reference."""

    def show(self, lines: tuple[tuple[str, str], ...]) -> None:
        table = Table(title="Keyboard shortcuts", show_header=False, box=None, expand=True)
        table.add_column("keys", style="bold cyan", no_wrap=True)
        table.add_column("action")
        for keys, description in lines:
            table.add_row(keys, description)

        self.update(Group(table, Text("\nEsc or ? to close", style="dim")))
        self.display = True


class DetailPanel(OverlayPanel):
    """All known fields of one instance."""

    def show(self, detail: DetailModel) -> None:
        table = Table(title=detail.title, show_header=False, box=None, expand=True)
        table.add_column("field", style="bold", no_wrap=True)
        table.add_column("value")
        for label, value in detail.fields:
            table.add_row(label, value)

        if detail.labels:
            table.add_row("Labels", ", ".join(f"{k}={v}" for k, v in detail.labels))
        if detail.operation is not None:
            table.add_row("Operation", badge_text(detail.operation))

        self.update(Group(table, Text("\nEsc to close", style="dim")))
        self.display = True


class ConfirmPanel(OverlayPanel):
    """Confirmation prompt for destructive commands."""

    def show(self, confirm: ConfirmModel) -> None:
        self.update(Text(confirm.prompt, style="bold"))
        self.display = True
