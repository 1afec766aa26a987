"""Labeled value widget with aligned display."""

from __future__ import annotations

from textual.widgets import Static

LABEL_WIDTH = 14


class LabeledValue(Static):
    """A widget that displays a label and value with alignment.

    The label is left-aligned with fixed width, and the value follows.

    Parameters
    ----------
    label : str
        The label text (e.g., "Project")
    value : str
        The value text (e.g., "my-project")
    **kwargs
        Additional keyword arguments passed to Static
    """

    def __init__(self, label: str, value: str = "", **kwargs) -> None:
        self._label = label
        self._value = value
        super().__init__(self._format_display(), **kwargs)

    def _format_display(self) -> str:
        """Format the label and value for display.

        Returns
        -------
        str
            Formatted string with aligned label and value
        """
        label_with_colon = f"{self._label}:"
        return f"{label_with_colon:<{LABEL_WIDTH}}{self._value}"

    @property
    def value(self) -> str:
        return self._value

    @value.setter
    def value(self, new_value: str) -> None:
        """Set the value and redraw, skipping redraws for unchanged values."""
        if new_value == self._value:
            return
        self._value = new_value
        self.update(self._format_display())
