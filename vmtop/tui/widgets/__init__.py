"""TUI widgets module for vmtop."""

from enum import Enum

from vmtop.tui.widgets.instance_table import InstanceTable
from vmtop.tui.widgets.labeled_value import LabeledValue
from vmtop.tui.widgets.overlays import ConfirmPanel, DetailPanel, HelpPanel


class WidgetID(str, Enum):
    PROJECT = "project-widget"
    REGION = "region-widget"
    PROVIDER = "provider-widget"
    REFRESH = "refresh-widget"
    INSTANCES = "instances-widget"
    LAST_REFRESH = "last-refresh-widget"
    STALE_BANNER = "stale-banner"
    TABLE = "instance-table"
    INPUT_BAR = "input-bar"
    MESSAGE_BAR = "message-bar"
    HELP = "help-panel"
    DETAIL = "detail-panel"
    CONFIRM = "confirm-panel"

    def __str__(self) -> str:
        return self.value


__all__ = [
    "ConfirmPanel",
    "DetailPanel",
    "HelpPanel",
    "InstanceTable",
    "LabeledValue",
    "WidgetID",
]
