"""CSS for the vmtop dashboard."""

TUI_CSS = """
Screen {
    layers: base overlay;
}

#overview-panel {
    height: auto;
    border: solid $primary;
    padding: 0 1;
}

#stale-banner {
    height: auto;
    background: $warning 30%;
    color: $text;
    padding: 0 1;
}

#instance-table {
    height: 1fr;
    border: solid $primary;
}

#input-bar {
    height: auto;
    padding: 0 1;
}

#message-bar {
    height: 1;
    padding: 0 1;
    color: $text-muted;
}

#message-bar.warning {
    color: $warning;
}

#message-bar.error {
    color: $error;
}

#log-panel {
    height: 8;
    border: solid $secondary;
}

.overlay {
    layer: overlay;
    display: none;
    width: 80%;
    height: auto;
    max-height: 80%;
    offset: 10% 4;
    padding: 1 2;
    background: $surface;
    border: thick $primary;
}

#confirm-panel {
    border: thick $error;
}
"""
