"""Textual TUI application for vmtop."""

from __future__ import annotations

import logging
import queue
from dataclasses import replace
from typing import Any

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import Log, Static

from vmtop.constants import (
    EXIT_SUCCESS,
    MAX_UPDATES_PER_TICK,
    MESSAGE_TICK_INTERVAL,
    TUI_UPDATE_INTERVAL,
)
from vmtop.core.dispatcher import CommandDispatcher
from vmtop.core.interaction import InteractionStateMachine, KeyResult, MessageLevel, Mode
from vmtop.core.poller import Poller
from vmtop.core.projector import HeaderInfo, Overview, RenderModel, project
from vmtop.core.store import InstanceStore
from vmtop.logging import TuiFormatter, TuiLogHandler, TuiLogMessage
from vmtop.logging.setup import SDK_LOGGERS
from vmtop.tui.styling import TUI_CSS
from vmtop.tui.widgets import (
    ConfirmPanel,
    DetailPanel,
    HelpPanel,
    InstanceTable,
    LabeledValue,
    WidgetID,
)

logger = logging.getLogger(__name__)


def format_counts(overview: Overview) -> str:
    """Summarize instance counts, e.g. '5 (3 Running, 2 Stopped)'."""
    total = str(overview.total)
    if overview.visible != overview.total:
        total = f"{overview.visible}/{overview.total}"
    if not overview.counts:
        return total
    breakdown = ", ".join(f"{count} {status.value}" for status, count in overview.counts)
    return f"{total} ({breakdown})"


class VmtopTUI(App):
    """Textual dashboard for browsing and controlling instances.

    Background threads (poller, command workers) never touch widgets; they
    put ``{"type", "payload"}`` updates on ``update_queue`` and the app drains
    it on a timer, re-projecting the view after each batch.

    Parameters
    ----------
    store : InstanceStore
        Shared instance store
    poller : Poller
        Poller feeding the store
    dispatcher : CommandDispatcher
        Dispatcher for lifecycle commands
    machine : InteractionStateMachine
        Interaction state machine
    header : HeaderInfo
        Session facts for the overview panel
    update_queue : queue.Queue
        Queue receiving updates from background threads
    shutdown_grace : float
        Longest wait for background work when quitting
    start_poller : bool
        Whether to start the poller thread on mount (default: True)

    Attributes
    ----------
    original_handlers : list[logging.Handler]
        Original root logging handlers to restore on exit
    last_model : RenderModel | None
        Most recently rendered model
    """

    CSS = TUI_CSS
    ENABLE_COMMAND_PALETTE = False
    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
    ]

    def __init__(
        self,
        store: InstanceStore,
        poller: Poller,
        dispatcher: CommandDispatcher,
        machine: InteractionStateMachine,
        header: HeaderInfo,
        update_queue: queue.Queue,
        shutdown_grace: float,
        start_poller: bool = True,
    ) -> None:
        super().__init__()
        self.store = store
        self.poller = poller
        self.dispatcher = dispatcher
        self.machine = machine
        self.header = header
        self._update_queue = update_queue
        self.shutdown_grace = shutdown_grace
        self._start_poller = start_poller
        self.original_handlers: list[logging.Handler] = []
        self.log_widget: Log | None = None
        self.last_model: RenderModel | None = None
        self._shutting_down = False

    def compose(self) -> ComposeResult:
        """Compose TUI layout.

        Yields
        ------
        Container
            Overview panel with session facts
        Static
            Stale data banner, table, input bar and message bar
        Container
            Log panel container with log widget
        Static
            Help, detail and confirmation overlays
        """
        with Container(id="overview-panel"):
            yield LabeledValue("Project", self.header.project, id=WidgetID.PROJECT.value)
            yield LabeledValue(
                "Region", self.header.region or "all regions", id=WidgetID.REGION.value
            )
            yield LabeledValue("Provider", self.header.provider, id=WidgetID.PROVIDER.value)
            yield LabeledValue("Refresh", "", id=WidgetID.REFRESH.value)
            yield LabeledValue("Instances", "loading...", id=WidgetID.INSTANCES.value)
            yield LabeledValue("Last refresh", "never", id=WidgetID.LAST_REFRESH.value)
        yield Static("", id=WidgetID.STALE_BANNER.value)
        yield InstanceTable(id=WidgetID.TABLE.value)
        yield Static("", id=WidgetID.INPUT_BAR.value)
        yield Static("Press ? for help", id=WidgetID.MESSAGE_BAR.value)
        with Container(id="log-panel"):
            log_widget = Log(max_lines=500)
            log_widget.can_focus = False
            yield log_widget
        yield HelpPanel(id=WidgetID.HELP.value)
        yield DetailPanel(id=WidgetID.DETAIL.value)
        yield ConfirmPanel(id=WidgetID.CONFIRM.value)

    def on_mount(self) -> None:
        """Handle mount event - route logging to the log panel, start polling."""
        root_logger = logging.getLogger()
        self.original_handlers = root_logger.handlers[:]

        log_widget = self.query_one(Log)
        self.log_widget = log_widget
        tui_handler = TuiLogHandler(self, log_widget)
        tui_handler.setFormatter(TuiFormatter("%(message)s"))

        file_handlers = [h for h in self.original_handlers if isinstance(h, logging.FileHandler)]
        root_logger.handlers = [tui_handler, *file_handlers]

        for sdk_logger in SDK_LOGGERS:
            logging.getLogger(sdk_logger).setLevel(logging.WARNING)

        self.set_interval(TUI_UPDATE_INTERVAL, self.check_for_updates)
        self.set_interval(MESSAGE_TICK_INTERVAL, self.tick_messages)

        if self._start_poller:
            self.poller.start()

        self.machine.sync()
        self.render_view()

    async def on_tui_log_message(self, message: TuiLogMessage) -> None:
        """Append log messages emitted from background threads to the log widget."""
        if self.log_widget is None:
            return

        self.log_widget.write_line(message.text)

    def check_for_updates(self) -> None:
        """Drain background updates and re-render once if anything arrived.

        Processes up to MAX_UPDATES_PER_TICK updates per call to prevent
        unbounded processing that could block the UI thread.
        """
        updates_processed = 0

        while updates_processed < MAX_UPDATES_PER_TICK:
            try:
                data = self._update_queue.get_nowait()
            except queue.Empty:
                break

            update_type = data.get("type")
            payload = data.get("payload", {})

            if update_type == "operation_finished":
                self.handle_operation_finished(payload)

            updates_processed += 1

        if updates_processed:
            self.machine.sync()
            self.render_view()

    def handle_operation_finished(self, payload: dict[str, Any]) -> None:
        """Surface failed commands on the status line."""
        if payload.get("succeeded"):
            return

        entry = self.store.get(payload.get("instance_id", ""))
        name = entry.instance.name if entry is not None else payload.get("instance_id")
        self.machine.post_message(
            f"{payload.get('kind', 'command').capitalize()} of {name} failed: "
            f"{payload.get('reason')} (x to dismiss)",
            MessageLevel.ERROR,
        )

    def tick_messages(self) -> None:
        if self.machine.tick():
            self.render_view()

    def on_key(self, event: events.Key) -> None:
        """Handle key press events.

        Parameters
        ----------
        event : events.Key
            Key event
        """
        result = self.machine.handle_key(event.key, event.character)

        if result is KeyResult.QUIT:
            event.stop()
            self.action_quit()
            return

        if result is KeyResult.HANDLED:
            event.stop()
            self.render_view()

    def render_view(self) -> None:
        """Project store and interaction state and redraw every widget."""
        header = replace(self.header, refresh_interval=self.poller.backoff.base)
        model = project(self.store.snapshot(), self.machine.state, header)
        self.last_model = model

        self._render_overview(model.overview)

        banner = self.query_one(f"#{WidgetID.STALE_BANNER.value}", Static)
        banner.display = model.stale_banner is not None
        banner.update(Text(model.stale_banner or ""))

        self.query_one(InstanceTable).show_rows(model.rows, model.empty_text)
        self._render_input_bar(model)
        self._render_message(model)
        self._render_overlays(model)

    def _render_overview(self, overview: Overview) -> None:
        interval = self.poller.interval
        refresh = f"{overview.refresh_interval:g}s"
        if interval != overview.refresh_interval:
            refresh = f"{refresh} (backing off: {interval:g}s)"

        self.query_one(f"#{WidgetID.REFRESH.value}", LabeledValue).value = refresh
        self.query_one(f"#{WidgetID.INSTANCES.value}", LabeledValue).value = format_counts(overview)
        last_refresh = self.query_one(f"#{WidgetID.LAST_REFRESH.value}", LabeledValue)
        last_refresh.value = overview.last_refresh

    def _render_input_bar(self, model: RenderModel) -> None:
        text = Text()
        if model.filter_bar is not None:
            text.append(model.filter_bar)
            if model.filter_error:
                text.append(f"  {model.filter_error}", style="red")
        if model.search_bar is not None:
            if text:
                text.append("   ")
            text.append(model.search_bar)
            if model.search_status:
                text.append(f"  [{model.search_status}]", style="dim")

        input_bar = self.query_one(f"#{WidgetID.INPUT_BAR.value}", Static)
        input_bar.display = bool(text)
        input_bar.update(text)

    def _render_message(self, model: RenderModel) -> None:
        message_bar = self.query_one(f"#{WidgetID.MESSAGE_BAR.value}", Static)
        message_bar.set_class(model.message_level == MessageLevel.WARNING.value, "warning")
        message_bar.set_class(model.message_level == MessageLevel.ERROR.value, "error")
        message_bar.update(Text(model.message or "Press ? for help"))

    def _render_overlays(self, model: RenderModel) -> None:
        help_panel = self.query_one(HelpPanel)
        detail_panel = self.query_one(DetailPanel)
        confirm_panel = self.query_one(ConfirmPanel)

        if model.mode is Mode.HELP:
            help_panel.show(model.help_lines)
        else:
            help_panel.hide()

        if model.mode is Mode.DETAIL and model.detail is not None:
            detail_panel.show(model.detail)
        else:
            detail_panel.hide()

        if model.mode is Mode.CONFIRM_ACTION and model.confirm is not None:
            confirm_panel.show(model.confirm)
        else:
            confirm_panel.hide()

    def action_quit(self) -> None:
        """Begin orderly shutdown (q or Ctrl+C)."""
        if self._shutting_down:
            return
        self._shutting_down = True

        try:
            self.query_one(f"#{WidgetID.MESSAGE_BAR.value}", Static).update("Shutting down...")
        except Exception as e:
            logger.debug("Failed to update message bar during quit: %s", e)

        self.run_worker(self._run_shutdown, thread=True, exit_on_error=False)

    def _run_shutdown(self) -> None:
        """Stop background work in a worker thread to keep the TUI responsive."""
        self.poller.stop(self.shutdown_grace)
        self.dispatcher.shutdown(self.shutdown_grace)
        self.call_from_thread(self.exit, EXIT_SUCCESS)

    def on_unmount(self) -> None:
        """Handle unmount event - restore logging and drain the update queue."""
        root_logger = logging.getLogger()
        root_logger.handlers = self.original_handlers

        while not self._update_queue.empty():
            try:
                self._update_queue.get_nowait()
            except queue.Empty:
                break
