"""Keyboard-driven interaction state machine for the dashboard."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum

from vmtop.constants import DEFAULT_MESSAGE_TTL_SECONDS
from vmtop.core.dispatcher import CommandDispatcher
from vmtop.core.filters import (
    MATCH_ALL,
    FilterError,
    FilterSpec,
    SearchSpec,
    compile_filter,
    compile_search,
    visible_entries,
)
from vmtop.core.models import OperationKind, OperationRejected, StoreSnapshot
from vmtop.core.poller import Poller
from vmtop.core.store import InstanceStore

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    LIST = "list"
    DETAIL = "detail"
    HELP = "help"
    FILTER_EDITING = "filter"
    SEARCH_EDITING = "search"
    CONFIRM_ACTION = "confirm"


TEXT_MODES = frozenset({Mode.FILTER_EDITING, Mode.SEARCH_EDITING})


class MessageLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class KeyResult(Enum):
    HANDLED = "handled"
    IGNORED = "ignored"
    QUIT = "quit"


@dataclass(frozen=True)
class StatusMessage:
    text: str
    level: MessageLevel
    expires_at: float


@dataclass(frozen=True)
class ConfirmRequest:
    instance_id: str
    kind: OperationKind
    name: str


@dataclass(frozen=True)
class InteractionState:
    """Everything the views need besides the store snapshot.

    Attributes
    ----------
    mode : Mode
        Active mode; at most one overlay is open at a time
    selected_id : str | None
        Selected row, always one of the visible rows or None
    detail_id : str | None
        Instance shown in the detail overlay (DETAIL mode only)
    confirm : ConfirmRequest | None
        Command awaiting confirmation (CONFIRM_ACTION mode only)
    filter_text : str
        Text in the filter bar, possibly not yet valid
    filter_spec : FilterSpec
        Last successfully compiled filter
    filter_error : str | None
        Compile error for ``filter_text``
    search_text : str
        Active search text
    search_spec : SearchSpec | None
        Compiled search, None when no search is active
    search_cursor : int
        Index of the current match among visible matches
    message : StatusMessage | None
        Transient status line message
    """

    mode: Mode = Mode.LIST
    selected_id: str | None = None
    detail_id: str | None = None
    detail_name: str = ""
    confirm: ConfirmRequest | None = None
    filter_text: str = ""
    filter_spec: FilterSpec = MATCH_ALL
    filter_error: str | None = None
    saved_filter_text: str = ""
    saved_filter_spec: FilterSpec = MATCH_ALL
    search_text: str = ""
    search_spec: SearchSpec | None = None
    search_cursor: int = 0
    message: StatusMessage | None = None


KEY_HELP: tuple[tuple[str, str], ...] = (
    ("↑/k  ↓/j", "Move selection"),
    ("g/Home  G/End", "First / last instance"),
    ("Enter", "Instance details"),
    ("f", "Filter (field=text, field~regex, label.KEY=text)"),
    ("/", "Search names, ids and IPs"),
    ("n / N", "Next / previous match"),
    ("s", "Start instance"),
    ("S", "Stop instance"),
    ("R", "Restart instance"),
    ("d", "Delete instance"),
    ("x", "Dismiss finished operation"),
    ("r", "Refresh now"),
    ("+ / -", "Slower / faster refresh"),
    ("Esc", "Close overlay, clear search"),
    ("?", "Toggle help"),
    ("q / Ctrl+C", "Quit"),
)

CONFIRM_KINDS = {
    "S": OperationKind.STOP,
    "R": OperationKind.RESTART,
    "d": OperationKind.DELETE,
}


def key_token(key: str, character: str | None = None) -> str:
    """Collapse a key event into the token the state machine matches on.

    Printable characters win over key names so that shifted letters and
    symbols arrive as typed ('S', '?', '+').
    """
    if character and len(character) == 1 and character.isprintable():
        return character
    return key


class InteractionStateMachine:
    """Translate key presses into state transitions and commands.

    Parameters
    ----------
    store : InstanceStore
        Source of the rows being navigated
    dispatcher : CommandDispatcher
        Receives confirmed lifecycle commands
    poller : Poller | None
        Used for manual refresh and interval changes, when present
    message_ttl : float
        Seconds a status message stays visible
    clock : Callable[[], float]
        Time source for message expiry (default: time.monotonic)
    """

    def __init__(
        self,
        store: InstanceStore,
        dispatcher: CommandDispatcher,
        poller: Poller | None = None,
        message_ttl: float = DEFAULT_MESSAGE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.poller = poller
        self.message_ttl = message_ttl
        self._clock = clock
        self.state = InteractionState()

    def handle_key(self, key: str, character: str | None = None) -> KeyResult:
        """Apply one key press.

        Parameters
        ----------
        key : str
            Key name as reported by the terminal ('down', 'enter', 'ctrl+c')
        character : str | None
            Printable character for the key, if any

        Returns
        -------
        KeyResult
            QUIT when the operator asked to leave
        """
        if key == "ctrl+c":
            return KeyResult.QUIT

        token = key_token(key, character)
        mode = self.state.mode

        if mode not in TEXT_MODES and token == "q":
            return KeyResult.QUIT

        snapshot = self.store.snapshot()

        if mode is Mode.LIST:
            return self._handle_list(token, snapshot)
        if mode is Mode.DETAIL:
            return self._close_overlay() if token == "escape" else KeyResult.IGNORED
        if mode is Mode.HELP:
            return self._close_overlay() if token in ("escape", "?") else KeyResult.IGNORED
        if mode is Mode.CONFIRM_ACTION:
            return self._handle_confirm(token, snapshot)
        if mode is Mode.FILTER_EDITING:
            return self._handle_filter(token, snapshot)
        return self._handle_search(token, snapshot)

    def _handle_list(self, token: str, snapshot: StoreSnapshot) -> KeyResult:
        rows = [entry.instance.id for entry in visible_entries(snapshot, self.state.filter_spec)]
        selected = self.state.selected_id if self.state.selected_id in rows else None

        if token in ("up", "k"):
            self._move(rows, selected, -1)
        elif token in ("down", "j"):
            self._move(rows, selected, 1)
        elif token in ("home", "g"):
            self._select(rows[0] if rows else None)
        elif token in ("end", "G"):
            self._select(rows[-1] if rows else None)
        elif token == "enter":
            if selected is None:
                return KeyResult.IGNORED
            entry = snapshot.get(selected)
            self.state = replace(
                self.state, mode=Mode.DETAIL, detail_id=selected, detail_name=entry.instance.name
            )
        elif token == "?":
            self.state = replace(self.state, mode=Mode.HELP)
        elif token == "f":
            self.state = replace(
                self.state,
                mode=Mode.FILTER_EDITING,
                saved_filter_text=self.state.filter_text,
                saved_filter_spec=self.state.filter_spec,
            )
        elif token == "/":
            self.state = replace(
                self.state,
                mode=Mode.SEARCH_EDITING,
                search_text="",
                search_spec=None,
                search_cursor=0,
            )
        elif token in ("n", "N"):
            self._step_search(snapshot, 1 if token == "n" else -1)
        elif token == "escape":
            if self.state.search_spec is None:
                return KeyResult.IGNORED
            self.state = replace(self.state, search_text="", search_spec=None, search_cursor=0)
        elif token == "s":
            self._dispatch(snapshot, selected, OperationKind.START)
        elif token in CONFIRM_KINDS:
            if selected is None:
                self.post_message("No instance selected", MessageLevel.WARNING)
                return KeyResult.HANDLED
            entry = snapshot.get(selected)
            self.state = replace(
                self.state,
                mode=Mode.CONFIRM_ACTION,
                confirm=ConfirmRequest(selected, CONFIRM_KINDS[token], entry.instance.name),
            )
        elif token == "x":
            self._dismiss(snapshot, selected)
        elif token == "r":
            self._refresh()
        elif token in ("+", "-"):
            self._change_interval(2.0 if token == "+" else 0.5)
        else:
            return KeyResult.IGNORED

        return KeyResult.HANDLED

    def _move(self, rows: list[str], selected: str | None, step: int) -> None:
        if not rows:
            self._select(None)
            return
        if selected is None:
            self._select(rows[0])
            return
        index = max(0, min(len(rows) - 1, rows.index(selected) + step))
        self._select(rows[index])

    def _select(self, instance_id: str | None) -> None:
        self.state = replace(self.state, selected_id=instance_id)

    def _close_overlay(self) -> KeyResult:
        self.state = replace(
            self.state, mode=Mode.LIST, detail_id=None, detail_name="", confirm=None
        )
        return KeyResult.HANDLED

    def _handle_confirm(self, token: str, snapshot: StoreSnapshot) -> KeyResult:
        request = self.state.confirm
        self._close_overlay()

        if token != "y":
            self.post_message(f"{request.kind.label} cancelled", MessageLevel.INFO)
            return KeyResult.HANDLED

        if request.instance_id not in snapshot:
            self.post_message(f"Instance {request.name} no longer exists", MessageLevel.WARNING)
            return KeyResult.HANDLED

        self._dispatch(snapshot, request.instance_id, request.kind)
        return KeyResult.HANDLED

    def _dispatch(
        self, snapshot: StoreSnapshot, instance_id: str | None, kind: OperationKind
    ) -> None:
        if instance_id is None:
            self.post_message("No instance selected", MessageLevel.WARNING)
            return

        entry = snapshot.get(instance_id)
        name = entry.instance.name if entry is not None else instance_id

        try:
            self.dispatcher.dispatch(instance_id, kind)
        except OperationRejected as e:
            self.post_message(
                f"{kind.label} of {name} rejected: {e.reason.value}", MessageLevel.WARNING
            )
            return

        self.post_message(f"{kind.label} requested for {name}", MessageLevel.INFO)

    def _dismiss(self, snapshot: StoreSnapshot, selected: str | None) -> None:
        if selected is None or not self.store.dismiss(selected):
            self.post_message("Nothing to dismiss", MessageLevel.INFO)
            return
        entry = snapshot.get(selected)
        name = entry.instance.name if entry is not None else selected
        self.post_message(f"Dismissed operation on {name}", MessageLevel.INFO)

    def _refresh(self) -> None:
        if self.poller is None:
            return
        self.poller.refresh_now()
        self.post_message("Refreshing…", MessageLevel.INFO)

    def _change_interval(self, factor: float) -> None:
        if self.poller is None:
            return
        applied = self.poller.set_interval(self.poller.backoff.base * factor)
        self.post_message(f"Refresh interval {applied:g}s", MessageLevel.INFO)

    def _handle_filter(self, token: str, snapshot: StoreSnapshot) -> KeyResult:
        if token == "enter":
            if self.state.filter_error is not None:
                self.post_message(
                    f"Invalid filter, keeping '{self.state.filter_spec.text}'",
                    MessageLevel.WARNING,
                )
            self.state = replace(
                self.state,
                mode=Mode.LIST,
                filter_text=self.state.filter_spec.text,
                filter_error=None,
            )
        elif token == "escape":
            self.state = replace(
                self.state,
                mode=Mode.LIST,
                filter_text=self.state.saved_filter_text,
                filter_spec=self.state.saved_filter_spec,
                filter_error=None,
            )
        elif token == "backspace":
            self._set_filter_text(self.state.filter_text[:-1])
        elif token == "ctrl+u":
            self._set_filter_text("")
        elif len(token) == 1:
            self._set_filter_text(self.state.filter_text + token)
        else:
            return KeyResult.IGNORED

        self.sync(snapshot)
        return KeyResult.HANDLED

    def _set_filter_text(self, text: str) -> None:
        try:
            spec = compile_filter(text)
        except FilterError as e:
            self.state = replace(self.state, filter_text=text, filter_error=str(e))
            return
        self.state = replace(self.state, filter_text=text, filter_spec=spec, filter_error=None)

    def _handle_search(self, token: str, snapshot: StoreSnapshot) -> KeyResult:
        if token == "enter":
            self.state = replace(self.state, mode=Mode.LIST)
            if self.state.search_spec is None:
                return KeyResult.HANDLED
            matches = self.search_matches(snapshot)
            if not matches:
                self.post_message(
                    f"Pattern not found: {self.state.search_text}", MessageLevel.WARNING
                )
            return KeyResult.HANDLED

        if token == "escape":
            self.state = replace(
                self.state, mode=Mode.LIST, search_text="", search_spec=None, search_cursor=0
            )
            return KeyResult.HANDLED

        if token == "backspace":
            text = self.state.search_text[:-1]
        elif token == "ctrl+u":
            text = ""
        elif len(token) == 1:
            text = self.state.search_text + token
        else:
            return KeyResult.IGNORED

        self.state = replace(
            self.state, search_text=text, search_spec=compile_search(text), search_cursor=0
        )
        matches = self.search_matches(snapshot)
        if matches:
            self._select(matches[0])
        return KeyResult.HANDLED

    def search_matches(self, snapshot: StoreSnapshot) -> list[str]:
        """Ids of visible rows matching the active search, in display order."""
        spec = self.state.search_spec
        if spec is None:
            return []
        return [
            entry.instance.id
            for entry in visible_entries(snapshot, self.state.filter_spec)
            if spec.matches(entry.instance)
        ]

    def _step_search(self, snapshot: StoreSnapshot, step: int) -> None:
        if self.state.search_spec is None:
            self.post_message("No active search", MessageLevel.INFO)
            return

        matches = self.search_matches(snapshot)
        if not matches:
            self.post_message(f"Pattern not found: {self.state.search_text}", MessageLevel.WARNING)
            return

        if self.state.selected_id in matches:
            cursor = (matches.index(self.state.selected_id) + step) % len(matches)
        elif step > 0:
            cursor = self.state.search_cursor % len(matches)
        else:
            cursor = (self.state.search_cursor - 1) % len(matches)

        self.state = replace(self.state, search_cursor=cursor, selected_id=matches[cursor])

    def sync(self, snapshot: StoreSnapshot | None = None) -> None:
        """Reconcile selection and overlays with the current store contents.

        Called after every store change. A detail view or confirmation whose
        instance has disappeared is closed with a message.
        """
        if snapshot is None:
            snapshot = self.store.snapshot()

        state = self.state
        if state.mode is Mode.DETAIL and state.detail_id not in snapshot:
            self._close_overlay()
            self.post_message(
                f"Instance {state.detail_name} no longer exists", MessageLevel.WARNING
            )
        elif state.mode is Mode.CONFIRM_ACTION and state.confirm.instance_id not in snapshot:
            self._close_overlay()
            self.post_message(
                f"Instance {state.confirm.name} no longer exists", MessageLevel.WARNING
            )

        rows = [entry.instance.id for entry in visible_entries(snapshot, self.state.filter_spec)]
        if self.state.selected_id not in rows:
            self._select(rows[0] if rows else None)

        matches = self.search_matches(snapshot)
        if self.state.search_cursor >= len(matches) and self.state.search_cursor:
            self.state = replace(self.state, search_cursor=0)

    def post_message(self, text: str, level: MessageLevel = MessageLevel.INFO) -> None:
        expires_at = self._clock() + self.message_ttl
        self.state = replace(self.state, message=StatusMessage(text, level, expires_at))
        if level is not MessageLevel.INFO:
            logger.info(text)

    def tick(self, now: float | None = None) -> bool:
        """Expire the status message once its deadline passed.

        Returns
        -------
        bool
            Whether the state changed
        """
        message = self.state.message
        if message is None:
            return False
        if now is None:
            now = self._clock()
        if now < message.expires_at:
            return False
        self.state = replace(self.state, message=None)
        return True
