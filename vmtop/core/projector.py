"""Pure projection of store and interaction state into a render model.

``project`` reads no clock and performs no I/O: the same snapshot and state
always produce an equal ``RenderModel``. The Textual widgets only draw what
it returns.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from vmtop.core.filters import visible_entries
from vmtop.core.interaction import KEY_HELP, InteractionState, Mode
from vmtop.core.models import (
    InstanceStatus,
    OperationKind,
    OperationPhase,
    PendingOperation,
    StoreEntry,
    StoreSnapshot,
)

Spans = tuple[tuple[int, int], ...]


@dataclass(frozen=True)
class HeaderInfo:
    """Session facts shown in the overview panel."""

    provider: str = ""
    project: str = ""
    region: str | None = None
    refresh_interval: float = 0.0
    version: str = ""


@dataclass(frozen=True)
class Badge:
    text: str
    level: str


@dataclass(frozen=True)
class Row:
    instance_id: str
    name: str
    status: InstanceStatus
    zone: str
    machine_type: str
    internal_ip: str
    external_ip: str
    badge: Badge | None = None
    selected: bool = False
    search_match: bool = False
    current_match: bool = False
    name_spans: Spans = ()
    id_spans: Spans = ()
    internal_ip_spans: Spans = ()
    external_ip_spans: Spans = ()


@dataclass(frozen=True)
class Overview:
    provider: str
    project: str
    region: str
    refresh_interval: float
    version: str
    total: int
    visible: int
    counts: tuple[tuple[InstanceStatus, int], ...]
    last_refresh: str


@dataclass(frozen=True)
class DetailModel:
    title: str
    fields: tuple[tuple[str, str], ...]
    labels: tuple[tuple[str, str], ...]
    operation: Badge | None


@dataclass(frozen=True)
class ConfirmModel:
    prompt: str
    kind: OperationKind


@dataclass(frozen=True)
class RenderModel:
    mode: Mode
    rows: tuple[Row, ...]
    overview: Overview
    stale_banner: str | None = None
    filter_bar: str | None = None
    filter_error: str | None = None
    search_bar: str | None = None
    search_status: str | None = None
    message: str | None = None
    message_level: str | None = None
    detail: DetailModel | None = None
    confirm: ConfirmModel | None = None
    help_lines: tuple[tuple[str, str], ...] = ()
    empty_text: str | None = None


def operation_badge(pending: PendingOperation | None) -> Badge | None:
    if pending is None:
        return None
    if pending.phase is OperationPhase.FAILED:
        return Badge(f"Failed: {pending.failure_reason}", "error")
    if pending.phase is OperationPhase.SUCCEEDED:
        return Badge("Done", "success")
    return Badge(pending.kind.progress_label, "progress")


def confirm_prompt(kind: OperationKind, name: str) -> str:
    if kind is OperationKind.DELETE:
        return f"Delete instance {name}? This cannot be undone. [y/N]"
    return f"{kind.label} instance {name}? [y/N]"


def format_timestamp(timestamp: float | None) -> str:
    if not timestamp:
        return "never"
    return datetime.fromtimestamp(timestamp, tz=UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


def _row(entry: StoreEntry, state: InteractionState, current_match_id: str | None) -> Row:
    instance = entry.instance
    search = state.search_spec
    matched = search is not None and search.matches(instance)

    return Row(
        instance_id=instance.id,
        name=instance.name,
        status=instance.status,
        zone=instance.zone,
        machine_type=instance.machine_type,
        internal_ip=instance.internal_ip or "-",
        external_ip=instance.external_ip or "-",
        badge=operation_badge(entry.pending),
        selected=instance.id == state.selected_id,
        search_match=matched,
        current_match=matched and instance.id == current_match_id,
        name_spans=search.spans(instance.name) if matched else (),
        id_spans=search.spans(instance.id) if matched else (),
        internal_ip_spans=search.spans(instance.internal_ip) if matched else (),
        external_ip_spans=search.spans(instance.external_ip) if matched else (),
    )


def _detail(entry: StoreEntry) -> DetailModel:
    instance = entry.instance
    fields = (
        ("Name", instance.name),
        ("ID", instance.id),
        ("Status", instance.raw_status or instance.status.value),
        ("Zone", instance.zone),
        ("Region", instance.region),
        ("Project", instance.project or "-"),
        ("Machine type", instance.machine_type or "-"),
        ("Internal IP", instance.internal_ip or "-"),
        ("External IP", instance.external_ip or "-"),
        ("Created", instance.creation_timestamp or "-"),
        ("Description", instance.description or "-"),
        ("Network tags", ", ".join(instance.tags) or "-"),
        ("Metadata keys", ", ".join(sorted(instance.metadata)) or "-"),
        ("Last seen", format_timestamp(instance.last_seen)),
    )
    return DetailModel(
        title=f"Instance: {instance.name}",
        fields=fields,
        labels=tuple(sorted(instance.labels.items())),
        operation=operation_badge(entry.pending),
    )


def _overview(snapshot: StoreSnapshot, visible: int, header: HeaderInfo) -> Overview:
    counts = {status: 0 for status in InstanceStatus}
    for entry in snapshot.entries:
        counts[entry.instance.status] += 1

    return Overview(
        provider=header.provider,
        project=header.project,
        region=header.region or "all regions",
        refresh_interval=header.refresh_interval,
        version=header.version,
        total=len(snapshot.entries),
        visible=visible,
        counts=tuple((status, count) for status, count in counts.items() if count),
        last_refresh=format_timestamp(snapshot.last_refresh),
    )


def project(
    snapshot: StoreSnapshot, state: InteractionState, header: HeaderInfo | None = None
) -> RenderModel:
    """Build everything the dashboard draws for one frame.

    Parameters
    ----------
    snapshot : StoreSnapshot
        Store contents
    state : InteractionState
        Current interaction state
    header : HeaderInfo | None
        Session facts for the overview panel

    Returns
    -------
    RenderModel
        Rows after filtering, with selection, badges and search highlights,
        plus overview, banners and the active overlay
    """
    header = header or HeaderInfo()
    entries = visible_entries(snapshot, state.filter_spec)

    matches = (
        [e.instance.id for e in entries if state.search_spec.matches(e.instance)]
        if state.search_spec is not None
        else []
    )
    if state.selected_id in matches:
        current_match_id = state.selected_id
    elif matches:
        current_match_id = matches[min(state.search_cursor, len(matches) - 1)]
    else:
        current_match_id = None

    rows = tuple(_row(entry, state, current_match_id) for entry in entries)

    filter_bar = None
    if state.mode is Mode.FILTER_EDITING or state.filter_spec.active:
        filter_bar = f"Filter: {state.filter_text}"

    search_bar = None
    search_status = None
    if state.mode is Mode.SEARCH_EDITING or state.search_spec is not None:
        search_bar = f"/{state.search_text}"
        if state.search_spec is not None:
            if matches:
                search_status = f"{matches.index(current_match_id) + 1}/{len(matches)}"
            else:
                search_status = "no matches"

    detail = None
    if state.mode is Mode.DETAIL and state.detail_id is not None:
        entry = snapshot.get(state.detail_id)
        if entry is not None:
            detail = _detail(entry)

    confirm = None
    if state.mode is Mode.CONFIRM_ACTION and state.confirm is not None:
        confirm = ConfirmModel(
            prompt=confirm_prompt(state.confirm.kind, state.confirm.name),
            kind=state.confirm.kind,
        )

    empty_text = None
    if not rows:
        empty_text = "No instances match the filter" if snapshot.entries else "No instances found"

    return RenderModel(
        mode=state.mode,
        rows=rows,
        overview=_overview(snapshot, len(rows), header),
        stale_banner=f"Data may be stale: {snapshot.stale_reason}" if snapshot.stale else None,
        filter_bar=filter_bar,
        filter_error=state.filter_error,
        search_bar=search_bar,
        search_status=search_status,
        message=state.message.text if state.message is not None else None,
        message_level=state.message.level.value if state.message is not None else None,
        detail=detail,
        confirm=confirm,
        help_lines=KEY_HELP if state.mode is Mode.HELP else (),
        empty_text=empty_text,
    )
