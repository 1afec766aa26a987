"""Domain types shared by the store, poller, dispatcher and views."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum


class InstanceStatus(str, Enum):
    """Provider-neutral lifecycle status of an instance."""

    PROVISIONING = "Provisioning"
    RUNNING = "Running"
    STOPPING = "Stopping"
    STOPPED = "Stopped"
    TERMINATED = "Terminated"
    UNKNOWN = "Unknown"


class OperationKind(str, Enum):
    """Lifecycle command an operator can issue against an instance."""

    START = "start"
    STOP = "stop"
    RESTART = "restart"
    DELETE = "delete"

    @property
    def destructive(self) -> bool:
        """Whether the command needs explicit confirmation."""
        return self is not OperationKind.START

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def progress_label(self) -> str:
        """Badge shown while the command is outstanding."""
        return {
            OperationKind.START: "Starting…",
            OperationKind.STOP: "Stopping…",
            OperationKind.RESTART: "Restarting…",
            OperationKind.DELETE: "Terminating",
        }[self]

    @property
    def target_statuses(self) -> frozenset[InstanceStatus]:
        """Remote statuses that show the command has taken effect."""
        if self is OperationKind.STOP:
            return frozenset({InstanceStatus.STOPPED, InstanceStatus.TERMINATED})
        if self is OperationKind.DELETE:
            return frozenset()
        return frozenset({InstanceStatus.RUNNING})


class OperationPhase(str, Enum):
    SUBMITTED = "submitted"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


ACTIVE_PHASES = frozenset({OperationPhase.SUBMITTED, OperationPhase.IN_FLIGHT})


@dataclass(frozen=True)
class Instance:
    """Observed state of one remote virtual machine.

    Instances are values: every merge replaces the stored object for an id
    wholesale instead of mutating it.

    Parameters
    ----------
    id : str
        Provider-unique, immutable identifier
    name : str
        Human-readable name, not necessarily unique
    zone : str
        Placement zone (e.g. 'us-central1-a')
    status : InstanceStatus
        Normalized status
    region : str
        Region containing the zone; derived from the zone when empty
    """

    id: str
    name: str
    zone: str
    status: InstanceStatus
    region: str = ""
    project: str = ""
    machine_type: str = ""
    internal_ip: str | None = None
    external_ip: str | None = None
    labels: Mapping[str, str] = field(default_factory=dict)
    last_seen: float = 0.0
    raw_status: str = ""
    creation_timestamp: str = ""
    description: str = ""
    tags: tuple[str, ...] = ()
    metadata: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.region and self.zone:
            object.__setattr__(self, "region", region_from_zone(self.zone))


def region_from_zone(zone: str) -> str:
    """Strip the zone suffix from a zone name.

    Parameters
    ----------
    zone : str
        Zone such as 'us-central1-a' (GCP) or 'us-east-1a' (AWS)

    Returns
    -------
    str
        Region such as 'us-central1' or 'us-east-1'
    """
    head, sep, tail = zone.rpartition("-")
    if sep and len(tail) == 1 and tail.isalpha():
        return head
    if zone and zone[-1].isalpha() and zone[-2:-1].isdigit():
        return zone[:-1]
    return zone


@dataclass(frozen=True)
class OperationToken:
    """Handle identifying one dispatched operation.

    The serial makes tokens unique, so a completion arriving after its
    operation was replaced or dismissed is recognizably stale.
    """

    instance_id: str
    kind: OperationKind
    serial: int


@dataclass(frozen=True)
class PendingOperation:
    kind: OperationKind
    token: OperationToken
    submitted_at: float
    phase: OperationPhase = OperationPhase.SUBMITTED
    failure_reason: str | None = None
    acknowledged: bool = False

    @property
    def active(self) -> bool:
        return self.phase in ACTIVE_PHASES


@dataclass(frozen=True)
class OperationOutcome:
    """Result reported by the dispatcher for a finished provider call."""

    succeeded: bool
    reason: str | None = None

    @classmethod
    def success(cls) -> OperationOutcome:
        return cls(succeeded=True)

    @classmethod
    def failure(cls, reason: str) -> OperationOutcome:
        return cls(succeeded=False, reason=reason)


@dataclass(frozen=True)
class StoreEntry:
    instance: Instance
    pending: PendingOperation | None = None


@dataclass(frozen=True)
class StoreSnapshot:
    """Immutable, consistently ordered view of the instance store.

    Attributes
    ----------
    entries : tuple[StoreEntry, ...]
        Entries ordered by name, then id
    stale : bool
        Whether the last refresh attempt failed
    stale_reason : str | None
        Error from the last failed refresh
    last_refresh : float | None
        Timestamp of the last successful merge
    """

    entries: tuple[StoreEntry, ...] = ()
    stale: bool = False
    stale_reason: str | None = None
    last_refresh: float | None = None

    def get(self, instance_id: str) -> StoreEntry | None:
        for entry in self.entries:
            if entry.instance.id == instance_id:
                return entry
        return None

    def __contains__(self, instance_id: object) -> bool:
        return any(entry.instance.id == instance_id for entry in self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class MergeResult:
    """Summary of what one merge changed."""

    added: tuple[str, ...] = ()
    updated: tuple[str, ...] = ()
    evicted: tuple[str, ...] = ()
    confirmed_deletes: tuple[str, ...] = ()
    cleared_operations: tuple[str, ...] = ()


class RejectionReason(str, Enum):
    ALREADY_PENDING = "already pending"
    UNKNOWN_ID = "unknown instance"


class OperationRejected(Exception):
    """Raised when a command cannot be started for an instance.

    Parameters
    ----------
    instance_id : str
        Target of the rejected command
    reason : RejectionReason
        Why the command was rejected
    """

    def __init__(self, instance_id: str, reason: RejectionReason) -> None:
        self.instance_id = instance_id
        self.reason = reason
        super().__init__(f"Operation on {instance_id} rejected: {reason.value}")
