"""Thread-safe in-memory model of the remote instance inventory."""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import replace

from vmtop.constants import DEFAULT_EVICTION_THRESHOLD, SUCCEEDED_RETENTION_MERGES
from vmtop.core.models import (
    Instance,
    MergeResult,
    OperationKind,
    OperationOutcome,
    OperationPhase,
    OperationRejected,
    OperationToken,
    PendingOperation,
    RejectionReason,
    StoreEntry,
    StoreSnapshot,
)

logger = logging.getLogger(__name__)


class InstanceStore:
    """Authoritative local view of remote instances and their operations.

    Poll merges and operation transitions are serialized by a single lock, so
    a reader never sees a half-applied merge or an operation whose instance
    has already been evicted.

    Parameters
    ----------
    eviction_threshold : int
        Consecutive merges an id may be missing before it is evicted
    clock : Callable[[], float]
        Time source for ``last_seen`` and ``submitted_at`` (default: time.time)
    """

    def __init__(
        self,
        eviction_threshold: int = DEFAULT_EVICTION_THRESHOLD,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if eviction_threshold < 1:
            raise ValueError("eviction_threshold must be at least 1")

        self.eviction_threshold = eviction_threshold
        self._clock = clock
        self._lock = threading.RLock()
        self._instances: dict[str, Instance] = {}
        self._pending: dict[str, PendingOperation] = {}
        self._misses: dict[str, int] = {}
        self._succeeded_age: dict[str, int] = {}
        self._serials = itertools.count(1)
        self._stale = False
        self._stale_reason: str | None = None
        self._last_refresh: float | None = None

    def snapshot(self) -> StoreSnapshot:
        """Return an immutable view ordered by name, then id."""
        with self._lock:
            entries = tuple(
                StoreEntry(instance, self._pending.get(instance_id))
                for instance_id, instance in sorted(
                    self._instances.items(), key=lambda item: (item[1].name, item[0])
                )
            )
            return StoreSnapshot(
                entries=entries,
                stale=self._stale,
                stale_reason=self._stale_reason,
                last_refresh=self._last_refresh,
            )

    def get(self, instance_id: str) -> StoreEntry | None:
        with self._lock:
            instance = self._instances.get(instance_id)
            if instance is None:
                return None
            return StoreEntry(instance, self._pending.get(instance_id))

    def contains(self, instance_id: str) -> bool:
        with self._lock:
            return instance_id in self._instances

    def pending_operations(self) -> dict[str, PendingOperation]:
        with self._lock:
            return dict(self._pending)

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances)

    def merge(self, remote: Iterable[Instance]) -> MergeResult:
        """Reconcile the store with a freshly fetched inventory.

        Parameters
        ----------
        remote : Iterable[Instance]
            Complete result of one successful list call

        Returns
        -------
        MergeResult
            Ids added, updated and evicted, deletes confirmed by absence and
            succeeded operations cleared by this merge
        """
        with self._lock:
            now = self._clock()
            fetched: dict[str, Instance] = {}
            for instance in remote:
                fetched[instance.id] = instance

            added: list[str] = []
            updated: list[str] = []
            evicted: list[str] = []
            confirmed_deletes: list[str] = []
            cleared: list[str] = []

            for instance_id, instance in fetched.items():
                if instance_id in self._instances:
                    updated.append(instance_id)
                else:
                    added.append(instance_id)
                self._instances[instance_id] = replace(instance, last_seen=now)
                self._misses.pop(instance_id, None)

                if self._retire_succeeded(instance_id, instance):
                    cleared.append(instance_id)

            for instance_id in [i for i in self._instances if i not in fetched]:
                pending = self._pending.get(instance_id)

                if pending is not None and pending.kind is OperationKind.DELETE and pending.active:
                    self._evict(instance_id)
                    confirmed_deletes.append(instance_id)
                    logger.info("Instance %s deleted", instance_id)
                    continue

                misses = self._misses.get(instance_id, 0) + 1
                if misses >= self.eviction_threshold:
                    self._evict(instance_id)
                    evicted.append(instance_id)
                    logger.debug(
                        "Evicted %s after %d consecutive missing polls", instance_id, misses
                    )
                else:
                    self._misses[instance_id] = misses

            self._last_refresh = now
            self._stale = False
            self._stale_reason = None

            return MergeResult(
                added=tuple(added),
                updated=tuple(updated),
                evicted=tuple(evicted),
                confirmed_deletes=tuple(confirmed_deletes),
                cleared_operations=tuple(cleared),
            )

    def _retire_succeeded(self, instance_id: str, instance: Instance) -> bool:
        pending = self._pending.get(instance_id)
        if pending is None or pending.phase is not OperationPhase.SUCCEEDED:
            return False

        age = self._succeeded_age.get(instance_id, 0) + 1
        if instance.status in pending.kind.target_statuses or age >= SUCCEEDED_RETENTION_MERGES:
            del self._pending[instance_id]
            self._succeeded_age.pop(instance_id, None)
            return True

        self._succeeded_age[instance_id] = age
        return False

    def _evict(self, instance_id: str) -> None:
        self._instances.pop(instance_id, None)
        self._pending.pop(instance_id, None)
        self._misses.pop(instance_id, None)
        self._succeeded_age.pop(instance_id, None)

    def begin_operation(self, instance_id: str, kind: OperationKind) -> OperationToken:
        """Record a new operation for an instance.

        Parameters
        ----------
        instance_id : str
            Target instance
        kind : OperationKind
            Command being issued

        Returns
        -------
        OperationToken
            Token the dispatcher passes back on completion

        Raises
        ------
        OperationRejected
            If the id is unknown or already has an operation outstanding
        """
        with self._lock:
            if instance_id not in self._instances:
                raise OperationRejected(instance_id, RejectionReason.UNKNOWN_ID)

            existing = self._pending.get(instance_id)
            if existing is not None and existing.active:
                raise OperationRejected(instance_id, RejectionReason.ALREADY_PENDING)

            token = OperationToken(instance_id, kind, next(self._serials))
            self._pending[instance_id] = PendingOperation(
                kind=kind, token=token, submitted_at=self._clock()
            )
            self._succeeded_age.pop(instance_id, None)
            return token

    def mark_in_flight(self, token: OperationToken) -> bool:
        with self._lock:
            current = self._pending.get(token.instance_id)
            if current is None or current.token != token:
                return False
            if current.phase is not OperationPhase.SUBMITTED:
                return False
            self._pending[token.instance_id] = replace(current, phase=OperationPhase.IN_FLIGHT)
            return True

    def complete_operation(self, token: OperationToken, outcome: OperationOutcome) -> bool:
        """Apply the provider's answer to an outstanding operation.

        A successful delete only records the acknowledgement; the operation
        stays in flight until a merge no longer sees the instance or the
        confirmation deadline fails it.

        Parameters
        ----------
        token : OperationToken
            Token returned by ``begin_operation``
        outcome : OperationOutcome
            Provider result or timeout

        Returns
        -------
        bool
            False when the token is stale and the outcome was discarded
        """
        with self._lock:
            current = self._pending.get(token.instance_id)
            if current is None or current.token != token:
                logger.debug("Discarding stale completion for %s", token.instance_id)
                return False
            if not current.active:
                return False
            if current.acknowledged and outcome.succeeded:
                return False

            if not outcome.succeeded:
                self._pending[token.instance_id] = replace(
                    current,
                    phase=OperationPhase.FAILED,
                    failure_reason=outcome.reason or "unknown error",
                )
            elif token.kind is OperationKind.DELETE:
                self._pending[token.instance_id] = replace(
                    current, phase=OperationPhase.IN_FLIGHT, acknowledged=True
                )
            else:
                self._pending[token.instance_id] = replace(
                    current, phase=OperationPhase.SUCCEEDED
                )
                self._succeeded_age[token.instance_id] = 0
            return True

    def dismiss(self, instance_id: str) -> bool:
        """Clear a finished (failed or succeeded) operation record.

        Returns
        -------
        bool
            False when there is nothing to dismiss or the operation is active
        """
        with self._lock:
            current = self._pending.get(instance_id)
            if current is None or current.active:
                return False
            del self._pending[instance_id]
            self._succeeded_age.pop(instance_id, None)
            return True

    def mark_stale(self, reason: str) -> None:
        with self._lock:
            self._stale = True
            self._stale_reason = reason

    def clear_stale(self) -> None:
        with self._lock:
            self._stale = False
            self._stale_reason = None
