"""Background refresh of the instance store."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from vmtop.constants import (
    DEFAULT_MAX_REFRESH_INTERVAL_SECONDS,
    DEFAULT_REFRESH_INTERVAL_SECONDS,
    MIN_REFRESH_INTERVAL_SECONDS,
)
from vmtop.core.interfaces import ComputeProvider
from vmtop.core.models import Instance
from vmtop.core.store import InstanceStore
from vmtop.providers.exceptions import ProviderError

logger = logging.getLogger(__name__)

MAX_BACKOFF_EXPONENT = 16


@dataclass
class Backoff:
    """Exponential backoff state for failed refreshes.

    Attributes
    ----------
    base : float
        Interval used while fetches succeed
    ceiling : float
        Upper bound for the interval
    failures : int
        Consecutive failed fetches
    """

    base: float
    ceiling: float
    failures: int = 0

    @property
    def interval(self) -> float:
        exponent = min(self.failures, MAX_BACKOFF_EXPONENT)
        return min(self.base * (2**exponent), max(self.ceiling, self.base))

    def record_failure(self) -> float:
        self.failures += 1
        return self.interval

    def reset(self) -> None:
        self.failures = 0


class Poller:
    """Periodically fetch the inventory and merge it into the store.

    Parameters
    ----------
    provider : ComputeProvider
        Adapter used to list instances
    store : InstanceStore
        Store receiving merges and stale markers
    project : str
        Project to list
    region_filter : str | None
        Optional region restriction passed to the adapter
    interval : float
        Base poll interval in seconds
    max_interval : float
        Backoff ceiling in seconds
    on_update : Callable[[dict[str, Any]], None] | None
        Called after every poll with a ``{"type", "payload"}`` update

    Attributes
    ----------
    backoff : Backoff
        Current backoff state; its interval is the wait before the next poll
    """

    def __init__(
        self,
        provider: ComputeProvider,
        store: InstanceStore,
        project: str,
        region_filter: str | None = None,
        interval: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
        max_interval: float = DEFAULT_MAX_REFRESH_INTERVAL_SECONDS,
        on_update: Callable[[dict[str, Any]], None] | None = None,
    ) -> None:
        self.provider = provider
        self.store = store
        self.project = project
        self.region_filter = region_filter
        self.backoff = Backoff(base=interval, ceiling=max_interval)
        self.on_update = on_update
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> float:
        return self.backoff.interval

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def initial_poll(self) -> bool:
        """Run the first fetch before the dashboard starts.

        Returns
        -------
        bool
            True if the store was populated, False if it starts empty and stale

        Raises
        ------
        ProviderError
            If credentials are rejected or the provider reports a fatal error
        """
        try:
            instances = self.provider.list_instances(self.project, self.region_filter)
        except ProviderError as e:
            if e.startup_fatal:
                raise
            self._record_failure(e)
            return False

        self._record_success(instances)
        return True

    def poll_once(self) -> bool:
        """Fetch and merge once, recording failures as stale data.

        Returns
        -------
        bool
            Whether the fetch succeeded
        """
        try:
            instances = self.provider.list_instances(self.project, self.region_filter)
        except ProviderError as e:
            self._record_failure(e)
            return False

        self._record_success(instances)
        return True

    def _record_success(self, instances: list[Instance]) -> None:
        result = self.store.merge(instances)
        self.backoff.reset()
        logger.debug(
            "Refreshed %d instances (%d new, %d evicted)",
            len(instances),
            len(result.added),
            len(result.evicted) + len(result.confirmed_deletes),
        )
        self._notify(
            {
                "type": "store_changed",
                "payload": {
                    "ok": True,
                    "evicted": result.evicted + result.confirmed_deletes,
                },
            }
        )

    def _record_failure(self, error: Exception) -> None:
        reason = str(error) or error.__class__.__name__
        self.store.mark_stale(reason)
        next_interval = self.backoff.record_failure()
        logger.warning("Refresh failed: %s (retrying in %.0fs)", reason, next_interval)
        self._notify({"type": "store_changed", "payload": {"ok": False, "error": reason}})

    def _notify(self, update: dict[str, Any]) -> None:
        if self.on_update is not None:
            self.on_update(update)

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="vmtop-poller", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self._wake_event.wait(self.backoff.interval)
            self._wake_event.clear()

            if self._stop_event.is_set():
                break

            try:
                self.poll_once()
            except Exception as e:
                logger.exception("Unexpected error while refreshing instances")
                self._record_failure(e)

    def refresh_now(self) -> None:
        """Wake the poll loop for an immediate fetch."""
        self._wake_event.set()

    def set_interval(self, seconds: float) -> float:
        """Change the base interval, clamped to the configured bounds.

        Returns
        -------
        float
            The interval actually applied
        """
        clamped = max(MIN_REFRESH_INTERVAL_SECONDS, min(seconds, self.backoff.ceiling))
        self.backoff.base = clamped
        logger.info("Refresh interval set to %.0fs", clamped)
        return clamped

    def stop(self, timeout: float) -> bool:
        """Stop the poll loop, waiting at most ``timeout`` seconds.

        A fetch still in progress after the timeout is abandoned; the thread is
        a daemon and will not block interpreter exit.

        Returns
        -------
        bool
            True if the thread finished within the timeout
        """
        self._stop_event.set()
        self._wake_event.set()

        if self._thread is None:
            return True

        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.debug("Poller did not stop within %.1fs, abandoning", timeout)
            return False
        return True
