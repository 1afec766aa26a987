"""Asynchronous execution of instance lifecycle commands."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from vmtop.constants import DEFAULT_COMMAND_TIMEOUT_SECONDS
from vmtop.core.interfaces import ComputeProvider
from vmtop.core.models import OperationKind, OperationOutcome, OperationToken
from vmtop.core.store import InstanceStore
from vmtop.providers.exceptions import ProviderError

logger = logging.getLogger(__name__)

TIMEOUT_REASON = "Timeout"

PROVIDER_METHODS = {
    OperationKind.START: "start_instance",
    OperationKind.STOP: "stop_instance",
    OperationKind.RESTART: "restart_instance",
    OperationKind.DELETE: "delete_instance",
}


class CommandDispatcher:
    """Run lifecycle commands without blocking the interface.

    Each accepted command gets a daemon worker thread for the provider call
    and a timer that fails the operation if the provider does not answer in
    time. An accepted delete gets a second timer of the same length: if no
    poll confirms the instance gone by then, the delete fails with 'Timeout'.
    Outcomes are written to the store; the store discards answers that arrive
    after the operation already finished.

    Parameters
    ----------
    provider : ComputeProvider
        Adapter executing the commands
    store : InstanceStore
        Store tracking pending operations
    command_timeout : float
        Seconds to wait for the provider before failing with 'Timeout'
    on_update : Callable[[dict[str, Any]], None] | None
        Called with an ``operation_finished`` update after each outcome
    """

    def __init__(
        self,
        provider: ComputeProvider,
        store: InstanceStore,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT_SECONDS,
        on_update: Callable[[dict[str, Any]], None] | None = None,
    ) -> None:
        self.provider = provider
        self.store = store
        self.command_timeout = command_timeout
        self.on_update = on_update
        self._lock = threading.Lock()
        self._timers: dict[OperationToken, threading.Timer] = {}
        self._workers: dict[OperationToken, threading.Thread] = {}
        self._closed = False

    @property
    def in_flight(self) -> int:
        with self._lock:
            return sum(1 for worker in self._workers.values() if worker.is_alive())

    def dispatch(self, instance_id: str, kind: OperationKind) -> OperationToken:
        """Start a lifecycle command.

        Parameters
        ----------
        instance_id : str
            Target instance
        kind : OperationKind
            Command to run

        Returns
        -------
        OperationToken
            Token of the recorded operation

        Raises
        ------
        OperationRejected
            If the store refuses the operation
        """
        token = self.store.begin_operation(instance_id, kind)

        worker = threading.Thread(
            target=self._execute,
            args=(token,),
            name=f"vmtop-{kind.value}-{instance_id}",
            daemon=True,
        )

        with self._lock:
            self._workers[token] = worker

        logger.info("%s requested for %s", kind.label, instance_id)
        self._start_timer(token)
        worker.start()
        return token

    def _start_timer(self, token: OperationToken) -> None:
        timer = threading.Timer(self.command_timeout, self._on_timeout, args=(token,))
        timer.daemon = True

        with self._lock:
            if self._closed:
                return
            self._timers[token] = timer

        timer.start()

    def _execute(self, token: OperationToken) -> None:
        self.store.mark_in_flight(token)
        call = getattr(self.provider, PROVIDER_METHODS[token.kind])

        try:
            call(token.instance_id)
        except ProviderError as e:
            outcome = OperationOutcome.failure(str(e))
        except Exception as e:
            logger.exception(
                "Unexpected error during %s of %s", token.kind.value, token.instance_id
            )
            outcome = OperationOutcome.failure(str(e) or e.__class__.__name__)
        else:
            outcome = OperationOutcome.success()

        with self._lock:
            timer = self._timers.pop(token, None)
            self._workers.pop(token, None)

        if timer is not None:
            timer.cancel()

        applied = self._finish(token, outcome)

        if applied and outcome.succeeded and token.kind is OperationKind.DELETE:
            self._start_timer(token)

    def _on_timeout(self, token: OperationToken) -> None:
        with self._lock:
            self._timers.pop(token, None)

        self._finish(token, OperationOutcome.failure(TIMEOUT_REASON))

    def _finish(self, token: OperationToken, outcome: OperationOutcome) -> bool:
        applied = self.store.complete_operation(token, outcome)

        if not applied:
            logger.debug("Ignoring late %s outcome for %s", token.kind.value, token.instance_id)
            return False

        if outcome.succeeded:
            logger.info("%s accepted for %s", token.kind.label, token.instance_id)
        else:
            logger.error("%s of %s failed: %s", token.kind.label, token.instance_id, outcome.reason)

        if self.on_update is not None:
            self.on_update(
                {
                    "type": "operation_finished",
                    "payload": {
                        "instance_id": token.instance_id,
                        "kind": token.kind.value,
                        "succeeded": outcome.succeeded,
                        "reason": outcome.reason,
                    },
                }
            )
        return True

    def shutdown(self, grace: float) -> bool:
        """Cancel timers and wait at most ``grace`` seconds for workers.

        Returns
        -------
        bool
            True if no worker was still running when the grace period ended
        """
        with self._lock:
            self._closed = True
            timers = list(self._timers.values())
            workers = list(self._workers.values())
            self._timers.clear()

        for timer in timers:
            timer.cancel()

        deadline = time.monotonic() + grace
        for worker in workers:
            worker.join(timeout=max(0.0, deadline - time.monotonic()))

        abandoned = sum(1 for worker in workers if worker.is_alive())
        if abandoned:
            logger.warning("Abandoning %d in-flight command(s) on exit", abandoned)
        return abandoned == 0
