"""Tests for the command dispatcher."""

import time
from collections.abc import Generator
from typing import Any

import pytest

from tests.fakes import FakeComputeProvider, make_instance
from tests.helpers import wait_until
from vmtop.core.dispatcher import TIMEOUT_REASON, CommandDispatcher
from vmtop.core.interaction import InteractionState
from vmtop.core.models import (
    OperationKind,
    OperationPhase,
    OperationRejected,
    RejectionReason,
)
from vmtop.core.projector import Badge, project
from vmtop.core.store import InstanceStore
from vmtop.providers.exceptions import ProviderAPIError


@pytest.fixture
def store(provider: FakeComputeProvider) -> InstanceStore:
    store = InstanceStore(eviction_threshold=3)
    store.merge(provider.list_instances("test-project"))
    return store


@pytest.fixture
def updates() -> list[dict[str, Any]]:
    return []


@pytest.fixture
def dispatcher(
    provider: FakeComputeProvider, store: InstanceStore, updates: list[dict[str, Any]]
) -> Generator[CommandDispatcher, None, None]:
    dispatcher = CommandDispatcher(provider, store, command_timeout=5.0, on_update=updates.append)
    yield dispatcher
    provider.gate.set()
    dispatcher.shutdown(1.0)


def phase(store: InstanceStore, instance_id: str) -> OperationPhase | None:
    entry = store.get(instance_id)
    if entry is None or entry.pending is None:
        return None
    return entry.pending.phase


class TestDispatch:
    """Tests for issuing commands."""

    @pytest.mark.parametrize(
        ("kind", "method"),
        [
            (OperationKind.START, "start_instance"),
            (OperationKind.STOP, "stop_instance"),
            (OperationKind.RESTART, "restart_instance"),
        ],
    )
    def test_success_calls_provider(
        self,
        dispatcher: CommandDispatcher,
        provider: FakeComputeProvider,
        store: InstanceStore,
        updates: list[dict[str, Any]],
        kind: OperationKind,
        method: str,
    ) -> None:
        dispatcher.dispatch("1001", kind)

        assert wait_until(lambda: phase(store, "1001") is OperationPhase.SUCCEEDED)
        assert provider.calls == [(method, "1001")]
        assert updates == [
            {
                "type": "operation_finished",
                "payload": {
                    "instance_id": "1001",
                    "kind": kind.value,
                    "succeeded": True,
                    "reason": None,
                },
            }
        ]

    def test_dispatch_returns_before_provider_answers(
        self, dispatcher: CommandDispatcher, provider: FakeComputeProvider, store: InstanceStore
    ) -> None:
        provider.gate.clear()

        token = dispatcher.dispatch("1001", OperationKind.STOP)

        assert token.instance_id == "1001"
        assert wait_until(lambda: phase(store, "1001") is OperationPhase.IN_FLIGHT)
        assert dispatcher.in_flight == 1

        provider.gate.set()
        assert wait_until(lambda: phase(store, "1001") is OperationPhase.SUCCEEDED)

    def test_provider_error_fails_operation(
        self,
        dispatcher: CommandDispatcher,
        provider: FakeComputeProvider,
        store: InstanceStore,
        updates: list[dict[str, Any]],
    ) -> None:
        provider.command_errors["stop_instance"] = ProviderAPIError("permission denied")

        dispatcher.dispatch("1001", OperationKind.STOP)

        assert wait_until(lambda: phase(store, "1001") is OperationPhase.FAILED)
        assert store.get("1001").pending.failure_reason == "permission denied"
        assert updates[-1]["payload"]["succeeded"] is False
        assert updates[-1]["payload"]["reason"] == "permission denied"

    def test_unexpected_exception_fails_operation(
        self, dispatcher: CommandDispatcher, provider: FakeComputeProvider, store: InstanceStore
    ) -> None:
        provider.command_errors["start_instance"] = RuntimeError("socket closed")

        dispatcher.dispatch("1002", OperationKind.START)

        assert wait_until(lambda: phase(store, "1002") is OperationPhase.FAILED)
        assert store.get("1002").pending.failure_reason == "socket closed"

    def test_second_command_rejected_while_pending(
        self, dispatcher: CommandDispatcher, provider: FakeComputeProvider
    ) -> None:
        provider.gate.clear()
        dispatcher.dispatch("1001", OperationKind.STOP)

        with pytest.raises(OperationRejected) as exc_info:
            dispatcher.dispatch("1001", OperationKind.RESTART)

        assert exc_info.value.reason is RejectionReason.ALREADY_PENDING
        assert wait_until(lambda: len(provider.calls) == 1)

    def test_unknown_id_rejected_without_provider_call(
        self, dispatcher: CommandDispatcher, provider: FakeComputeProvider
    ) -> None:
        with pytest.raises(OperationRejected):
            dispatcher.dispatch("404", OperationKind.START)

        assert provider.calls == []

    def test_commands_for_different_instances_run_concurrently(
        self, dispatcher: CommandDispatcher, provider: FakeComputeProvider
    ) -> None:
        provider.gate.clear()

        dispatcher.dispatch("1001", OperationKind.STOP)
        dispatcher.dispatch("1002", OperationKind.START)

        assert wait_until(lambda: len(provider.calls) == 2)


class TestTimeout:
    """Tests for commands the provider never answers in time."""

    def test_timeout_fails_and_late_answer_is_ignored(
        self,
        provider: FakeComputeProvider,
        store: InstanceStore,
        updates: list[dict[str, Any]],
    ) -> None:
        dispatcher = CommandDispatcher(
            provider, store, command_timeout=0.1, on_update=updates.append
        )
        provider.gate.clear()

        dispatcher.dispatch("1001", OperationKind.STOP)

        assert wait_until(lambda: phase(store, "1001") is OperationPhase.FAILED)
        assert store.get("1001").pending.failure_reason == TIMEOUT_REASON

        provider.gate.set()
        assert wait_until(lambda: dispatcher.in_flight == 0)

        assert store.get("1001").pending.failure_reason == TIMEOUT_REASON
        assert len(updates) == 1

    def test_timeout_leaves_other_instances_alone(
        self, provider: FakeComputeProvider, store: InstanceStore
    ) -> None:
        dispatcher = CommandDispatcher(provider, store, command_timeout=0.1)
        untouched = store.get("1001")
        provider.gate.clear()

        dispatcher.dispatch("1002", OperationKind.START)

        assert wait_until(lambda: phase(store, "1002") is OperationPhase.FAILED)
        assert store.get("1001") == untouched
        assert store.get("1001").pending is None

        rows = {row.instance_id: row for row in project(store.snapshot(), InteractionState()).rows}
        assert rows["1002"].badge == Badge(f"Failed: {TIMEOUT_REASON}", "error")
        assert rows["1001"].badge is None

        provider.gate.set()
        dispatcher.shutdown(1.0)

    def test_fresh_command_after_timeout_ignores_old_answer(
        self, provider: FakeComputeProvider, store: InstanceStore
    ) -> None:
        dispatcher = CommandDispatcher(provider, store, command_timeout=0.1)
        provider.gate.clear()
        dispatcher.dispatch("1001", OperationKind.STOP)
        assert wait_until(lambda: phase(store, "1001") is OperationPhase.FAILED)

        provider.command_errors["start_instance"] = ProviderAPIError("quota")
        dispatcher.command_timeout = 5.0
        second = dispatcher.dispatch("1001", OperationKind.START)
        provider.gate.set()

        assert wait_until(lambda: phase(store, "1001") is OperationPhase.FAILED)
        pending = store.get("1001").pending
        assert pending.token == second
        assert pending.failure_reason == "quota"
        dispatcher.shutdown(1.0)


class TestDelete:
    """Tests for delete acknowledgement and confirmation."""

    def test_acknowledged_delete_waits_for_absence(
        self,
        dispatcher: CommandDispatcher,
        provider: FakeComputeProvider,
        store: InstanceStore,
    ) -> None:
        dispatcher.dispatch("1002", OperationKind.DELETE)

        assert wait_until(lambda: store.get("1002").pending.acknowledged)
        assert phase(store, "1002") is OperationPhase.IN_FLIGHT

        provider.remove("1002")
        result = store.merge(provider.list_instances("test-project"))

        assert result.confirmed_deletes == ("1002",)
        assert store.get("1002") is None

    def test_unconfirmed_delete_times_out(
        self,
        provider: FakeComputeProvider,
        store: InstanceStore,
        updates: list[dict[str, Any]],
    ) -> None:
        dispatcher = CommandDispatcher(
            provider, store, command_timeout=0.2, on_update=updates.append
        )
        dispatcher.dispatch("1002", OperationKind.DELETE)
        assert wait_until(lambda: store.get("1002").pending.acknowledged)

        for _ in range(3):
            store.merge(provider.list_instances("test-project"))

        assert wait_until(lambda: phase(store, "1002") is OperationPhase.FAILED)
        assert store.get("1002").pending.failure_reason == TIMEOUT_REASON
        assert updates[-1]["payload"]["succeeded"] is False

        assert store.dismiss("1002")
        dispatcher.dispatch("1002", OperationKind.START)
        assert wait_until(lambda: phase(store, "1002") is OperationPhase.SUCCEEDED)
        dispatcher.shutdown(1.0)

    def test_confirmed_delete_ignores_deadline(
        self, provider: FakeComputeProvider, store: InstanceStore
    ) -> None:
        dispatcher = CommandDispatcher(provider, store, command_timeout=0.2)
        dispatcher.dispatch("1002", OperationKind.DELETE)
        assert wait_until(lambda: store.get("1002").pending.acknowledged)

        provider.remove("1002")
        store.merge(provider.list_instances("test-project"))

        time.sleep(0.3)
        assert store.get("1002") is None
        assert dispatcher.shutdown(1.0)

    def test_eviction_while_in_flight_drops_late_answer(
        self, dispatcher: CommandDispatcher, provider: FakeComputeProvider, store: InstanceStore
    ) -> None:
        provider.gate.clear()
        dispatcher.dispatch("1002", OperationKind.DELETE)
        assert wait_until(lambda: len(provider.calls) == 1)

        store.merge([make_instance("1001", "web-1")])
        assert store.get("1002") is None

        provider.gate.set()
        assert wait_until(lambda: dispatcher.in_flight == 0)
        assert store.get("1002") is None


class TestShutdown:
    def test_shutdown_is_bounded(self, provider: FakeComputeProvider, store: InstanceStore) -> None:
        dispatcher = CommandDispatcher(provider, store, command_timeout=30.0)
        provider.gate.clear()
        dispatcher.dispatch("1001", OperationKind.STOP)
        assert wait_until(lambda: len(provider.calls) == 1)

        assert not dispatcher.shutdown(0.1)

        provider.gate.set()

    def test_shutdown_with_no_work(self, dispatcher: CommandDispatcher) -> None:
        assert dispatcher.shutdown(0.1)
