"""Tests for the Compute Engine adapter."""

from unittest.mock import MagicMock, patch

import pytest
from google.api_core import exceptions as gexc
from google.auth.exceptions import DefaultCredentialsError, RefreshError
from google.cloud import compute_v1

from vmtop.core.models import InstanceStatus
from vmtop.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
    ProviderNotFoundError,
    ProviderRateLimitError,
)
from vmtop.providers.gcp import ComputeEngineManager
from vmtop.providers.gcp.clients import detect_default_project

ZONE_URL = "https://www.googleapis.com/compute/v1/projects/demo/zones/{}"


def gce_instance(
    instance_id: int, name: str, zone: str, status: str = "RUNNING"
) -> compute_v1.Instance:
    return compute_v1.Instance(
        id=instance_id,
        name=name,
        status=status,
        zone=ZONE_URL.format(zone),
        machine_type=ZONE_URL.format(zone) + "/machineTypes/e2-medium",
        creation_timestamp="2024-05-01T10:00:00.000-07:00",
        description="test vm",
        labels={"env": "prod"},
        tags=compute_v1.Tags(items=["http-server"]),
        metadata=compute_v1.Metadata(items=[compute_v1.Items(key="startup-script", value="x")]),
        network_interfaces=[
            compute_v1.NetworkInterface(
                network_i_p="10.128.0.2",
                access_configs=[compute_v1.AccessConfig(nat_i_p="34.1.2.3")],
            )
        ],
    )


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.aggregated_list.return_value = [
        (
            "zones/us-central1-a",
            compute_v1.InstancesScopedList(
                instances=[gce_instance(101, "web-1", "us-central1-a")]
            ),
        ),
        (
            "zones/europe-west1-b",
            compute_v1.InstancesScopedList(
                instances=[gce_instance(202, "db-1", "europe-west1-b", status="TERMINATED")]
            ),
        ),
        ("zones/asia-east1-a", compute_v1.InstancesScopedList()),
    ]
    return client


@pytest.fixture
def manager(client: MagicMock) -> ComputeEngineManager:
    return ComputeEngineManager(client_factory=lambda: client)


class TestListInstances:
    def test_lists_all_zones(self, manager: ComputeEngineManager, client: MagicMock) -> None:
        instances = manager.list_instances("demo")

        assert [i.id for i in instances] == ["101", "202"]
        request = client.aggregated_list.call_args.kwargs["request"]
        assert request.project == "demo"

    def test_maps_fields(self, manager: ComputeEngineManager) -> None:
        web, db = manager.list_instances("demo")

        assert web.name == "web-1"
        assert web.status is InstanceStatus.RUNNING
        assert web.zone == "us-central1-a"
        assert web.region == "us-central1"
        assert web.project == "demo"
        assert web.machine_type == "e2-medium"
        assert web.internal_ip == "10.128.0.2"
        assert web.external_ip == "34.1.2.3"
        assert web.labels == {"env": "prod"}
        assert web.tags == ("http-server",)
        assert web.metadata == {"startup-script": "x"}
        assert web.raw_status == "RUNNING"
        assert db.status is InstanceStatus.TERMINATED

    def test_region_filter(self, manager: ComputeEngineManager) -> None:
        instances = manager.list_instances("demo", region_filter="europe-west1")

        assert [i.name for i in instances] == ["db-1"]

    def test_instance_without_network(
        self, client: MagicMock, manager: ComputeEngineManager
    ) -> None:
        client.aggregated_list.return_value = [
            (
                "zones/us-central1-a",
                compute_v1.InstancesScopedList(
                    instances=[compute_v1.Instance(id=5, name="bare", status="STAGING")]
                ),
            )
        ]

        (bare,) = manager.list_instances("demo")

        assert bare.internal_ip is None
        assert bare.external_ip is None
        assert bare.status is InstanceStatus.PROVISIONING
        assert bare.zone == "us-central1-a"

    def test_unknown_status(self, client: MagicMock, manager: ComputeEngineManager) -> None:
        client.aggregated_list.return_value = [
            (
                "zones/us-central1-a",
                compute_v1.InstancesScopedList(
                    instances=[compute_v1.Instance(id=5, name="odd", status="WEIRD")]
                ),
            )
        ]

        assert manager.list_instances("demo")[0].status is InstanceStatus.UNKNOWN

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (gexc.Unauthenticated("expired"), ProviderCredentialsError),
            (RefreshError("cannot refresh"), ProviderCredentialsError),
            (gexc.NotFound("no project"), ProviderNotFoundError),
            (gexc.TooManyRequests("slow down"), ProviderRateLimitError),
            (gexc.ServiceUnavailable("try later"), ProviderConnectionError),
            (gexc.Forbidden("denied"), ProviderAPIError),
        ],
    )
    def test_errors_are_translated(
        self,
        client: MagicMock,
        manager: ComputeEngineManager,
        error: Exception,
        expected: type[Exception],
    ) -> None:
        client.aggregated_list.side_effect = error

        with pytest.raises(expected):
            manager.list_instances("demo")

    def test_forbidden_keeps_code(self, client: MagicMock, manager: ComputeEngineManager) -> None:
        client.aggregated_list.side_effect = gexc.Forbidden("denied")

        with pytest.raises(ProviderAPIError) as exc_info:
            manager.list_instances("demo")

        assert exc_info.value.error_code == "FORBIDDEN"

    def test_missing_credentials_when_creating_client(self) -> None:
        def factory() -> None:
            raise DefaultCredentialsError("no ADC")

        manager = ComputeEngineManager(client_factory=factory)

        with pytest.raises(ProviderCredentialsError):
            manager.list_instances("demo")


class TestLifecycle:
    @pytest.mark.parametrize(
        ("method", "verb"),
        [
            ("start_instance", "start"),
            ("stop_instance", "stop"),
            ("restart_instance", "reset"),
            ("delete_instance", "delete"),
        ],
    )
    def test_calls_client_with_location(
        self, manager: ComputeEngineManager, client: MagicMock, method: str, verb: str
    ) -> None:
        manager.list_instances("demo")

        getattr(manager, method)("202")

        getattr(client, verb).assert_called_once_with(
            project="demo", zone="europe-west1-b", instance="db-1"
        )

    def test_unknown_instance(self, manager: ComputeEngineManager) -> None:
        with pytest.raises(ProviderNotFoundError):
            manager.start_instance("999")

    def test_api_error(self, manager: ComputeEngineManager, client: MagicMock) -> None:
        manager.list_instances("demo")
        client.stop.side_effect = gexc.BadRequest("already stopping")

        with pytest.raises(ProviderAPIError, match="already stopping"):
            manager.stop_instance("101")


class TestDefaultProject:
    def test_from_application_default_credentials(self) -> None:
        with patch("google.auth.default", return_value=(MagicMock(), "adc-project")):
            assert detect_default_project() == "adc-project"

    def test_without_credentials(self) -> None:
        with patch("google.auth.default", side_effect=DefaultCredentialsError("none")):
            assert detect_default_project() is None
