"""Compute Engine inventory and lifecycle operations for vmtop."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from google.cloud import compute_v1

from vmtop.core.models import Instance, InstanceStatus, region_from_zone
from vmtop.providers.exceptions import ProviderNotFoundError
from vmtop.providers.gcp.clients import detect_default_project, get_instances_client
from vmtop.providers.gcp.errors import handle_gcp_errors

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-central1"

GCE_STATUS_MAP = {
    "PROVISIONING": InstanceStatus.PROVISIONING,
    "STAGING": InstanceStatus.PROVISIONING,
    "REPAIRING": InstanceStatus.PROVISIONING,
    "RUNNING": InstanceStatus.RUNNING,
    "STOPPING": InstanceStatus.STOPPING,
    "SUSPENDING": InstanceStatus.STOPPING,
    "SUSPENDED": InstanceStatus.STOPPED,
    "TERMINATED": InstanceStatus.TERMINATED,
}
"""Compute Engine reports a stopped VM as TERMINATED; it is shown as such."""


def _last_segment(url: str | None) -> str:
    return url.split("/")[-1] if url else ""


class ComputeEngineManager:
    """List and control Compute Engine instances of one project.

    Lifecycle calls address instances by project, zone and name; those are
    remembered from the latest listing, keyed by the numeric instance id.

    Parameters
    ----------
    region : str | None
        Unused for listing (region filtering is per call); kept for the
        common provider constructor
    credentials_path : str | None
        Service account key file; None uses application default credentials
    client_factory : Callable[[], Any] | None
        Optional factory returning an InstancesClient
    """

    def __init__(
        self,
        region: str | None = None,
        credentials_path: str | None = None,
        client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self.region = region
        self.credentials_path = credentials_path
        self.client_factory = client_factory or (lambda: get_instances_client(credentials_path))
        self._client: Any | None = None
        self._locations: dict[str, tuple[str, str, str]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def default_project() -> str | None:
        return detect_default_project()

    @property
    def client(self) -> Any:
        if self._client is None:
            with handle_gcp_errors():
                self._client = self.client_factory()
        return self._client

    def list_instances(self, project: str, region_filter: str | None = None) -> list[Instance]:
        """List instances in every zone of the project.

        Parameters
        ----------
        project : str
            GCP project id
        region_filter : str | None
            Only return instances in zones of this region

        Returns
        -------
        list[Instance]
            Instances with normalized status
        """
        request = compute_v1.AggregatedListInstancesRequest(project=project)
        instances = []

        with handle_gcp_errors():
            for scope, scoped_list in self.client.aggregated_list(request=request):
                zone = _last_segment(scope)
                if region_filter and region_from_zone(zone) != region_filter:
                    continue
                for raw in scoped_list.instances:
                    instances.append(self._to_instance(project, zone, raw))

        with self._lock:
            self._locations = {i.id: (project, i.zone, i.name) for i in instances}

        logger.debug("Listed %d instances in project %s", len(instances), project)
        return instances

    @staticmethod
    def _to_instance(project: str, zone: str, raw: Any) -> Instance:
        internal_ip = None
        external_ip = None
        if raw.network_interfaces:
            nic = raw.network_interfaces[0]
            internal_ip = nic.network_i_p or None
            if nic.access_configs:
                external_ip = nic.access_configs[0].nat_i_p or None

        metadata = {}
        if raw.metadata and raw.metadata.items:
            metadata = {item.key: item.value for item in raw.metadata.items}

        return Instance(
            id=str(raw.id),
            name=raw.name,
            zone=zone or _last_segment(raw.zone),
            project=project,
            status=GCE_STATUS_MAP.get(raw.status, InstanceStatus.UNKNOWN),
            machine_type=_last_segment(raw.machine_type),
            internal_ip=internal_ip,
            external_ip=external_ip,
            labels=dict(raw.labels) if raw.labels else {},
            raw_status=raw.status,
            creation_timestamp=raw.creation_timestamp,
            description=raw.description,
            tags=tuple(raw.tags.items) if raw.tags else (),
            metadata=metadata,
        )

    def _locate(self, instance_id: str) -> tuple[str, str, str]:
        with self._lock:
            location = self._locations.get(instance_id)
        if location is None:
            raise ProviderNotFoundError(f"Instance {instance_id} not found", error_code="NOT_FOUND")
        return location

    def _submit(self, verb: str, instance_id: str) -> None:
        project, zone, name = self._locate(instance_id)
        logger.info("Requesting %s of %s in %s", verb, name, zone)

        with handle_gcp_errors():
            getattr(self.client, verb)(project=project, zone=zone, instance=name)

    def start_instance(self, instance_id: str) -> None:
        self._submit("start", instance_id)

    def stop_instance(self, instance_id: str) -> None:
        self._submit("stop", instance_id)

    def restart_instance(self, instance_id: str) -> None:
        self._submit("reset", instance_id)

    def delete_instance(self, instance_id: str) -> None:
        self._submit("delete", instance_id)
