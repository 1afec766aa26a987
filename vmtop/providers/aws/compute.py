"""EC2 inventory and lifecycle operations for vmtop."""

import logging
import threading
from typing import Any

import boto3

from vmtop.core.models import Instance, InstanceStatus
from vmtop.providers.aws.constants import (
    DEFAULT_REGION,
    EC2_STATUS_MAP,
    LISTED_INSTANCE_STATES,
)
from vmtop.providers.aws.errors import handle_aws_errors
from vmtop.providers.aws.utils import launch_time_iso, tags_to_dict
from vmtop.providers.exceptions import ProviderError

logger = logging.getLogger(__name__)


class EC2Manager:
    """List and control EC2 instances.

    Parameters
    ----------
    region : str | None
        Home region for the EC2 client (default: us-east-1)
    credentials_path : str | None
        Unused for AWS; credentials come from the standard boto3 chain
    boto3_client_factory : Callable[..., Any] | None
        Optional factory for creating boto3 clients. If None, uses boto3.client
    """

    def __init__(
        self,
        region: str | None = None,
        credentials_path: str | None = None,
        boto3_client_factory: Any | None = None,
    ) -> None:
        self.region = region or DEFAULT_REGION
        self.boto3_client_factory = boto3_client_factory or boto3.client
        self._clients: dict[str, Any] = {}
        self._instance_regions: dict[str, str] = {}
        self._lock = threading.Lock()

    @staticmethod
    def default_project() -> str:
        """Label for the account being shown: the active boto3 profile."""
        return boto3.session.Session().profile_name or "default"

    def _client(self, region: str) -> Any:
        with self._lock:
            if region not in self._clients:
                self._clients[region] = self.boto3_client_factory("ec2", region_name=region)
            return self._clients[region]

    def _regions(self, region_filter: str | None) -> list[str]:
        if region_filter:
            return [region_filter]

        with handle_aws_errors():
            response = self._client(self.region).describe_regions()
        return [r["RegionName"] for r in response["Regions"]]

    def list_instances(self, project: str, region_filter: str | None = None) -> list[Instance]:
        """List non-terminated instances across regions.

        Parameters
        ----------
        project : str
            Account label stamped on returned instances
        region_filter : str | None
            Optional AWS region to filter results (e.g., "us-east-1").
            If None, queries all enabled regions

        Returns
        -------
        list[Instance]
            Instances with normalized status

        Raises
        ------
        ProviderError
            If any region fails to list; a partial inventory would otherwise
            look like deleted instances
        """
        instances: list[Instance] = []

        for region in self._regions(region_filter):
            try:
                instances.extend(self._list_region(project, region))
            except ProviderError as e:
                logger.warning("Failed to query region %s: %s", region, e)
                raise

        with self._lock:
            self._instance_regions = {i.id: i.region for i in instances}

        return instances

    def _list_region(self, project: str, region: str) -> list[Instance]:
        instances = []

        with handle_aws_errors():
            paginator = self._client(region).get_paginator("describe_instances")
            page_iterator = paginator.paginate(
                Filters=[{"Name": "instance-state-name", "Values": LISTED_INSTANCE_STATES}]
            )

            for page in page_iterator:
                for reservation in page["Reservations"]:
                    for raw in reservation["Instances"]:
                        instances.append(self._to_instance(project, region, raw))

        return instances

    @staticmethod
    def _to_instance(project: str, region: str, raw: dict[str, Any]) -> Instance:
        tags = tags_to_dict(raw.get("Tags"))
        state = raw["State"]["Name"]
        name = tags.pop("Name", "") or raw["InstanceId"]

        return Instance(
            id=raw["InstanceId"],
            name=name,
            zone=raw.get("Placement", {}).get("AvailabilityZone", region),
            region=region,
            project=project,
            status=EC2_STATUS_MAP.get(state, InstanceStatus.UNKNOWN),
            machine_type=raw.get("InstanceType", ""),
            internal_ip=raw.get("PrivateIpAddress"),
            external_ip=raw.get("PublicIpAddress"),
            labels=tags,
            raw_status=state,
            creation_timestamp=launch_time_iso(raw),
            tags=tuple(sg["GroupName"] for sg in raw.get("SecurityGroups", [])),
        )

    def _client_for(self, instance_id: str) -> Any:
        with self._lock:
            region = self._instance_regions.get(instance_id, self.region)
        return self._client(region)

    def start_instance(self, instance_id: str) -> None:
        logger.info("Starting instance %s", instance_id)
        with handle_aws_errors():
            self._client_for(instance_id).start_instances(InstanceIds=[instance_id])

    def stop_instance(self, instance_id: str) -> None:
        logger.info("Stopping instance %s", instance_id)
        with handle_aws_errors():
            self._client_for(instance_id).stop_instances(InstanceIds=[instance_id])

    def restart_instance(self, instance_id: str) -> None:
        logger.info("Rebooting instance %s", instance_id)
        with handle_aws_errors():
            self._client_for(instance_id).reboot_instances(InstanceIds=[instance_id])

    def delete_instance(self, instance_id: str) -> None:
        logger.info("Terminating instance %s", instance_id)
        with handle_aws_errors():
            self._client_for(instance_id).terminate_instances(InstanceIds=[instance_id])
