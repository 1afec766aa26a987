"""Protocols implemented by cloud provider adapters."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from vmtop.core.models import Instance


@runtime_checkable
class ComputeProvider(Protocol):
    """Inventory and lifecycle operations against one cloud account.

    Every method raises a ``ProviderError`` subclass on failure. Lifecycle
    methods return once the provider has accepted the request; they do not
    wait for the instance to reach its target status.
    """

    def list_instances(
        self, project: str, region_filter: str | None = None
    ) -> list[Instance]:
        """List every instance visible in the project.

        Parameters
        ----------
        project : str
            Project (GCP) or account alias (AWS) to list
        region_filter : str | None
            Restrict results to one region, or None for all regions

        Returns
        -------
        list[Instance]
            Current instances with normalized status
        """
        ...

    def start_instance(self, instance_id: str) -> None: ...

    def stop_instance(self, instance_id: str) -> None: ...

    def restart_instance(self, instance_id: str) -> None: ...

    def delete_instance(self, instance_id: str) -> None: ...
