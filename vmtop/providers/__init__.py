"""Provider registry and management.

This module implements a provider registry that lets vmtop show instances of
different cloud providers (GCP, AWS) through the common ComputeProvider
interface.
"""

from __future__ import annotations

from vmtop.core.interfaces import ComputeProvider
from vmtop.providers.aws import EC2Manager
from vmtop.providers.aws.constants import DEFAULT_REGION as AWS_DEFAULT_REGION
from vmtop.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
    ProviderError,
    ProviderErrorKind,
    ProviderNotFoundError,
    ProviderRateLimitError,
)
from vmtop.providers.gcp import ComputeEngineManager
from vmtop.providers.gcp.compute import DEFAULT_REGION as GCP_DEFAULT_REGION

_PROVIDERS: dict[str, dict[str, type[ComputeProvider] | str | None]] = {}


def register_provider(
    name: str,
    compute_class: type[ComputeProvider],
    default_region: str | None = None,
) -> None:
    """Register a cloud provider implementation.

    Parameters
    ----------
    name : str
        Provider name (e.g., 'gcp', 'aws')
    compute_class : type[ComputeProvider]
        Compute provider class implementing ComputeProvider protocol
    default_region : str | None
        Default region for this provider
    """
    _PROVIDERS[name] = {
        "compute": compute_class,
        "default_region": default_region,
    }


def get_provider(name: str) -> dict[str, type[ComputeProvider] | str | None]:
    """Get a registered provider by name.

    Parameters
    ----------
    name : str
        Provider name

    Returns
    -------
    dict[str, type[ComputeProvider] | str | None]
        Dictionary with 'compute' and 'default_region' keys

    Raises
    ------
    ValueError
        If provider is not registered
    """
    if name not in _PROVIDERS:
        raise ValueError(f"Unknown provider: {name}")
    return _PROVIDERS[name]


def list_providers() -> list[str]:
    """List all registered provider names."""
    return list(_PROVIDERS.keys())


def get_default_region(provider_name: str) -> str:
    """Get the default region for a provider.

    Raises
    ------
    ValueError
        If provider is not registered or has no default region
    """
    provider_info = get_provider(provider_name)
    default_region = provider_info.get("default_region")

    if default_region is None:
        raise ValueError(f"No default region defined for provider: {provider_name}")

    return default_region


__all__ = [
    "register_provider",
    "get_provider",
    "list_providers",
    "get_default_region",
    "ProviderError",
    "ProviderErrorKind",
    "ProviderCredentialsError",
    "ProviderNotFoundError",
    "ProviderRateLimitError",
    "ProviderAPIError",
    "ProviderConnectionError",
]

register_provider("gcp", ComputeEngineManager, GCP_DEFAULT_REGION)
register_provider("aws", EC2Manager, AWS_DEFAULT_REGION)
