"""Google Compute Engine provider implementation."""

from vmtop.providers.gcp.compute import ComputeEngineManager

__all__ = ["ComputeEngineManager"]
