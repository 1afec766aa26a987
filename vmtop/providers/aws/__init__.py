"""AWS provider implementation."""

from vmtop.providers.aws.compute import EC2Manager

__all__ = ["EC2Manager"]
