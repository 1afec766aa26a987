"""AWS-specific utility functions for vmtop."""

from __future__ import annotations

from typing import Any


def tags_to_dict(tags: list[dict[str, str]] | None) -> dict[str, str]:
    """Convert an EC2 ``Tags`` list into a plain mapping.

    Parameters
    ----------
    tags : list[dict[str, str]] | None
        Tags as returned by describe_instances

    Returns
    -------
    dict[str, str]
        Tag values keyed by tag key
    """
    return {tag["Key"]: tag["Value"] for tag in tags or []}


def launch_time_iso(instance: dict[str, Any]) -> str:
    launch_time = instance.get("LaunchTime")
    if launch_time is None:
        return ""
    if hasattr(launch_time, "isoformat"):
        return launch_time.isoformat()
    return str(launch_time)


def get_aws_credentials_error_message() -> str:
    """Get standard AWS credentials error message.

    Returns
    -------
    str
        Formatted AWS credentials error message
    """
    return (
        "AWS credentials not found or expired\n\n"
        "Configure your credentials:\n"
        "  aws configure\n"
        "  aws sso login           # If using AWS SSO\n\n"
        "Or set environment variables:\n"
        "  export AWS_ACCESS_KEY_ID=...\n"
        "  export AWS_SECRET_ACCESS_KEY=..."
    )
