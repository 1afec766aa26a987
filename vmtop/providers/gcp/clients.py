"""Shared Compute Engine client registry (lazily created and cached)."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import google.auth
from google.auth.exceptions import DefaultCredentialsError
from google.cloud import compute_v1


@lru_cache(maxsize=4)
def get_instances_client(credentials_path: str | None = None) -> Any:
    if credentials_path:
        return compute_v1.InstancesClient.from_service_account_file(credentials_path)
    return compute_v1.InstancesClient()


def detect_default_project() -> str | None:
    """Project of the application default credentials, if any."""
    try:
        _, project = google.auth.default()
    except DefaultCredentialsError:
        return None
    return project
