"""Core vmtop functionality."""

from __future__ import annotations

from vmtop.core.interfaces import ComputeProvider
from vmtop.core.models import (
    Instance,
    InstanceStatus,
    OperationKind,
    OperationPhase,
    OperationRejected,
)

__all__ = [
    "ComputeProvider",
    "Instance",
    "InstanceStatus",
    "OperationKind",
    "OperationPhase",
    "OperationRejected",
]
