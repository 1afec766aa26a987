"""AWS-specific constants for EC2 inventory operations."""

from vmtop.core.models import InstanceStatus

DEFAULT_REGION = "us-east-1"
"""Region used for the EC2 client when no region is configured."""

LISTED_INSTANCE_STATES = [
    "pending",
    "running",
    "shutting-down",
    "stopping",
    "stopped",
]
"""EC2 instance states included in the inventory.

Terminated instances linger in describe results for about an hour; they are
excluded so a confirmed delete is observed as absence.
"""

EC2_STATUS_MAP = {
    "pending": InstanceStatus.PROVISIONING,
    "running": InstanceStatus.RUNNING,
    "shutting-down": InstanceStatus.STOPPING,
    "stopping": InstanceStatus.STOPPING,
    "stopped": InstanceStatus.STOPPED,
    "terminated": InstanceStatus.TERMINATED,
}
"""Mapping from EC2 state names to normalized statuses."""

CREDENTIAL_ERROR_CODES = frozenset(
    (
        "AuthFailure",
        "ExpiredToken",
        "ExpiredTokenException",
        "InvalidClientTokenId",
        "RequestExpired",
        "UnrecognizedClientException",
    )
)

NOT_FOUND_ERROR_CODES = frozenset(("InvalidInstanceID.NotFound", "InvalidInstanceID.Malformed"))

RATE_LIMIT_ERROR_CODES = frozenset(("RequestLimitExceeded", "Throttling", "ThrottlingException"))
