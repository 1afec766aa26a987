"""Global constants for vmtop application.

This module contains application-wide constants that are used across multiple
components. These values are provider-agnostic and suitable for any cloud provider.
"""

DEFAULT_PROVIDER = "gcp"
"""Cloud provider used when configuration does not name one."""

DEFAULT_REFRESH_INTERVAL_SECONDS = 5.0
"""Base poll interval in seconds.

Fresh enough to watch a restart happen without hammering the compute API.
"""

DEFAULT_MAX_REFRESH_INTERVAL_SECONDS = 60.0
"""Ceiling for the poll interval while backing off after failed fetches."""

MIN_REFRESH_INTERVAL_SECONDS = 1.0
"""Lowest poll interval an operator can dial in with the '-' key."""

DEFAULT_COMMAND_TIMEOUT_SECONDS = 30.0
"""Time a lifecycle command may wait on the provider before it is failed.

For deletes this only bounds the provider acknowledging the request; the
instance disappearing from the inventory is confirmed by later polls.
"""

DEFAULT_EVICTION_THRESHOLD = 3
"""Consecutive polls an instance may be missing before it is dropped.

Tolerates eventually consistent list results that briefly omit an instance.
"""

DEFAULT_MESSAGE_TTL_SECONDS = 5.0
"""Lifetime of a transient status line message."""

DEFAULT_SHUTDOWN_GRACE_SECONDS = 2.0
"""Longest time quitting waits for the poller and in-flight commands."""

SUCCEEDED_RETENTION_MERGES = 3
"""Merges a succeeded start/stop/restart badge survives without the
inventory reflecting its target status."""

TUI_UPDATE_INTERVAL = 0.1
"""Seconds between drains of the background update queue."""

MAX_UPDATES_PER_TICK = 10
"""Maximum queued updates processed per drain so input stays responsive."""

MESSAGE_TICK_INTERVAL = 0.5
"""Seconds between checks for expired status messages."""

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2

CONFIG_ENV_VAR = "VMTOP_CONFIG"
"""Environment variable naming an explicit configuration file."""

DEBUG_ENV_VAR = "VMTOP_DEBUG"
"""Set to '1' to re-raise startup errors with full tracebacks."""

LOG_FORMATS = ("text", "json")
LOG_LEVELS = ("debug", "info", "warning", "error", "critical")

TEXT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
