"""Provider-agnostic exceptions raised at the cloud adapter boundary."""

from enum import Enum


class ProviderErrorKind(str, Enum):
    """Classification the poller and dispatcher act on."""

    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    FATAL = "fatal"


class ProviderError(Exception):
    """Base exception for cloud provider failures.

    Parameters
    ----------
    message : str
        Human-readable description
    error_code : str | None
        Provider-specific error code, when one is available
    """

    kind = ProviderErrorKind.FATAL

    def __init__(self, message: str, error_code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code

    def __str__(self) -> str:
        return self.message

    @property
    def startup_fatal(self) -> bool:
        """Whether this error should abort the dashboard before it starts."""
        return self.kind in (ProviderErrorKind.UNAUTHENTICATED, ProviderErrorKind.FATAL)


class ProviderCredentialsError(ProviderError):
    """Credentials are missing, invalid or expired."""

    kind = ProviderErrorKind.UNAUTHENTICATED


class ProviderNotFoundError(ProviderError):
    """The addressed instance or project does not exist."""

    kind = ProviderErrorKind.NOT_FOUND


class ProviderRateLimitError(ProviderError):
    kind = ProviderErrorKind.RATE_LIMITED


class ProviderConnectionError(ProviderError):
    """Network-level failure reaching the provider."""

    kind = ProviderErrorKind.TRANSIENT


class ProviderAPIError(ProviderError):
    """The provider rejected the request."""

    kind = ProviderErrorKind.FATAL
