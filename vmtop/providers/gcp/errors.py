"""Translation of Google API exceptions into provider errors."""

from collections.abc import Iterator
from contextlib import contextmanager

from google.api_core import exceptions as gexc
from google.auth.exceptions import DefaultCredentialsError, RefreshError, TransportError

from vmtop.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
    ProviderNotFoundError,
    ProviderRateLimitError,
)

TRANSIENT_ERRORS = (
    gexc.ServiceUnavailable,
    gexc.DeadlineExceeded,
    gexc.InternalServerError,
    gexc.BadGateway,
    gexc.GatewayTimeout,
    gexc.RetryError,
    TransportError,
)


@contextmanager
def handle_gcp_errors() -> Iterator[None]:
    """Re-raise Google SDK exceptions as ProviderError subclasses.

    Raises
    ------
    ProviderCredentialsError
        No application default credentials, or they could not be refreshed
    ProviderNotFoundError
        The project or instance does not exist
    ProviderRateLimitError
        Quota or rate limit exhausted
    ProviderConnectionError
        Temporary server or network failure
    ProviderAPIError
        Any other API rejection, including permission errors
    """
    try:
        yield
    except (DefaultCredentialsError, RefreshError) as e:
        raise ProviderCredentialsError(f"Google Cloud credentials not available: {e}") from e
    except gexc.Unauthenticated as e:
        raise ProviderCredentialsError(e.message, error_code="UNAUTHENTICATED") from e
    except gexc.NotFound as e:
        raise ProviderNotFoundError(e.message, error_code="NOT_FOUND") from e
    except (gexc.TooManyRequests, gexc.ResourceExhausted) as e:
        raise ProviderRateLimitError(e.message, error_code="RESOURCE_EXHAUSTED") from e
    except TRANSIENT_ERRORS as e:
        raise ProviderConnectionError(f"Google Cloud temporarily unavailable: {e}") from e
    except gexc.GoogleAPICallError as e:
        code = e.code.name if hasattr(e.code, "name") else str(e.code)
        raise ProviderAPIError(e.message, error_code=code) from e
