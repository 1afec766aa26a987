"""Translation of boto3/botocore exceptions into provider errors."""

from collections.abc import Iterator
from contextlib import contextmanager

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
    ReadTimeoutError,
)

from vmtop.providers.aws.constants import (
    CREDENTIAL_ERROR_CODES,
    NOT_FOUND_ERROR_CODES,
    RATE_LIMIT_ERROR_CODES,
)
from vmtop.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
    ProviderNotFoundError,
    ProviderRateLimitError,
)


@contextmanager
def handle_aws_errors() -> Iterator[None]:
    """Re-raise AWS SDK exceptions as ProviderError subclasses.

    Raises
    ------
    ProviderCredentialsError
        Missing, partial or expired credentials
    ProviderNotFoundError
        The instance id is unknown to EC2
    ProviderRateLimitError
        EC2 throttled the request
    ProviderConnectionError
        The endpoint could not be reached
    ProviderAPIError
        Any other API rejection
    """
    try:
        yield
    except (NoCredentialsError, PartialCredentialsError) as e:
        raise ProviderCredentialsError(f"AWS credentials not available: {e}") from e
    except ClientError as e:
        error = e.response.get("Error", {}) if e.response else {}
        code = error.get("Code", "")
        message = error.get("Message", str(e))

        if code in CREDENTIAL_ERROR_CODES:
            raise ProviderCredentialsError(message, error_code=code) from e
        if code in NOT_FOUND_ERROR_CODES:
            raise ProviderNotFoundError(message, error_code=code) from e
        if code in RATE_LIMIT_ERROR_CODES:
            raise ProviderRateLimitError(message, error_code=code) from e
        raise ProviderAPIError(message, error_code=code or None) from e
    except (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError) as e:
        raise ProviderConnectionError(f"Cannot reach AWS: {e}") from e
    except BotoCoreError as e:
        raise ProviderAPIError(str(e)) from e
