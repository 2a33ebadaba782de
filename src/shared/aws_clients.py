"""S3 access for collected manifests and analysis reports.

Manifests are written to S3 by the collector that polls origin and SSAI
endpoints; reports are written back next to them. Both directions go
through the helpers here so throttling is retried the same way.
"""

import json
import random
import time
from functools import lru_cache
from typing import Any, Callable

import boto3
from aws_lambda_powertools import Logger
from botocore.config import Config
from botocore.exceptions import ClientError

from .config import get_settings
from .exceptions import RetryableError

logger = Logger(service="ssai-manifest-validator", child=True)

S3_CONFIG = Config(
    retries={
        "max_attempts": 3,
        "mode": "adaptive",
    },
    connect_timeout=5,
    read_timeout=30,
)

# S3 answers throttling with SlowDown; the rest come from the shared AWS error set
TRANSIENT_ERROR_CODES = frozenset(
    {
        "SlowDown",
        "ServiceUnavailable",
        "InternalError",
        "RequestTimeout",
        "Throttling",
        "ThrottlingException",
    }
)


@lru_cache(maxsize=1)
def get_s3_client() -> Any:
    """Get the process-wide S3 client for the configured region."""
    return boto3.client("s3", region_name=get_settings().aws_region, config=S3_CONFIG)


def clear_client_cache() -> None:
    """Drop the cached client so a new one is built (used under moto)."""
    get_s3_client.cache_clear()


def is_retryable_error(error: ClientError) -> bool:
    """Whether a botocore error is a transient S3 failure."""
    return error.response.get("Error", {}).get("Code", "") in TRANSIENT_ERROR_CODES


def retry_with_backoff(
    func: Callable[[], Any],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
) -> Any:
    """Call ``func`` until it succeeds or a non-transient error occurs.

    Delays double per attempt, capped at ``max_delay``, with +/-25% jitter.

    Raises:
        RetryableError: If the call is still throttled after ``max_retries`` retries
        ClientError: For non-transient errors, unchanged
    """
    last_error: ClientError | None = None

    for attempt in range(max_retries + 1):
        try:
            return func()
        except ClientError as e:
            if not is_retryable_error(e):
                raise
            last_error = e
            if attempt == max_retries:
                break
            delay = min(base_delay * (2**attempt), max_delay) * (0.75 + random.random() * 0.5)
            logger.warning(
                "Transient S3 error, retrying",
                extra={"attempt": attempt + 1, "delay": round(delay, 3), "error": str(e)},
            )
            time.sleep(delay)

    raise RetryableError(
        f"S3 call still failing after {max_retries + 1} attempts",
        original_error=last_error,
    )


def read_object(bucket: str, key: str) -> bytes:
    """Read an object body with retry.

    Raises:
        ClientError: If the object is missing or access is denied
        RetryableError: If S3 keeps throttling
    """
    settings = get_settings()
    s3_client = get_s3_client()
    response = retry_with_backoff(
        lambda: s3_client.get_object(Bucket=bucket, Key=key),
        max_retries=settings.max_retries,
        base_delay=settings.retry_delay_seconds,
    )
    return response["Body"].read()


def put_json_object(bucket: str, key: str, payload: dict[str, Any]) -> str:
    """Write ``payload`` as a JSON object and return its ``s3://`` URI."""
    settings = get_settings()
    s3_client = get_s3_client()
    body = json.dumps(payload, default=str).encode("utf-8")
    retry_with_backoff(
        lambda: s3_client.put_object(Bucket=bucket, Key=key, Body=body, ContentType="application/json"),
        max_retries=settings.max_retries,
        base_delay=settings.retry_delay_seconds,
    )
    return f"s3://{bucket}/{key}"
