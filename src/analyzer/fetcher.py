"""Manifest fetcher.

Manifests collected from origin and SSAI endpoints are stored in S3; this
module reads them back. Live HTTP polling belongs to the collector that
writes them.
"""

from typing import Any

from aws_lambda_powertools import Logger
from botocore.exceptions import ClientError

from ..shared.aws_clients import read_object
from ..shared.config import get_settings
from ..shared.exceptions import ManifestFetchError

logger = Logger(service="ssai-manifest-validator", child=True)


def parse_s3_uri(uri: str) -> tuple[str, str]:
    """Split ``s3://bucket/key`` into bucket and key.

    Raises:
        ManifestFetchError: If the URI is not an S3 URI with a key
    """
    if not uri.startswith("s3://"):
        raise ManifestFetchError(f"Unsupported manifest URI: {uri}", {"uri": uri})

    bucket, _, key = uri[5:].partition("/")
    if not bucket or not key:
        raise ManifestFetchError(f"Invalid S3 URI: {uri}", {"uri": uri})
    return bucket, key


def fetch_manifest(uri: str) -> str:
    """Read a manifest document from S3.

    Args:
        uri: ``s3://bucket/key`` location of the manifest

    Returns:
        Manifest text

    Raises:
        ManifestFetchError: If the object is missing, unreadable or not UTF-8
        RetryableError: If S3 keeps throttling after all retries
    """
    bucket, key = parse_s3_uri(uri)

    try:
        body = read_object(bucket, key)
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "")
        raise ManifestFetchError(
            f"Failed to fetch manifest {uri}: {error_code or e}",
            {"bucket": bucket, "key": key, "error_code": error_code},
        ) from e

    try:
        content = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ManifestFetchError(f"Manifest is not UTF-8: {uri}", {"bucket": bucket, "key": key}) from e

    logger.info("Fetched manifest", extra={"bucket": bucket, "key": key, "size": len(body)})
    return content


def resolve_manifest(entry: dict[str, Any] | str | None) -> str | None:
    """Get manifest text from an event entry.

    Accepts inline XML (``{"xml": ...}``), a location (``{"uri": ...}``),
    a key in the configured manifest bucket (``{"key": ...}``) or a bare
    ``s3://`` string.
    """
    if entry is None:
        return None
    if isinstance(entry, str):
        return fetch_manifest(entry) if entry.startswith("s3://") else entry
    if entry.get("xml"):
        return entry["xml"]
    if entry.get("uri"):
        return fetch_manifest(entry["uri"])
    if entry.get("key"):
        bucket = get_settings().manifest_bucket
        if not bucket:
            raise ManifestFetchError("MANIFEST_BUCKET is not configured", {"key": entry["key"]})
        return fetch_manifest(f"s3://{bucket}/{entry['key'].lstrip('/')}")
    raise ManifestFetchError("Manifest entry needs 'xml', 'uri' or 'key'", {"keys": sorted(entry)})
