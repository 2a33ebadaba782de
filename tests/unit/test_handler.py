"""Unit tests for the analysis Lambda handler and manifest fetcher."""

import json
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from src.analyzer.fetcher import fetch_manifest, parse_s3_uri, resolve_manifest
from src.analyzer.handler import handler
from src.shared.aws_clients import put_json_object, read_object, retry_with_backoff
from src.shared.config import Settings
from src.shared.exceptions import (
    ManifestAnalysisError,
    ManifestFetchError,
    ManifestParseError,
    RetryableError,
)


def _put(s3_client: Any, bucket: str, key: str, body: str | bytes) -> str:
    s3_client.put_object(Bucket=bucket, Key=key, Body=body if isinstance(body, bytes) else body.encode())
    return f"s3://{bucket}/{key}"


class TestParseS3Uri:
    """Tests for S3 URI parsing."""

    def test_valid_uri(self):
        """Test bucket and key extraction."""
        assert parse_s3_uri("s3://bucket/path/to/ssai.mpd") == ("bucket", "path/to/ssai.mpd")

    @pytest.mark.parametrize("uri", ["https://example.com/a.mpd", "s3://bucket", "s3:///key.mpd"])
    def test_invalid_uri(self, uri: str):
        """Test rejected URIs."""
        with pytest.raises(ManifestFetchError):
            parse_s3_uri(uri)


class TestFetchManifest:
    """Tests for reading manifests from S3."""

    def test_fetch(self, mock_environment: None, s3_client: Any, s3_buckets: dict, source_mpd_xml: str):
        """Test reading an existing object."""
        uri = _put(s3_client, s3_buckets["manifests"], "source/main.mpd", source_mpd_xml)

        assert fetch_manifest(uri) == source_mpd_xml

    def test_missing_object(self, mock_environment: None, s3_client: Any, s3_buckets: dict):
        """Test that a missing key becomes a fetch error."""
        with pytest.raises(ManifestFetchError) as exc_info:
            fetch_manifest(f"s3://{s3_buckets['manifests']}/missing.mpd")

        assert exc_info.value.details["error_code"] == "NoSuchKey"

    def test_non_utf8_content(self, mock_environment: None, s3_client: Any, s3_buckets: dict):
        """Test binary content rejection."""
        uri = _put(s3_client, s3_buckets["manifests"], "bad.mpd", b"\xff\xfe\x00<MPD/>")

        with pytest.raises(ManifestFetchError, match="not UTF-8"):
            fetch_manifest(uri)


class TestResolveManifest:
    """Tests for event entry resolution."""

    def test_inline_entries(self, source_mpd_xml: str):
        """Test entries that need no S3 access."""
        assert resolve_manifest(None) is None
        assert resolve_manifest({"xml": source_mpd_xml}) == source_mpd_xml
        assert resolve_manifest(source_mpd_xml) == source_mpd_xml

    def test_uri_entries(self, mock_environment: None, s3_client: Any, s3_buckets: dict, ssai_mpd_xml: str):
        """Test dict and bare string locations."""
        uri = _put(s3_client, s3_buckets["manifests"], "ssai/main.mpd", ssai_mpd_xml)

        assert resolve_manifest({"uri": uri}) == ssai_mpd_xml
        assert resolve_manifest(uri) == ssai_mpd_xml

    def test_entry_without_manifest(self):
        """Test an entry with neither xml nor uri."""
        with pytest.raises(ManifestFetchError):
            resolve_manifest({"name": "ssai"})

    def test_key_entries_use_manifest_bucket(
        self, mock_environment: None, s3_client: Any, s3_buckets: dict, ssai_mpd_xml: str
    ):
        """Test keys relative to the configured manifest bucket."""
        _put(s3_client, s3_buckets["manifests"], "ssai/main.mpd", ssai_mpd_xml)

        assert resolve_manifest({"key": "ssai/main.mpd"}) == ssai_mpd_xml
        assert resolve_manifest({"key": "/ssai/main.mpd"}) == ssai_mpd_xml

    def test_key_entry_without_bucket(self):
        """Test that a key cannot be resolved when no manifest bucket is configured."""
        with patch("src.analyzer.fetcher.get_settings", return_value=Settings(MANIFEST_BUCKET="")):
            with pytest.raises(ManifestFetchError, match="MANIFEST_BUCKET"):
                resolve_manifest({"key": "ssai/main.mpd"})


class TestHandler:
    """Tests for the Lambda entry point."""

    def test_ssai_only(self, mock_environment: None, lambda_context: Any, source_mpd_xml: str):
        """Test baseline analysis without a source manifest."""
        result = handler({"ssai": {"xml": source_mpd_xml}, "report_id": "r1"}, lambda_context)

        assert result["report_id"] == "r1"
        assert result["environment"] == "dev"
        assert result["is_valid"] is True
        assert result["analysis"]["success"] is True
        assert result["validation"] is None
        assert result["comparison"] is None
        assert "report_uri" not in result

    def test_source_and_ssai_from_s3(
        self,
        mock_environment: None,
        s3_client: Any,
        s3_buckets: dict,
        lambda_context: Any,
        source_mpd_xml: str,
        timescale_mismatch_mpd_xml: str,
    ):
        """Test a full analysis with a stored report."""
        event = {
            "source": {"uri": _put(s3_client, s3_buckets["manifests"], "source.mpd", source_mpd_xml)},
            "ssai": {"uri": _put(s3_client, s3_buckets["manifests"], "ssai.mpd", timescale_mismatch_mpd_xml)},
            "store_report": True,
            "report_id": "timescale-check",
        }

        result = handler(event, lambda_context)

        assert result["is_valid"] is False
        assert result["validation"]["summary"]["isValid"] is False
        assert result["comparison"]["validationSummary"]["isValid"] is False
        assert result["report_uri"] == "s3://test-report-bucket/reports/timescale-check.json"

        stored = s3_client.get_object(Bucket=s3_buckets["reports"], Key="reports/timescale-check.json")
        report = json.loads(stored["Body"].read())
        assert report["report_id"] == "timescale-check"
        assert report["validation"]["summary"]["isValid"] is False

    def test_identical_manifests_are_valid(self, mock_environment: None, lambda_context: Any, source_mpd_xml: str):
        """Test an SSAI manifest identical to its source."""
        event = {"source": {"xml": source_mpd_xml}, "ssai": {"xml": source_mpd_xml}}

        result = handler(event, lambda_context)

        assert result["is_valid"] is True
        assert result["report_id"]

    def test_config_overrides_are_applied(self, mock_environment: None, lambda_context: Any, short_segment_mpd_xml: str):
        """Test the per-event rule configuration."""
        event = {"ssai": {"xml": short_segment_mpd_xml}, "config": {"minSegmentDuration": 0.1}}

        result = handler(event, lambda_context)

        assert [r["ruleId"] for r in result["analysis"]["rules"]] == []

    def test_unparsable_ssai_is_reported(
        self, mock_environment: None, lambda_context: Any, source_mpd_xml: str, malformed_mpd_xml: str
    ):
        """Test that an SSAI parse error is part of the result."""
        event = {"source": {"xml": source_mpd_xml}, "ssai": {"xml": malformed_mpd_xml}}

        result = handler(event, lambda_context)

        assert result["is_valid"] is False
        assert result["analysis"]["success"] is False
        assert result["validation"] is None

    def test_unparsable_source_raises(
        self, mock_environment: None, lambda_context: Any, source_mpd_xml: str, malformed_mpd_xml: str
    ):
        """Test that a broken source manifest fails the invocation."""
        event = {"source": {"xml": malformed_mpd_xml}, "ssai": {"xml": source_mpd_xml}}

        with pytest.raises(ManifestParseError):
            handler(event, lambda_context)

    def test_missing_ssai_raises(self, mock_environment: None, lambda_context: Any, source_mpd_xml: str):
        """Test event validation."""
        with pytest.raises(ManifestAnalysisError) as exc_info:
            handler({"source": {"xml": source_mpd_xml}}, lambda_context)

        assert exc_info.value.error_code == "INVALID_EVENT"

    def test_missing_object_raises_fetch_error(
        self, mock_environment: None, s3_client: Any, s3_buckets: dict, lambda_context: Any
    ):
        """Test that fetch errors propagate unchanged."""
        event = {"ssai": {"uri": f"s3://{s3_buckets['manifests']}/nope.mpd"}}

        with pytest.raises(ManifestFetchError):
            handler(event, lambda_context)


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "GetObject")


class TestRetryWithBackoff:
    """Tests for S3 retry behaviour."""

    def test_transient_error_is_retried(self):
        """Test that SlowDown is retried until the call succeeds."""
        func = MagicMock(side_effect=[_client_error("SlowDown"), "ok"])

        with patch("src.shared.aws_clients.time.sleep") as sleep:
            assert retry_with_backoff(func, max_retries=2, base_delay=0.1) == "ok"

        assert func.call_count == 2
        sleep.assert_called_once()

    def test_permanent_error_is_raised(self):
        """Test that access errors are not retried."""
        func = MagicMock(side_effect=_client_error("AccessDenied"))

        with pytest.raises(ClientError):
            retry_with_backoff(func, max_retries=2, base_delay=0.1)

        assert func.call_count == 1

    def test_exhausted_retries(self):
        """Test the error raised after the last attempt."""
        func = MagicMock(side_effect=_client_error("SlowDown"))

        with patch("src.shared.aws_clients.time.sleep"), pytest.raises(RetryableError) as exc_info:
            retry_with_backoff(func, max_retries=2, base_delay=0.1)

        assert func.call_count == 3
        assert exc_info.value.details["original_error_type"] == "ClientError"

    def test_json_report_round_trip(self, mock_environment: None, s3_client: Any, s3_buckets: dict):
        """Test writing a report and reading it back."""
        uri = put_json_object(s3_buckets["reports"], "reports/a.json", {"isValid": True})

        assert uri == "s3://test-report-bucket/reports/a.json"
        assert json.loads(read_object(s3_buckets["reports"], "reports/a.json")) == {"isValid": True}
