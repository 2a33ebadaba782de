"""Pytest configuration and shared fixtures.

This module provides:
- AWS credential mocking for moto
- Pre-configured AWS service clients
- Sample test data (source and SSAI manifests)
- Environment variable setup
"""

import os
from dataclasses import dataclass
from typing import Any, Generator

import boto3
import pytest
from moto import mock_aws

# Set dummy AWS credentials BEFORE importing any application code
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

# Set application environment variables
os.environ["ENVIRONMENT"] = "dev"
os.environ["MANIFEST_BUCKET"] = "test-manifest-bucket"
os.environ["REPORT_BUCKET"] = "test-report-bucket"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["POWERTOOLS_METRICS_NAMESPACE"] = "SSAIManifestValidation"
os.environ["POWERTOOLS_TRACE_DISABLED"] = "true"


WIDEVINE = "urn:uuid:edef8ba9-79d6-4ace-a3c8-27dcd51d21ed"
PLAYREADY = "urn:uuid:9a04f079-9840-4286-ab92-e65be0885f95"
CENC = "urn:mpeg:dash:mp4protection:2011"


# =============================================================================
# AWS Fixtures
# =============================================================================


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def s3_client(aws_credentials: None) -> Generator[Any, None, None]:
    """Mocked S3 client."""
    with mock_aws():
        yield boto3.client("s3", region_name="us-east-1")


@pytest.fixture
def s3_buckets(s3_client: Any) -> dict[str, str]:
    """Create test S3 buckets."""
    s3_client.create_bucket(Bucket="test-manifest-bucket")
    s3_client.create_bucket(Bucket="test-report-bucket")
    return {
        "manifests": "test-manifest-bucket",
        "reports": "test-report-bucket",
    }


@pytest.fixture
def mock_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set up complete mock environment."""
    env_vars = {
        "ENVIRONMENT": "dev",
        "AWS_REGION": "us-east-1",
        "MANIFEST_BUCKET": "test-manifest-bucket",
        "REPORT_BUCKET": "test-report-bucket",
        "REPORT_PREFIX": "reports",
        "MAX_RETRIES": "1",
        "RETRY_DELAY_SECONDS": "0.1",
        "LOG_LEVEL": "DEBUG",
    }

    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)

    # Clear cached settings and clients
    from src.shared.aws_clients import clear_client_cache
    from src.shared.config import clear_settings_cache

    clear_settings_cache()
    clear_client_cache()


@dataclass
class FakeLambdaContext:
    """Minimal Lambda context accepted by Powertools."""

    function_name: str = "ssai-manifest-validator"
    memory_limit_in_mb: int = 512
    invoked_function_arn: str = "arn:aws:lambda:us-east-1:123456789012:function:ssai-manifest-validator"
    aws_request_id: str = "00000000-0000-0000-0000-000000000000"


@pytest.fixture
def lambda_context() -> FakeLambdaContext:
    """Lambda context for handler tests."""
    return FakeLambdaContext()


# =============================================================================
# Manifest builders
# =============================================================================


def video_adaptation_set(
    timescale: int = 90000,
    segment_ticks: int = 180000,
    repeat: int = 14,
    bandwidth: int = 1000000,
    protection: str = "",
) -> str:
    """One 1280x720 AVC adaptation set with an AS-level SegmentTimeline."""
    return f"""
    <AdaptationSet id="1" contentType="video" mimeType="video/mp4" codecs="avc1.64001f" segmentAlignment="true">
      {protection}
      <SegmentTemplate timescale="{timescale}" startNumber="1"
                       media="video_$RepresentationID$_$Number$.m4s"
                       initialization="video_$RepresentationID$_init.mp4">
        <SegmentTimeline>
          <S t="0" d="{segment_ticks}" r="{repeat}"/>
        </SegmentTimeline>
      </SegmentTemplate>
      <Representation id="v1" bandwidth="{bandwidth}" width="1280" height="720" frameRate="30" sar="1:1"/>
    </AdaptationSet>"""


def static_mpd(periods: str, duration: str = "PT30S", extra: str = "") -> str:
    """Static MPD wrapper around the given Period elements."""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<MPD xmlns="urn:mpeg:dash:schema:mpd:2011"
     xmlns:cenc="urn:mpeg:cenc:2013"
     type="static"
     profiles="urn:mpeg:dash:profile:isoff-live:2011"
     mediaPresentationDuration="{duration}"
     minBufferTime="PT2S"{extra}>
{periods}
</MPD>"""


def content_period(start: str = "PT0S", adaptation_set: str | None = None, period_id: str = "1") -> str:
    return f"""  <Period id="{period_id}" start="{start}" duration="PT30S">{adaptation_set or video_adaptation_set()}
  </Period>"""


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def source_mpd_xml() -> str:
    """Single 30 second content period of 2 second video segments."""
    return static_mpd(content_period())


@pytest.fixture
def ssai_mpd_xml() -> str:
    """Source with a 10 second ad period inserted ahead of the content."""
    ad_period = f"""  <Period id="ad1" start="PT0S" duration="PT10S">{video_adaptation_set(repeat=4)}
  </Period>"""
    return static_mpd(ad_period + "\n" + content_period(start="PT10S"), duration="PT40S")


@pytest.fixture
def timescale_mismatch_mpd_xml() -> str:
    """Same timing as the source, re-expressed on a 48 kHz timescale."""
    return static_mpd(content_period(adaptation_set=video_adaptation_set(timescale=48000, segment_ticks=96000)))


@pytest.fixture
def short_segment_mpd_xml() -> str:
    """A 0.5 second segment followed by regular 2 second segments."""
    return """<?xml version="1.0" encoding="UTF-8"?>
<MPD xmlns="urn:mpeg:dash:schema:mpd:2011" type="static" mediaPresentationDuration="PT4.5S" minBufferTime="PT2S">
  <Period id="1" start="PT0S">
    <AdaptationSet contentType="video" mimeType="video/mp4">
      <ContentProtection schemeIdUri="urn:mpeg:dash:mp4protection:2011" value="cenc"/>
      <SegmentTemplate timescale="1000">
        <SegmentTimeline>
          <S t="0" d="500"/>
          <S d="2000" r="1"/>
        </SegmentTimeline>
      </SegmentTemplate>
      <Representation id="v1" bandwidth="1000000"/>
    </AdaptationSet>
  </Period>
</MPD>"""


@pytest.fixture
def widevine_pssh() -> str:
    """Structurally valid base64 Widevine pssh box."""
    return "AAAAMnBzc2gAAAAA7e+LqXnWSs6jyCfc1R0h7QAAABIiEGNvbnRlbnQtaWQtMTIzNDU="


@pytest.fixture
def drm_source_mpd_xml(widevine_pssh: str) -> str:
    """Source protected by CENC, Widevine and PlayReady."""
    protection = f"""
      <ContentProtection schemeIdUri="{CENC}" value="cenc" cenc:default_KID="10000000-1000-1000-1000-100000000001"/>
      <ContentProtection schemeIdUri="{WIDEVINE}"><cenc:pssh>{widevine_pssh}</cenc:pssh></ContentProtection>
      <ContentProtection schemeIdUri="{PLAYREADY}" value="MSPR 2.0"/>"""
    return static_mpd(content_period(adaptation_set=video_adaptation_set(protection=protection)))


@pytest.fixture
def drm_ssai_mpd_xml() -> str:
    """SSAI output that dropped the Widevine system."""
    protection = f"""
      <ContentProtection schemeIdUri="{CENC}" value="cenc" cenc:default_KID="10000000-1000-1000-1000-100000000001"/>
      <ContentProtection schemeIdUri="{PLAYREADY}" value="MSPR 2.0"/>"""
    return static_mpd(content_period(adaptation_set=video_adaptation_set(protection=protection)))


@pytest.fixture
def dynamic_mpd_xml() -> str:
    """Live source manifest with a clock source."""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<MPD xmlns="urn:mpeg:dash:schema:mpd:2011"
     type="dynamic"
     profiles="urn:mpeg:dash:profile:isoff-live:2011"
     availabilityStartTime="2024-01-01T00:00:00Z"
     publishTime="2024-01-01T01:00:00Z"
     minimumUpdatePeriod="PT2S"
     timeShiftBufferDepth="PT60S"
     minBufferTime="PT2S">
  <Period id="live-1" start="PT0S">{video_adaptation_set()}
  </Period>
  <UTCTiming schemeIdUri="urn:mpeg:dash:utc:http-xsdate:2014" value="https://time.akamai.com/?iso"/>
</MPD>"""


@pytest.fixture
def dynamic_ssai_mpd_xml() -> str:
    """Live SSAI manifest that lost its clock source and update period."""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<MPD xmlns="urn:mpeg:dash:schema:mpd:2011"
     type="dynamic"
     profiles="urn:mpeg:dash:profile:isoff-live:2011"
     availabilityStartTime="2024-01-01T00:00:00Z"
     publishTime="2024-01-01T01:00:02Z"
     timeShiftBufferDepth="PT60S"
     minBufferTime="PT2S">
  <Location>https://ssai.example.com/live/manifest.mpd</Location>
  <Period id="live-1" start="PT0S">{video_adaptation_set()}
  </Period>
</MPD>"""


@pytest.fixture
def malformed_mpd_xml() -> str:
    """Malformed XML for error testing."""
    return "<MPD><Period></MPD>"
