"""Environment-aware configuration with validation.

This module provides centralized configuration management using Pydantic Settings.
Analysis thresholds can be tuned per deployment through environment variables and
are validated at startup to fail fast on misconfigurations.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings are cached to avoid repeated parsing.

    Example:
        >>> settings = get_settings()
        >>> print(settings.max_segment_duration)
        10.0
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["dev", "staging", "prod"] = Field(
        default="dev",
        description="Deployment environment",
    )
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_REGION",
        description="AWS region for all services",
    )

    # S3 Configuration
    manifest_bucket: str = Field(
        default="",
        alias="MANIFEST_BUCKET",
        description="S3 bucket holding collected source and SSAI manifests",
    )
    report_bucket: str = Field(
        default="",
        alias="REPORT_BUCKET",
        description="S3 bucket receiving analysis reports",
    )
    report_prefix: str = Field(
        default="reports",
        alias="REPORT_PREFIX",
        description="Key prefix for stored analysis reports",
    )

    # Schema validation
    mpd_xsd_path: str = Field(
        default="",
        alias="MPD_XSD_PATH",
        description="Path to the DASH MPD XSD (empty = well-formedness only)",
    )

    # Segment thresholds
    min_segment_duration: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        alias="MIN_SEGMENT_DURATION",
        description="Shortest acceptable segment duration (seconds)",
    )
    max_segment_duration: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        alias="MAX_SEGMENT_DURATION",
        description="Longest acceptable segment duration (seconds)",
    )
    max_download_time: float = Field(
        default=30.0,
        gt=0.0,
        le=600.0,
        alias="MAX_DOWNLOAD_TIME",
        description="Maximum acceptable segment download time (seconds)",
    )
    max_download_ratio: float = Field(
        default=1.0,
        gt=0.0,
        le=10.0,
        alias="MAX_DOWNLOAD_RATIO",
        description="Maximum download time to segment duration ratio",
    )

    # Comparison tolerances
    cumulative_drift_threshold: float = Field(
        default=0.1,
        ge=0.0,
        le=10.0,
        alias="CUMULATIVE_DRIFT_THRESHOLD",
        description="Summed period start divergence that triggers a drift finding (seconds)",
    )
    bandwidth_tolerance: float = Field(
        default=0.01,
        ge=0.0,
        le=0.5,
        alias="BANDWIDTH_TOLERANCE",
        description="Relative bandwidth difference tolerated between matched representations",
    )
    timing_tolerance_ms: float = Field(
        default=1.0,
        ge=0.0,
        le=1000.0,
        alias="TIMING_TOLERANCE_MS",
        description="Segment timing tolerance in milliseconds",
    )
    period_start_tolerance: float = Field(
        default=0.1,
        ge=0.0,
        le=10.0,
        alias="PERIOD_START_TOLERANCE",
        description="Period start tolerance for matching and gap detection (seconds)",
    )
    availability_start_tolerance: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        alias="AVAILABILITY_START_TOLERANCE",
        description="Allowed availabilityStartTime drift for live streams (seconds)",
    )
    time_shift_buffer_reduction: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        alias="TIME_SHIFT_BUFFER_REDUCTION",
        description="Allowed relative reduction of timeShiftBufferDepth",
    )

    # Retry Configuration
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum retry attempts for transient failures",
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        ge=0.1,
        le=30.0,
        description="Initial delay between retries (exponential backoff)",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    @field_validator("max_segment_duration")
    @classmethod
    def validate_segment_bounds(cls, v: float, info: ValidationInfo) -> float:
        """Ensure the segment duration window is not empty."""
        minimum = info.data.get("min_segment_duration")
        if minimum is not None and v <= minimum:
            raise ValueError("MAX_SEGMENT_DURATION must be greater than MIN_SEGMENT_DURATION")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are loaded once and cached for the lifetime of the process.
    This is safe for Lambda because each invocation gets a fresh process
    or reuses a warm container with the same settings.

    Returns:
        Validated Settings instance

    Raises:
        ValidationError: If environment variables are invalid
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when environment variables change.
    """
    get_settings.cache_clear()
