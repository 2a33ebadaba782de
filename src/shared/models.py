"""Pydantic models for data validation and serialization.

This module defines the core data structures used throughout the analysis:
- Canonical manifest model (MPD -> Period -> AdaptationSet -> Representation -> Segment)
- Findings produced by the rule engine and the compliance validator
- Per-call analysis configuration

All models use Pydantic v2 and serialize with camelCase aliases so reports
keep the key names consumers of the JSON output expect.
"""

from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .config import Settings


class Severity(str, Enum):
    """Closed severity scale for compliance findings, most severe first."""

    VERY_HIGH = "VERY_HIGH"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFO = "INFO"

    @property
    def rank(self) -> int:
        """Ordinal where a larger number is more severe."""
        return _SEVERITY_RANK[self]

    @property
    def is_critical(self) -> bool:
        """VeryHigh and High findings make a manifest invalid."""
        return self in (Severity.VERY_HIGH, Severity.HIGH)


_SEVERITY_RANK = {
    Severity.VERY_HIGH: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
    Severity.INFO: 0,
}


class ContentType(str, Enum):
    """Media types kept by the canonical normalizer."""

    VIDEO = "video"
    AUDIO = "audio"


class RuleLevel(str, Enum):
    """Baseline rule engine levels."""

    ERROR = "error"
    WARNING = "warning"


class StreamType(str, Enum):
    """Presentation type as seen by the segment runtime validator."""

    VOD = "vod"
    LIVE = "live"


class AnalysisModel(BaseModel):
    """Base model with camelCase serialization aliases."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# Canonical manifest
# =============================================================================


class Segment(AnalysisModel):
    """One media segment in seconds."""

    start: float = Field(description="Presentation start (seconds)")
    duration: float = Field(description="Segment duration (seconds)")


class Representation(AnalysisModel):
    """One encoding inside an adaptation set."""

    id: str = Field(
        min_length=1,
        description="Representation id, or a deterministic positional id",
    )
    bandwidth: int | None = Field(
        default=None,
        description="Declared bandwidth (bits per second)",
    )
    segments: list[Segment] = Field(
        default_factory=list,
        description="Expanded segments in non-decreasing start order",
    )


class AdaptationSet(AnalysisModel):
    """A group of interchangeable representations of one media type."""

    type: ContentType = Field(description="Inferred media type")
    representations: Annotated[list[Representation], Field(min_length=1)] = Field(
        description="Representations (never empty after normalization)",
    )


class Period(AnalysisModel):
    """A contiguous part of the presentation timeline."""

    id: str | None = Field(default=None, description="Period id if declared")
    start: float | None = Field(default=None, description="Period start (seconds)")
    drm_present: bool = Field(
        default=False,
        description="True if any ContentProtection exists in the period",
    )
    adaptation_sets: list[AdaptationSet] = Field(default_factory=list)

    def adaptations_of(self, content_type: ContentType) -> list[AdaptationSet]:
        """Return adaptation sets of one media type in document order."""
        return [a for a in self.adaptation_sets if a.type == content_type]


class CanonicalMPD(AnalysisModel):
    """Normalized manifest used by the comparator and rule engine."""

    publish_time: float | None = Field(
        default=None,
        description="publishTime as epoch seconds",
    )
    periods: list[Period] = Field(default_factory=list)


# =============================================================================
# Findings
# =============================================================================


class RuleFinding(AnalysisModel):
    """Output of one baseline rule."""

    rule_id: str = Field(description="Stable rule identifier, e.g. SEGMENT_TOO_SHORT")
    level: RuleLevel
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    highlight_segments: list[Segment] = Field(default_factory=list)


class Finding(AnalysisModel):
    """Output of one compliance check.

    ``kind`` is a stable machine-readable code; ``location`` is the element
    path the finding refers to (``MPD``, ``Period[p1].AdaptationSet[video:und:main:avc1]``).
    """

    kind: str
    severity: Severity
    message: str
    location: str = "MPD"
    attribute: str | None = None
    expected: Any = None
    actual: Any = None
    impact: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class SeveritySummary(AnalysisModel):
    """Severity tabulation of a compliance report."""

    total_issues: int = 0
    total_errors: int = 0
    total_warnings: int = 0
    critical_issues: int = 0
    severity_breakdown: dict[Severity, int] = Field(default_factory=dict)
    is_valid: bool = True
    ad_periods_detected: int = 0


class ValidationReport(AnalysisModel):
    """Deep compliance validation result.

    ``errors`` holds VeryHigh and High findings, ``warnings`` everything else.
    """

    errors: list[Finding] = Field(default_factory=list)
    warnings: list[Finding] = Field(default_factory=list)
    info: dict[str, Any] = Field(default_factory=dict)
    summary: SeveritySummary = Field(default_factory=SeveritySummary)
    timestamp: str | None = None

    @property
    def findings(self) -> list[Finding]:
        """All findings, errors first."""
        return [*self.errors, *self.warnings]


class Difference(AnalysisModel):
    """A single record of the enhanced comparison report."""

    kind: str = Field(description="Stable difference code used for deduplication")
    type: str = Field(description="Display type, e.g. 'CRITICAL ERROR' or a difference code")
    tag: str = Field(description="Element path or rule the difference refers to")
    attribute: str | None = None
    source_value: Any = None
    ssai_value: Any = None
    severity: Severity
    message: str
    solution: str = ""
    impact: str | None = None


class ComparisonReport(AnalysisModel):
    """Enhanced comparison result."""

    differences: list[Difference] = Field(default_factory=list)
    validation_summary: SeveritySummary = Field(default_factory=SeveritySummary)
    timestamp: str | None = None


class SegmentInfo(AnalysisModel):
    """A segment enriched with location and runtime observations."""

    period_id: str
    adaptation_set_id: str
    representation_id: str
    content_type: str
    segment_number: Annotated[int, Field(ge=0)]
    start_time_sec: float
    duration_sec: float
    download_time_sec: float | None = None
    is_first_in_period: bool = False
    stream_type: StreamType = StreamType.VOD


# =============================================================================
# Configuration
# =============================================================================


class AnalysisConfig(AnalysisModel):
    """Thresholds and tolerances for one analysis call."""

    min_segment_duration: float = Field(default=1.0, ge=0.0)
    max_segment_duration: float = Field(default=10.0, gt=0.0)
    max_download_time: float = Field(default=30.0, gt=0.0)
    max_download_ratio: float = Field(default=1.0, gt=0.0)
    cumulative_drift_threshold: float = Field(default=0.1, ge=0.0)
    bandwidth_tolerance: float = Field(default=0.01, ge=0.0)
    timing_tolerance_ms: float = Field(default=1.0, ge=0.0)
    period_start_tolerance: float = Field(default=0.1, ge=0.0)
    availability_start_tolerance: float = Field(default=1.0, ge=0.0)
    time_shift_buffer_reduction: float = Field(default=0.1, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def validate_segment_window(self) -> "AnalysisConfig":
        """Ensure the segment duration window is not empty."""
        if self.max_segment_duration <= self.min_segment_duration:
            raise ValueError("maxSegmentDuration must be greater than minSegmentDuration")
        return self

    @property
    def timing_tolerance(self) -> float:
        """Segment timing tolerance in seconds."""
        return self.timing_tolerance_ms / 1000.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "AnalysisConfig":
        """Build the per-call configuration from environment settings."""
        return cls(
            min_segment_duration=settings.min_segment_duration,
            max_segment_duration=settings.max_segment_duration,
            max_download_time=settings.max_download_time,
            max_download_ratio=settings.max_download_ratio,
            cumulative_drift_threshold=settings.cumulative_drift_threshold,
            bandwidth_tolerance=settings.bandwidth_tolerance,
            timing_tolerance_ms=settings.timing_tolerance_ms,
            period_start_tolerance=settings.period_start_tolerance,
            availability_start_tolerance=settings.availability_start_tolerance,
            time_shift_buffer_reduction=settings.time_shift_buffer_reduction,
        )


class SegmentValidationConfig(AnalysisModel):
    """Policy for the segment runtime validator."""

    max_download_ratio: float = Field(default=1.0, gt=0.0)
    max_download_time: float = Field(default=30.0, gt=0.0)
    min_segment_duration: float = Field(default=1.5, ge=0.0)
    max_segment_duration: float = Field(default=6.0, gt=0.0)
    enable_download_time_for_vod: bool = False

    @classmethod
    def from_analysis_config(cls, config: AnalysisConfig) -> "SegmentValidationConfig":
        """Take the download limits of an analysis configuration; duration bounds keep their defaults."""
        return cls(max_download_ratio=config.max_download_ratio, max_download_time=config.max_download_time)
