"""Shared utilities for SSAI manifest analysis."""

from .config import Settings, get_settings
from .exceptions import (
    ManifestAnalysisError,
    ManifestParseError,
    SchemaValidationError,
    DurationParseError,
    OpenEndedTimelineError,
    ManifestFetchError,
    RetryableError,
)
from .models import (
    Severity,
    ContentType,
    RuleLevel,
    StreamType,
    Segment,
    Representation,
    AdaptationSet,
    Period,
    CanonicalMPD,
    RuleFinding,
    Finding,
    SeveritySummary,
    ValidationReport,
    Difference,
    ComparisonReport,
    SegmentInfo,
    AnalysisConfig,
    SegmentValidationConfig,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Exceptions
    "ManifestAnalysisError",
    "ManifestParseError",
    "SchemaValidationError",
    "DurationParseError",
    "OpenEndedTimelineError",
    "ManifestFetchError",
    "RetryableError",
    # Models
    "Severity",
    "ContentType",
    "RuleLevel",
    "StreamType",
    "Segment",
    "Representation",
    "AdaptationSet",
    "Period",
    "CanonicalMPD",
    "RuleFinding",
    "Finding",
    "SeveritySummary",
    "ValidationReport",
    "Difference",
    "ComparisonReport",
    "SegmentInfo",
    "AnalysisConfig",
    "SegmentValidationConfig",
]
