"""Segment runtime validation module."""

from .validator import (
    SegmentValidationResult,
    SegmentViolation,
    extract_segment_info,
    format_segment_details,
    record_download_time,
    validate_all_segments,
    validate_segment,
)

__all__ = [
    "SegmentValidationResult",
    "SegmentViolation",
    "extract_segment_info",
    "format_segment_details",
    "record_download_time",
    "validate_all_segments",
    "validate_segment",
]
