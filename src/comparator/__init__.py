"""Structural comparison of canonical manifests across refreshes."""

from .diff import MPDComparison, compare_mpds, diff_segment_timeline, segments_equal

__all__ = [
    "MPDComparison",
    "compare_mpds",
    "diff_segment_timeline",
    "segments_equal",
]
