"""MPD parsing module.

This module handles:
- XML to generic tree parsing
- ISO 8601 duration parsing
- SegmentTimeline expansion
- Canonical model normalization
- Schema validation
"""

from .durations import DurationResult, parse_datetime, parse_duration
from .normalizer import normalize_mpd
from .timeline import expand_timeline, has_open_ended_repeat
from .validators import validate_mpd_schema
from .xml_parser import RawNode, parse_mpd_xml

__all__ = [
    "RawNode",
    "parse_mpd_xml",
    "DurationResult",
    "parse_duration",
    "parse_datetime",
    "expand_timeline",
    "has_open_ended_repeat",
    "normalize_mpd",
    "validate_mpd_schema",
]
