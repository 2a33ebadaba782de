"""Unit tests for segment runtime validation."""

from unittest.mock import patch

import pytest

from src.mpd_parser.xml_parser import parse_mpd_xml
from src.segment_validator.validator import (
    DOWNLOAD_TIME_EXCEEDED,
    SEGMENT_TOO_LONG,
    SEGMENT_TOO_SHORT,
    default_config,
    extract_segment_info,
    format_segment_details,
    record_download_time,
    validate_all_segments,
    validate_segment,
)
from src.shared.config import Settings
from src.shared.models import AnalysisConfig, SegmentInfo, SegmentValidationConfig, StreamType


def _segment(**overrides) -> SegmentInfo:
    values = {
        "period_id": "1",
        "adaptation_set_id": "1",
        "representation_id": "v1",
        "content_type": "video",
        "segment_number": 3,
        "start_time_sec": 6.0,
        "duration_sec": 2.0,
        "stream_type": StreamType.LIVE,
    }
    values.update(overrides)
    return SegmentInfo(**values)


class TestExtractSegmentInfo:
    """Tests for segment extraction from a manifest."""

    def test_extract_vod_segments(self, source_mpd_xml: str):
        """Test numbering and annotation of expanded segments."""
        segments = extract_segment_info(parse_mpd_xml(source_mpd_xml))

        assert len(segments) == 15
        assert [s.segment_number for s in segments[:3]] == [0, 1, 2]
        assert segments[0].is_first_in_period is True
        assert segments[1].is_first_in_period is False
        assert segments[0].stream_type == StreamType.VOD
        assert segments[0].content_type == "video"
        assert segments[0].adaptation_set_id == "1"
        assert segments[14].start_time_sec == pytest.approx(28.0)

    def test_dynamic_manifest_is_live(self, dynamic_mpd_xml: str):
        """Test stream type derivation from MPD@type."""
        segments = extract_segment_info(parse_mpd_xml(dynamic_mpd_xml))

        assert len(segments) == 15
        assert all(s.stream_type == StreamType.LIVE for s in segments)

    def test_stream_type_override(self, source_mpd_xml: str):
        """Test that an explicit stream type wins."""
        segments = extract_segment_info(parse_mpd_xml(source_mpd_xml), StreamType.LIVE)

        assert segments[0].stream_type == StreamType.LIVE

    def test_open_ended_timeline_is_skipped(self):
        """Test that unbounded timelines are not enumerated."""
        root = parse_mpd_xml(
            """<MPD type="dynamic"><Period id="p"><AdaptationSet mimeType="audio/mp4">
                 <SegmentTemplate timescale="48000"><SegmentTimeline><S t="0" d="96000" r="-1"/></SegmentTimeline></SegmentTemplate>
                 <Representation id="a1" bandwidth="128000"/>
               </AdaptationSet></Period></MPD>"""
        )

        assert extract_segment_info(root) == []

    def test_missing_ids_get_positional_labels(self, short_segment_mpd_xml: str):
        """Test fallback identifiers."""
        segments = extract_segment_info(parse_mpd_xml(short_segment_mpd_xml))

        assert segments[0].adaptation_set_id == "as_0"
        assert segments[0].duration_sec == 0.5


class TestValidateSegment:
    """Tests for the per-segment rules."""

    def test_slow_download_is_critical(self):
        """Test the download ratio rule on a live segment."""
        segment = record_download_time(_segment(), 3.0)

        violations = validate_segment(segment)

        assert [v.rule for v in violations] == [DOWNLOAD_TIME_EXCEEDED]
        assert violations[0].severity == "CRITICAL"
        assert violations[0].message.startswith("Download time ratio: 1.50x")

    def test_download_time_ignored_for_vod_by_default(self):
        """Test that VOD download times are only checked when enabled."""
        segment = record_download_time(_segment(stream_type=StreamType.VOD), 3.0)

        assert validate_segment(segment) == []
        enabled = SegmentValidationConfig(enable_download_time_for_vod=True)
        assert [v.rule for v in validate_segment(segment, enabled)] == [DOWNLOAD_TIME_EXCEEDED]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"segment_number": 0},
            {"is_first_in_period": True},
            {"download_time_sec": 0.01},
            {"download_time_sec": None},
        ],
    )
    def test_download_time_exemptions(self, overrides: dict):
        """Test first segments, cache hits and missing samples are exempt."""
        segment = _segment(download_time_sec=3.0)
        segment = segment.model_copy(update=overrides)

        assert validate_segment(segment) == []

    def test_duration_bounds(self):
        """Test the duration window."""
        assert [v.rule for v in validate_segment(_segment(duration_sec=8.0))] == [SEGMENT_TOO_LONG]
        assert [v.rule for v in validate_segment(_segment(duration_sec=1.0))] == [SEGMENT_TOO_SHORT]
        assert validate_segment(_segment(duration_sec=1.5)) == []

    def test_absolute_download_time_limit(self):
        """Test that a slow download is flagged even within the allowed ratio."""
        config = SegmentValidationConfig(max_download_ratio=2.0, max_download_time=2.5)
        segment = record_download_time(_segment(), 3.0)

        violations = validate_segment(segment, config)

        assert [v.rule for v in violations] == [DOWNLOAD_TIME_EXCEEDED]
        assert violations[0].message == "Download time 3.000s exceeds max 2.5s"

    def test_download_limits_follow_environment(self):
        """Test that the default policy takes its download limits from the settings."""
        settings = Settings(MAX_DOWNLOAD_RATIO=2.0, MAX_DOWNLOAD_TIME=10.0)
        segment = record_download_time(_segment(), 3.0)

        with patch("src.segment_validator.validator.get_settings", return_value=settings):
            config = default_config()
            assert validate_segment(segment) == []

        assert config.max_download_ratio == 2.0
        assert config.max_download_time == 10.0
        assert config.max_segment_duration == 6.0

    def test_from_analysis_config(self):
        """Test carrying per-call download limits into the segment policy."""
        config = SegmentValidationConfig.from_analysis_config(
            AnalysisConfig(max_download_ratio=1.5, max_download_time=12.0)
        )

        assert (config.max_download_ratio, config.max_download_time) == (1.5, 12.0)
        assert config.min_segment_duration == 1.5


class TestValidateAllSegments:
    """Tests for aggregate validation."""

    def test_distinct_violating_segments(self):
        """Test that a segment with two violations is counted once."""
        segments = [
            record_download_time(_segment(duration_sec=8.0), 20.0),
            _segment(segment_number=4),
            _segment(segment_number=5, duration_sec=0.5),
        ]

        result = validate_all_segments(segments)

        assert result.has_critical is True
        assert len(result.violations) == 3
        assert result.total_segments == 3
        assert result.violating_segments == 2

    def test_clean_manifest(self, source_mpd_xml: str):
        """Test a manifest whose segments all pass."""
        result = validate_all_segments(extract_segment_info(parse_mpd_xml(source_mpd_xml)))

        assert result.has_critical is False
        assert result.violating_segments == 0
        assert result.total_segments == 15


class TestFormatting:
    """Tests for violation formatting."""

    def test_format_segment_details(self):
        """Test the one-line description."""
        violation = validate_segment(record_download_time(_segment(), 3.0))[0]

        text = format_segment_details(violation)

        assert text.startswith(
            "Period: 1 | AdaptationSet: video | Representation: v1 | Segment #: 3 | "
            "Start time: 6.000s | Duration: 2.000s | Download time: 3.000s | Violation: "
        )
