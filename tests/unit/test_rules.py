"""Unit tests for baseline rule engine."""

from unittest.mock import patch

import pytest

from src.mpd_parser.normalizer import normalize_mpd
from src.mpd_parser.xml_parser import parse_mpd_xml
from src.rule_engine.rules import (
    check_drm,
    check_profile_alignment,
    check_segment_duration,
    compare_audio_video_duration,
    compare_period_ids,
    compare_period_start_times,
    run_all_rules,
)
from src.shared.models import (
    AdaptationSet,
    AnalysisConfig,
    CanonicalMPD,
    ContentType,
    Period,
    Representation,
    RuleLevel,
    Segment,
)


def _period(period_id: str, start: float, video: list[float], audio: list[float] | None = None) -> Period:
    adaptation_sets = [
        AdaptationSet(
            type=ContentType.VIDEO,
            representations=[Representation(id="v1", segments=[Segment(start=0.0, duration=d) for d in video])],
        )
    ]
    if audio is not None:
        adaptation_sets.append(
            AdaptationSet(
                type=ContentType.AUDIO,
                representations=[Representation(id="a1", segments=[Segment(start=0.0, duration=d) for d in audio])],
            )
        )
    return Period(id=period_id, start=start, drm_present=True, adaptation_sets=adaptation_sets)


class TestSegmentDuration:
    """Tests for the segment duration rule."""

    def test_short_segment_is_flagged(self, short_segment_mpd_xml: str):
        """Test that a 0.5s segment below a 1s minimum yields one finding."""
        mpd = normalize_mpd(parse_mpd_xml(short_segment_mpd_xml))
        config = AnalysisConfig(min_segment_duration=1.0)

        findings = check_segment_duration(mpd, None, config)

        assert len(findings) == 1
        finding = findings[0]
        assert finding.rule_id == "SEGMENT_TOO_SHORT"
        assert finding.level == RuleLevel.ERROR
        assert finding.details["duration"] == 0.5
        assert finding.highlight_segments[0].start == 0.0

    def test_long_segment_is_flagged(self):
        """Test the maximum bound."""
        mpd = CanonicalMPD(periods=[_period("1", 0.0, [2.0, 12.0])])

        findings = check_segment_duration(mpd, None, AnalysisConfig())

        assert [f.rule_id for f in findings] == ["SEGMENT_TOO_LONG"]

    def test_segments_within_bounds_pass(self, source_mpd_xml: str):
        """Test that 2s segments pass the default window."""
        mpd = normalize_mpd(parse_mpd_xml(source_mpd_xml))

        assert check_segment_duration(mpd, None, AnalysisConfig()) == []


class TestDrmRule:
    """Tests for the DRM presence rule."""

    def test_unprotected_period_is_flagged(self, source_mpd_xml: str):
        """Test a period without ContentProtection."""
        mpd = normalize_mpd(parse_mpd_xml(source_mpd_xml))

        findings = check_drm(mpd, None, AnalysisConfig())

        assert len(findings) == 1
        assert findings[0].rule_id == "DRM_MISSING"
        assert findings[0].message == "DRM protection missing in Period 1"

    def test_protected_period_passes(self, drm_source_mpd_xml: str):
        """Test a protected period."""
        mpd = normalize_mpd(parse_mpd_xml(drm_source_mpd_xml))

        assert check_drm(mpd, None, AnalysisConfig()) == []


class TestAlignmentRules:
    """Tests for profile and audio/video alignment."""

    def test_profile_mismatch(self):
        """Test representations with differing timelines."""
        adaptation = AdaptationSet(
            type=ContentType.VIDEO,
            representations=[
                Representation(id="v1", segments=[Segment(start=0.0, duration=2.0)]),
                Representation(id="v2", segments=[Segment(start=0.0, duration=4.0)]),
            ],
        )
        mpd = CanonicalMPD(periods=[Period(id="1", drm_present=True, adaptation_sets=[adaptation])])

        findings = check_profile_alignment(mpd, None, AnalysisConfig())

        assert len(findings) == 1
        assert findings[0].details["mismatchRepId"] == "v2"

    def test_audio_video_duration_mismatch_is_warning(self):
        """Test first segment duration comparison."""
        mpd = CanonicalMPD(periods=[_period("1", 0.0, [2.0], audio=[1.92])])

        findings = compare_audio_video_duration(mpd, None, AnalysisConfig())

        assert len(findings) == 1
        assert findings[0].level == RuleLevel.WARNING
        assert findings[0].details["difference"] == pytest.approx(0.08)


class TestComparisonRules:
    """Tests for rules that need a previous manifest."""

    def test_no_previous_manifest_yields_nothing(self):
        """Test that comparison rules are skipped without a previous refresh."""
        mpd = CanonicalMPD(periods=[_period("1", 0.0, [2.0])])

        assert compare_period_start_times(mpd, None, AnalysisConfig()) == []
        assert compare_period_ids(mpd, None, AnalysisConfig()) == []

    def test_period_start_and_id_changes(self):
        """Test index-wise period comparison."""
        prev = CanonicalMPD(periods=[_period("1", 0.0, [2.0])])
        curr = CanonicalMPD(periods=[_period("ad1", 10.0, [2.0])])

        starts = compare_period_start_times(curr, prev, AnalysisConfig())
        ids = compare_period_ids(curr, prev, AnalysisConfig())

        assert starts[0].details["diff"] == 10.0
        assert starts[0].level == RuleLevel.WARNING
        assert ids[0].details == {"periodIndex": 0, "prev": "1", "curr": "ad1"}
        assert ids[0].level == RuleLevel.ERROR


class TestRunAllRules:
    """Tests for the rule runner."""

    def test_runs_every_rule(self, short_segment_mpd_xml: str):
        """Test the combined output for the short segment manifest."""
        mpd = normalize_mpd(parse_mpd_xml(short_segment_mpd_xml))

        findings = run_all_rules(mpd, None, AnalysisConfig(min_segment_duration=1.0))

        assert [f.rule_id for f in findings] == ["SEGMENT_TOO_SHORT"]

    def test_failing_rule_is_skipped(self):
        """Test that an exception in one rule does not stop the others."""
        mpd = CanonicalMPD(periods=[Period(id="1", drm_present=False)])

        with patch("src.rule_engine.rules.RULES", (_broken_rule, check_drm)):
            findings = run_all_rules(mpd)

        assert [f.rule_id for f in findings] == ["DRM_MISSING"]


def _broken_rule(mpd, prev, config):
    raise RuntimeError("boom")
