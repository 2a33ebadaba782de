"""Unit tests for the analysis orchestrator."""

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from src.analyzer import mpd_analyzer
from src.analyzer.mpd_analyzer import analyze_mpd, analyze_mpds, generate_summary, get_rule_config
from src.comparator.diff import compare_mpds
from src.mpd_parser.normalizer import normalize_mpd
from src.mpd_parser.xml_parser import parse_mpd_xml
from src.rule_engine.rules import run_all_rules


class TestAnalyzeMpd:
    """Tests for single manifest analysis."""

    def test_success_shape(self, source_mpd_xml: str):
        """Test the keys of a successful result."""
        result = analyze_mpd(source_mpd_xml)

        assert result["success"] is True
        assert set(result) == {"success", "normalized", "comparison", "rules", "summary", "metadata"}
        assert result["comparison"] is None
        assert result["metadata"]["periodsCount"] == 1
        assert result["metadata"]["hasComparison"] is False
        assert result["metadata"]["rulesExecuted"] == len(result["rules"])

    def test_rules_are_camel_case(self, source_mpd_xml: str):
        """Test that rule findings use the JSON field names."""
        result = analyze_mpd(source_mpd_xml)

        assert result["rules"][0]["ruleId"] == "DRM_MISSING"

    def test_previous_manifest_enables_comparison(self, source_mpd_xml: str, ssai_mpd_xml: str):
        """Test refresh comparison."""
        result = analyze_mpd(ssai_mpd_xml, source_mpd_xml)

        assert result["metadata"]["hasComparison"] is True
        assert result["comparison"]["periodsAdded"] == ["ad1"]
        assert result["summary"]["changes"]["periodsAdded"] == 1

    def test_parse_failure_is_a_result(self, malformed_mpd_xml: str):
        """Test that unparsable input does not raise."""
        result = analyze_mpd(malformed_mpd_xml)

        assert result["success"] is False
        assert set(result) == {"success", "error", "timestamp"}
        assert result["error"]

    def test_unparsable_previous_manifest_fails(self, source_mpd_xml: str, malformed_mpd_xml: str):
        """Test that the previous manifest must parse as well."""
        assert analyze_mpd(source_mpd_xml, malformed_mpd_xml)["success"] is False

    @pytest.mark.parametrize(
        "entry",
        ['<S t="0" d="abc"/>', '<S t="0" d="2" r="x"/>', '<S t="start" d="2"/>'],
    )
    def test_non_numeric_timeline_is_a_failed_result(self, entry: str):
        """Test that a SegmentTimeline with text values fails the analysis instead of raising."""
        xml = f"""<MPD type="static"><Period id="p"><AdaptationSet contentType="video">
                 <SegmentTemplate timescale="1"><SegmentTimeline>{entry}</SegmentTimeline></SegmentTemplate>
                 <Representation id="v" bandwidth="1"/>
               </AdaptationSet></Period></MPD>"""

        result = analyze_mpd(xml)

        assert result["success"] is False
        assert set(result) == {"success", "error", "timestamp"}
        assert "not a number" in result["error"]

    def test_rule_failure_is_a_result(self, source_mpd_xml: str):
        """Test that an unexpected error after parsing is reported, not raised."""
        with patch.object(mpd_analyzer, "run_all_rules", side_effect=RuntimeError("boom")):
            result = analyze_mpd(source_mpd_xml)

        assert result["success"] is False
        assert result["error"] == "Analysis failed: boom"


class TestAnalyzeMpds:
    """Tests for sequential analysis of refreshes."""

    def test_chains_previous_manifests(self, source_mpd_xml: str, ssai_mpd_xml: str, malformed_mpd_xml: str):
        """Test that failed manifests do not become the previous one."""
        results = analyze_mpds(
            [
                {"xml": source_mpd_xml, "id": "first"},
                {"xml": malformed_mpd_xml, "id": "broken"},
                {"xml": ssai_mpd_xml, "id": "third"},
            ]
        )

        assert [r["id"] for r in results] == ["first", "broken", "third"]
        assert [r["success"] for r in results] == [True, False, True]
        assert results[0]["metadata"]["hasComparison"] is False
        assert results[2]["comparison"]["periodsAdded"] == ["ad1"]


class TestRuleConfig:
    """Tests for configuration merging."""

    def test_defaults_come_from_settings(self, mock_environment: None):
        """Test environment defaults."""
        config = get_rule_config()

        assert config.min_segment_duration == 1.0
        assert config.max_segment_duration == 10.0

    def test_camel_case_and_field_name_overrides(self, mock_environment: None):
        """Test both spellings of override keys."""
        config = get_rule_config({"minSegmentDuration": 2.0, "bandwidth_tolerance": 0.05})

        assert config.min_segment_duration == 2.0
        assert config.bandwidth_tolerance == 0.05

    def test_unknown_key_is_ignored(self, mock_environment: None):
        """Test that unknown overrides only warn."""
        with patch.object(mpd_analyzer.logger, "warning") as warning:
            config = get_rule_config({"noSuchOption": 1})

        warning.assert_called_once()
        assert config.max_segment_duration == 10.0

    def test_out_of_range_value_raises(self, mock_environment: None):
        """Test that invalid values fail validation."""
        with pytest.raises(ValidationError):
            get_rule_config({"minSegmentDuration": -1})

    def test_environment_overrides(self, mock_environment: None, monkeypatch: pytest.MonkeyPatch):
        """Test thresholds taken from the environment."""
        from src.shared.config import clear_settings_cache

        monkeypatch.setenv("MAX_SEGMENT_DURATION", "8")
        clear_settings_cache()

        assert get_rule_config().max_segment_duration == 8.0


class TestSummary:
    """Tests for summary counts."""

    def test_counts(self, source_mpd_xml: str, ssai_mpd_xml: str):
        """Test period, adaptation, segment and rule counts."""
        previous = normalize_mpd(parse_mpd_xml(source_mpd_xml))
        current = normalize_mpd(parse_mpd_xml(ssai_mpd_xml))
        comparison = compare_mpds(previous, current)
        rules = run_all_rules(current, previous)

        summary = generate_summary(current, comparison, rules)

        assert summary["periods"] == {"total": 2, "withDRM": 0, "withoutDRM": 2}
        assert summary["adaptations"] == {"video": 2, "audio": 0}
        assert summary["segments"]["total"] == 20
        assert summary["segments"]["byType"]["video"] == 20
        assert summary["rules"]["total"] == len(rules)
        assert summary["changes"]["segmentsRemoved"] == 10

    def test_no_changes_without_comparison(self, source_mpd_xml: str):
        """Test that the changes block needs a comparison."""
        mpd = normalize_mpd(parse_mpd_xml(source_mpd_xml))

        assert "changes" not in generate_summary(mpd, None, [])
