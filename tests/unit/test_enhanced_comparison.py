"""Unit tests for enhanced comparison module."""

from unittest.mock import patch

from src.enhanced_comparison.orchestrator import (
    compare_manifests,
    dedup_key,
    deduplicate,
    finding_to_difference,
    merge_records,
)
from src.enhanced_comparison.remediation import (
    GENERIC_SOLUTION,
    SEVERITY_SOLUTIONS,
    generate_solution,
    map_severity_to_type,
)
from src.enhanced_comparison.structural import (
    check_segment_availability,
    check_timeline_drift,
    compare_root_tolerances,
    detect_cumulative_drift,
    detect_uncovered_attributes,
    difference,
    run_structural_pass,
    sweep_timescales,
)
from src.mpd_parser.xml_parser import parse_mpd_xml
from src.shared.models import AnalysisConfig, Difference, Finding, Severity


def _difference(**overrides) -> Difference:
    values = {
        "kind": "TIMESCALE_MISMATCH",
        "type": "TIMESCALE_MISMATCH",
        "tag": "Period[1].AdaptationSet[video:und:main:avc1]",
        "attribute": "timescale",
        "severity": Severity.HIGH,
        "message": "Timescale mismatch",
    }
    values.update(overrides)
    return Difference(**values)


class TestRemediation:
    """Tests for remediation text selection."""

    def test_severity_types(self):
        """Test display types of deep findings."""
        assert map_severity_to_type(Severity.VERY_HIGH) == "CRITICAL ERROR"
        assert map_severity_to_type(Severity.HIGH) == "ERROR"
        assert map_severity_to_type(Severity.MEDIUM) == "WARNING"
        assert map_severity_to_type(Severity.INFO) == "INFO"

    def test_keyword_solution(self):
        """Test keyword-driven remediation."""
        assert generate_solution("Timescale mismatch", Severity.VERY_HIGH).startswith("Fix timescale mismatch")
        assert generate_solution("Missing DRM system: Widevine", Severity.VERY_HIGH).startswith("Ensure all DRM")

    def test_element_names_match_without_spaces(self):
        """Test that 'UTC Timing' style wording still matches."""
        assert generate_solution("SSAI MPD missing UTC Timing", Severity.VERY_HIGH).startswith("Add UTCTiming")

    def test_severity_fallback(self):
        """Test severity-based and generic fallbacks."""
        assert generate_solution("Something odd", Severity.MEDIUM) == SEVERITY_SOLUTIONS[Severity.MEDIUM]
        assert generate_solution("Something odd", Severity.INFO) == GENERIC_SOLUTION

    def test_explicit_solution_wins(self):
        """Test that a provided solution is kept."""
        assert generate_solution("Timescale mismatch", Severity.HIGH, "Do X") == "Do X"


class TestDeduplication:
    """Tests for record merging."""

    def test_key_is_case_insensitive(self):
        """Test key normalization."""
        a = _difference(tag="MPD", attribute="UTCTiming")
        b = _difference(tag="mpd", attribute="utctiming")

        assert dedup_key(a) == dedup_key(b)

    def test_message_stands_in_for_attribute(self):
        """Test the key of a record without attribute."""
        assert dedup_key(_difference(attribute=None, message="Oops"))[2] == "oops"

    def test_merge_keeps_richest_fields(self):
        """Test that severity, solution and impact are merged."""
        existing = _difference(solution="short", severity=Severity.HIGH)
        incoming = _difference(solution="a much longer solution", severity=Severity.VERY_HIGH, impact="breaks")

        merged = merge_records(existing, incoming)

        assert merged.severity == Severity.VERY_HIGH
        assert merged.solution == "a much longer solution"
        assert merged.impact == "breaks"
        assert merged.type == existing.type

    def test_deduplicate_preserves_first_seen_order(self):
        """Test ordering and collapsing."""
        records = [
            _difference(kind="A", attribute="x"),
            _difference(kind="B", attribute="y"),
            _difference(kind="A", attribute="X"),
        ]

        result = deduplicate(records)

        assert [r.kind for r in result] == ["A", "B"]

    def test_finding_conversion(self):
        """Test mapping of a deep finding."""
        finding = Finding(
            kind="BANDWIDTH_MISMATCH",
            severity=Severity.VERY_HIGH,
            message="Representation bandwidth mismatch",
            location="Rep",
            attribute="bandwidth",
            expected=1000000,
            actual=2000000,
        )

        record = finding_to_difference(finding)

        assert record.type == "CRITICAL ERROR"
        assert record.tag == "Rep"
        assert record.source_value == 1000000
        assert record.ssai_value == 2000000
        assert record.solution.startswith("Verify bandwidth")


class TestStructuralPass:
    """Tests for the structural comparison steps."""

    def test_timescale_sweep(self, source_mpd_xml: str, timescale_mismatch_mpd_xml: str):
        """Test the effective timescale comparison."""
        differences = sweep_timescales(
            parse_mpd_xml(source_mpd_xml), parse_mpd_xml(timescale_mismatch_mpd_xml), AnalysisConfig()
        )

        assert len(differences) == 1
        assert differences[0].source_value == "90000"
        assert differences[0].ssai_value == "48000"

    def test_ad_time_is_not_drift(self, source_mpd_xml: str, ssai_mpd_xml: str):
        """Test that ad periods are removed before measuring drift."""
        differences = detect_cumulative_drift(
            parse_mpd_xml(source_mpd_xml), parse_mpd_xml(ssai_mpd_xml), AnalysisConfig()
        )

        assert differences == []

    def test_cumulative_drift_reports_first_offender_only(self):
        """Test that drift accumulated over several periods is reported once."""
        source = parse_mpd_xml(
            """<MPD>
                 <Period id="1" start="PT0S" duration="PT10S"/>
                 <Period id="2" start="PT10S" duration="PT10S"/>
                 <Period id="3" start="PT20S" duration="PT10S"/>
               </MPD>"""
        )
        ssai = parse_mpd_xml(
            """<MPD>
                 <Period id="1" start="PT0S" duration="PT10S"/>
                 <Period id="2" start="PT10.06S" duration="PT10S"/>
                 <Period id="3" start="PT20.12S" duration="PT10S"/>
               </MPD>"""
        )

        differences = detect_cumulative_drift(source, ssai, AnalysisConfig())

        assert len(differences) == 1
        assert differences[0].kind == "CUMULATIVE_DRIFT"
        assert differences[0].severity == Severity.HIGH
        assert "period 2" in differences[0].message

    def test_excessive_duration_increase(self):
        """Test the VOD duration increase limit."""
        source = parse_mpd_xml('<MPD type="static" mediaPresentationDuration="PT30S"/>')
        ssai = parse_mpd_xml('<MPD type="static" mediaPresentationDuration="PT90S"/>')

        differences = compare_root_tolerances(source, ssai, AnalysisConfig())

        assert [d.kind for d in differences] == ["EXCESSIVE_DURATION_INCREASE"]

    def test_live_tolerances(self):
        """Test update period variation and timestamp format on live streams."""
        source = parse_mpd_xml(
            '<MPD type="dynamic" minimumUpdatePeriod="PT2S" availabilityStartTime="2024-01-01T00:00:00Z"/>'
        )
        ssai = parse_mpd_xml('<MPD type="dynamic" minimumUpdatePeriod="PT6S" availabilityStartTime="yesterday"/>')

        differences = compare_root_tolerances(source, ssai, AnalysisConfig())

        assert [(d.kind, d.attribute) for d in differences] == [
            ("ATTRIBUTE_TOLERANCE_EXCEEDED", "minimumUpdatePeriod"),
            ("INVALID_TIMESTAMP", "availabilityStartTime"),
        ]

    def test_failing_step_is_skipped(self, source_mpd_xml: str):
        """Test that one failing step does not stop the pass."""
        root = parse_mpd_xml(source_mpd_xml)

        with patch("src.enhanced_comparison.structural.sweep_timescales", side_effect=RuntimeError("boom")):
            differences = run_structural_pass(root, root)

        assert differences == []

    def test_timeline_drift_per_period_and_total(self):
        """Test start, duration and total content drift grading."""
        source = parse_mpd_xml(
            """<MPD>
                 <Period id="1" start="PT0S" duration="PT10S"/>
                 <Period id="2" start="PT10S" duration="PT10S"/>
               </MPD>"""
        )
        ssai = parse_mpd_xml(
            """<MPD>
                 <Period id="1" start="PT0S" duration="PT10S"/>
                 <Period id="2" start="PT10.5S" duration="PT13S"/>
               </MPD>"""
        )

        differences = check_timeline_drift(source, ssai, AnalysisConfig())

        assert [(d.kind, d.tag, d.severity) for d in differences] == [
            ("TIMELINE_START_DRIFT", "Period[2]", Severity.MEDIUM),
            ("TIMELINE_DURATION_DRIFT", "Period[2]", Severity.HIGH),
            ("CUMULATIVE_TIMELINE_DRIFT", "Timeline", Severity.VERY_HIGH),
        ]
        assert differences[0].message == "Period start time drift: 0.500s"
        assert differences[2].attribute == "total_duration"

    def test_timeline_drift_skips_ad_periods(self, source_mpd_xml: str, ssai_mpd_xml: str):
        """Test that an inserted preroll shifts nothing once ad time is removed."""
        differences = check_timeline_drift(parse_mpd_xml(source_mpd_xml), parse_mpd_xml(ssai_mpd_xml), AnalysisConfig())

        assert differences == []

    def test_total_drift_needs_every_duration(self):
        """Test that the total is not compared when a period has no duration."""
        source = parse_mpd_xml('<MPD><Period id="1" start="PT0S"/></MPD>')
        ssai = parse_mpd_xml('<MPD><Period id="1" start="PT0S" duration="PT30S"/></MPD>')

        assert check_timeline_drift(source, ssai, AnalysisConfig()) == []

    def test_time_shift_buffer_reduced(self):
        """Test the live DVR window check against the allowed reduction."""
        source = parse_mpd_xml('<MPD type="dynamic" timeShiftBufferDepth="PT60S"/>')
        reduced = parse_mpd_xml('<MPD type="dynamic" timeShiftBufferDepth="PT30S"/>')
        close = parse_mpd_xml('<MPD type="dynamic" timeShiftBufferDepth="PT58S"/>')

        differences = check_segment_availability(source, reduced, AnalysisConfig())

        assert [(d.kind, d.severity) for d in differences] == [("TIMESHIFT_BUFFER_REDUCED", Severity.HIGH)]
        assert differences[0].solution == "Increase timeShiftBufferDepth in SSAI manifest to match source"
        assert check_segment_availability(source, close, AnalysisConfig()) == []

    def test_time_shift_buffer_ignored_for_vod(self):
        """Test that static manifests have no availability window to check."""
        source = parse_mpd_xml('<MPD type="static" timeShiftBufferDepth="PT60S"/>')
        ssai = parse_mpd_xml('<MPD type="static" timeShiftBufferDepth="PT10S"/>')

        assert check_segment_availability(source, ssai, AnalysisConfig()) == []

    def test_uncovered_attributes(self):
        """Test reporting of names no step compares, once per element and name."""
        source = parse_mpd_xml(
            """<MPD type="static" vendorTag="a">
                 <ProgramInformation><Title>Show</Title></ProgramInformation>
                 <Period id="1" foo="x"/>
                 <Period id="2" foo="y"/>
               </MPD>"""
        )
        ssai = parse_mpd_xml(
            """<MPD type="static" vendorTag="b" adBreaks="3">
                 <Period id="1" foo="x"/>
               </MPD>"""
        )

        differences = detect_uncovered_attributes(source, ssai, AnalysisConfig())

        assert [(d.kind, d.tag, d.attribute) for d in differences] == [
            ("UNCOVERED_ATTRIBUTE", "MPD", "vendorTag"),
            ("UNCOVERED_ATTRIBUTE", "MPD", "ProgramInformation"),
            ("UNCOVERED_ATTRIBUTE", "Period", "foo"),
            ("NEW_SSAI_ATTRIBUTE", "MPD", "adBreaks"),
        ]
        assert all(d.severity == Severity.INFO for d in differences)
        assert differences[0].source_value == "a"
        assert differences[0].ssai_value == "b"
        assert differences[3].message == 'New attribute "adBreaks" found in SSAI manifest'

    def test_fixtures_have_no_uncovered_names(self, source_mpd_xml: str, drm_source_mpd_xml: str, dynamic_mpd_xml: str):
        """Test that the attributes of typical manifests are all compared somewhere."""
        for xml in (source_mpd_xml, drm_source_mpd_xml, dynamic_mpd_xml):
            root = parse_mpd_xml(xml)
            assert detect_uncovered_attributes(root, root, AnalysisConfig()) == []


class TestCompareManifests:
    """Tests for the combined comparison."""

    def test_timescale_mismatch_reported_once(self, source_mpd_xml: str, timescale_mismatch_mpd_xml: str):
        """Test that structural and deep records of the same issue merge."""
        report = compare_manifests(source_mpd_xml, timescale_mismatch_mpd_xml)
        timescale = [d for d in report.differences if d.kind == "TIMESCALE_MISMATCH"]

        assert len(timescale) == 1
        assert timescale[0].severity == Severity.VERY_HIGH
        assert timescale[0].impact == "All timing calculations will be incorrect"
        assert report.validation_summary.is_valid is False

    def test_utc_timing_reported_once(self, dynamic_mpd_xml: str, dynamic_ssai_mpd_xml: str):
        """Test merging across passes for live manifests."""
        report = compare_manifests(dynamic_mpd_xml, dynamic_ssai_mpd_xml)

        assert [d.kind for d in report.differences].count("UTC_TIMING_MISSING") == 1

    def test_ad_insertion_has_no_critical_records(self, source_mpd_xml: str, ssai_mpd_xml: str):
        """Test the preroll scenario end to end."""
        report = compare_manifests(source_mpd_xml, ssai_mpd_xml)

        assert not [d for d in report.differences if d.severity == Severity.VERY_HIGH]
        assert report.validation_summary.ad_periods_detected == 1

    def test_failure_yields_single_record(self, source_mpd_xml: str, malformed_mpd_xml: str):
        """Test the failure record for unparsable input."""
        report = compare_manifests(source_mpd_xml, malformed_mpd_xml)

        assert len(report.differences) == 1
        record = report.differences[0]
        assert record.kind == "COMPARISON_FAILED"
        assert record.tag == "Enhanced Comparison"
        assert record.message.startswith("Enhanced comparison failed: ")
        assert record.solution == "Check manifest format and structure"
        assert report.validation_summary.is_valid is False

    def test_report_serializes_with_camel_case(self, source_mpd_xml: str, ssai_mpd_xml: str):
        """Test the JSON shape."""
        dumped = compare_manifests(source_mpd_xml, ssai_mpd_xml).model_dump(mode="json", by_alias=True)

        assert "validationSummary" in dumped
        assert "adPeriodsDetected" in dumped["validationSummary"]

    def test_every_record_has_a_solution(self, source_mpd_xml: str, ssai_mpd_xml: str):
        """Test that records built without explicit remediation still carry one."""
        source = source_mpd_xml.replace('minBufferTime="PT2S"', 'minBufferTime="PT2S" maxSegmentDuration="PT2S"')
        ssai = ssai_mpd_xml.replace('minBufferTime="PT2S"', 'minBufferTime="PT2S" maxSegmentDuration="PT6S"')

        report = compare_manifests(source, ssai)
        tolerance = [d for d in report.differences if d.attribute == "maxSegmentDuration"]

        assert tolerance
        assert all(d.solution for d in report.differences)

    def test_structural_helper_falls_back_to_generated_solution(self):
        """Test the remediation lookup for a structural record without a solution."""
        record = difference("ATTRIBUTE_TOLERANCE_EXCEEDED", "MPD", Severity.MEDIUM, "Some tolerance exceeded")

        assert record.solution == SEVERITY_SOLUTIONS[Severity.MEDIUM]
