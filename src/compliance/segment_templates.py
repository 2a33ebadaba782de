"""SegmentTemplate, SegmentTimeline and SegmentBase checks.

A timescale mismatch invalidates every tick-based comparison, so once one
is found the duration and timeline math for that template pair is skipped.
Timelines with an open-ended repeat are reported as not verified rather
than expanded.
"""

from ..mpd_parser.timeline import expand_timeline, has_open_ended_repeat, timeline_entries
from ..mpd_parser.xml_parser import RawNode
from ..shared.models import AnalysisConfig, Finding, Severity

REQUIRED_URL_TOKENS = ("$RepresentationID$", "$Number$")
NUMBER_TOKEN = "$Number$"
TIME_TOKEN = "$Time$"

TEMPLATE_DURATION_TOLERANCE = 0.01


def effective_template(representation: RawNode, adaptation_set: RawNode) -> RawNode | None:
    """Representation SegmentTemplate, falling back to the adaptation set's."""
    return representation.first("SegmentTemplate") or adaptation_set.first("SegmentTemplate")


def compare_url_template(source: str, ssai: str) -> str | None:
    """Compare two URL templates.

    Returns:
        None when the structure is preserved, otherwise the reason
    """
    reasons = [
        f"Missing required variable {token}."
        for token in REQUIRED_URL_TOKENS
        if token in source and token not in ssai
    ]

    if TIME_TOKEN in source and TIME_TOKEN not in ssai and NUMBER_TOKEN in ssai:
        reasons.append("Changed from $Time$ to $Number$ addressing.")
    elif NUMBER_TOKEN in source and NUMBER_TOKEN not in ssai and TIME_TOKEN in ssai:
        reasons.append("Changed from $Number$ to $Time$ addressing.")

    return " ".join(reasons) or None


def _timescale(template: RawNode) -> int | float:
    return template.get("timescale") or 1


def check_template_structure(source: RawNode, ssai: RawNode, location: str) -> list[Finding]:
    """Attributes and children an SSAI template must keep."""
    findings = []

    if not source.get("timescale") and not ssai.get("timescale"):
        findings.append(
            Finding(
                kind="TIMESCALE_DEFAULTED",
                severity=Severity.LOW,
                message="Both templates missing timescale (defaulting to 1)",
                location=location,
                attribute="SegmentTemplate.timescale",
                expected="Explicit timescale",
                actual="Missing",
            )
        )

    if source.get("duration") and not ssai.get("duration"):
        findings.append(
            Finding(
                kind="TEMPLATE_DURATION_MISSING",
                severity=Severity.HIGH,
                message="SSAI template missing duration",
                location=location,
                attribute="SegmentTemplate.duration",
                expected=source.get("duration"),
                actual="Missing",
                impact="Segment duration cannot be determined",
            )
        )

    if source.get("startNumber") and not ssai.get("startNumber"):
        findings.append(
            Finding(
                kind="START_NUMBER_MISSING",
                severity=Severity.MEDIUM,
                message="SSAI template missing startNumber",
                location=location,
                attribute="SegmentTemplate.startNumber",
                expected=source.get("startNumber"),
                actual="Missing (defaults to 1)",
            )
        )

    for attribute, name, missing_severity in (
        ("media", "Media", Severity.VERY_HIGH),
        ("initialization", "Initialization", Severity.HIGH),
    ):
        source_url = source.get(attribute)
        ssai_url = ssai.get(attribute)
        if not source_url:
            continue
        if not ssai_url:
            findings.append(
                Finding(
                    kind="URL_TEMPLATE_MISSING",
                    severity=missing_severity,
                    message=f"SSAI template missing {attribute} URL template",
                    location=location,
                    attribute=f"SegmentTemplate.{attribute}",
                    expected=source_url,
                    actual="Missing",
                    impact="Cannot construct segment URLs",
                )
            )
            continue
        reason = compare_url_template(str(source_url), str(ssai_url))
        if reason is not None:
            findings.append(
                Finding(
                    kind="URL_TEMPLATE_CHANGED",
                    severity=Severity.MEDIUM,
                    message=f"{name} URL template structure changed",
                    location=location,
                    attribute=f"SegmentTemplate.{attribute}",
                    expected=source_url,
                    actual=ssai_url,
                    details={"reason": reason},
                )
            )

    source_timeline = source.first("SegmentTimeline")
    ssai_timeline = ssai.first("SegmentTimeline")
    if source_timeline is not None and ssai_timeline is None:
        findings.append(
            Finding(
                kind="SEGMENT_TIMELINE_MISSING",
                severity=Severity.VERY_HIGH,
                message="SSAI template missing SegmentTimeline",
                location=location,
                attribute="SegmentTimeline",
                expected="Present",
                actual="Missing",
                impact="Segment timing information lost",
            )
        )
    elif source_timeline is None and ssai_timeline is not None:
        findings.append(
            Finding(
                kind="SEGMENT_TIMELINE_ADDED",
                severity=Severity.INFO,
                message="SSAI added SegmentTimeline",
                location=location,
                attribute="SegmentTimeline",
                expected="Missing",
                actual="Present",
            )
        )

    return findings


def check_segment_template(
    source: RawNode,
    ssai: RawNode,
    location: str,
    config: AnalysisConfig,
) -> list[Finding]:
    """Compare a pair of effective SegmentTemplates.

    Args:
        source: Source template
        ssai: SSAI template
        location: Element path of the template owner
        config: Analysis tolerances (segment timing tolerance)

    Returns:
        Findings for structure, timescale, duration, numbering and timeline
    """
    findings = check_template_structure(source, ssai, location)
    source_scale = _timescale(source)
    ssai_scale = _timescale(ssai)

    if source_scale != ssai_scale:
        findings.append(
            Finding(
                kind="TIMESCALE_MISMATCH",
                severity=Severity.VERY_HIGH,
                message="Timescale mismatch",
                location=location,
                attribute="timescale",
                expected=source_scale,
                actual=ssai_scale,
                impact="All timing calculations will be incorrect",
            )
        )
    else:
        findings.extend(_check_template_duration(source, ssai, source_scale, location))
        findings.extend(check_timeline_math(source, ssai, source_scale, location, config.timing_tolerance))

    source_start = source.get("startNumber") or 1
    ssai_start = ssai.get("startNumber") or 1
    if source_start != ssai_start:
        findings.append(
            Finding(
                kind="START_NUMBER_SHIFTED",
                severity=Severity.INFO,
                message="StartNumber shifted by SSAI",
                location=location,
                attribute="startNumber",
                expected=source_start,
                actual=ssai_start,
                details={"shift": ssai_start - source_start},
            )
        )

    if not ssai.get("initialization") and not ssai.get("media"):
        findings.append(
            Finding(
                kind="URL_TEMPLATES_MISSING",
                severity=Severity.VERY_HIGH,
                message="Missing segment URL templates",
                location=location,
                attribute="SegmentTemplate",
                expected="media or initialization",
                actual="Missing",
            )
        )

    return findings


def _check_template_duration(source: RawNode, ssai: RawNode, timescale: int | float, location: str) -> list[Finding]:
    source_duration = source.get("duration")
    ssai_duration = ssai.get("duration")
    if not source_duration or not ssai_duration:
        return []

    source_seconds = source_duration / timescale
    ssai_seconds = ssai_duration / timescale
    if abs(source_seconds - ssai_seconds) <= source_seconds * TEMPLATE_DURATION_TOLERANCE:
        return []

    return [
        Finding(
            kind="SEGMENT_DURATION_MISMATCH",
            severity=Severity.HIGH,
            message="Segment duration mismatch",
            location=location,
            attribute="SegmentTemplate.duration",
            expected=f"{source_seconds:.3f}",
            actual=f"{ssai_seconds:.3f}",
        )
    ]


def check_timeline_math(
    source: RawNode,
    ssai: RawNode,
    timescale: int | float,
    location: str,
    tolerance: float = 0.001,
) -> list[Finding]:
    """Compare expanded timelines segment by segment.

    Skipped with a MEDIUM finding when either side repeats open-endedly.
    """
    source_entries = timeline_entries(source)
    ssai_entries = timeline_entries(ssai)
    if not source_entries or not ssai_entries:
        return []

    if has_open_ended_repeat(source_entries) or has_open_ended_repeat(ssai_entries):
        return [
            Finding(
                kind="OPEN_ENDED_TIMELINE",
                severity=Severity.MEDIUM,
                message="SegmentTimeline contains open-ended repeat (r=-1)",
                location=location,
                attribute="SegmentTimeline",
                impact="Exact segment count validation skipped - requires period duration or next S@t",
            )
        ]

    source_segments = expand_timeline(source_entries, timescale)
    ssai_segments = expand_timeline(ssai_entries, timescale)
    findings = []

    if len(source_segments) != len(ssai_segments):
        findings.append(
            Finding(
                kind="SEGMENT_COUNT_MISMATCH",
                severity=Severity.HIGH,
                message="Segment count mismatch in timeline",
                location=location,
                attribute="SegmentTimeline",
                expected=len(source_segments),
                actual=len(ssai_segments),
            )
        )

    for index, (expected, actual) in enumerate(zip(source_segments, ssai_segments)):
        if abs(expected.start - actual.start) > tolerance:
            findings.append(
                Finding(
                    kind="SEGMENT_START_MISMATCH",
                    severity=Severity.HIGH,
                    message=f"Segment {index} start time mismatch",
                    location=location,
                    attribute=f"S[{index}].t",
                    expected=f"{expected.start:.3f}",
                    actual=f"{actual.start:.3f}",
                )
            )
        if abs(expected.duration - actual.duration) > tolerance:
            findings.append(
                Finding(
                    kind="SEGMENT_DURATION_MISMATCH",
                    severity=Severity.HIGH,
                    message=f"Segment {index} duration mismatch",
                    location=location,
                    attribute=f"S[{index}].d",
                    expected=f"{expected.duration:.3f}",
                    actual=f"{actual.duration:.3f}",
                )
            )

    return findings


def check_segment_base(source: RawNode, ssai: RawNode, location: str) -> list[Finding]:
    """Compare SegmentBase timescale and presentationTimeOffset."""
    findings = []
    source_scale = source.get("timescale") or 1
    ssai_scale = ssai.get("timescale") or 1
    if source_scale != ssai_scale:
        findings.append(
            Finding(
                kind="TIMESCALE_MISMATCH",
                severity=Severity.VERY_HIGH,
                message="SegmentBase timescale mismatch",
                location=location,
                attribute="SegmentBase.timescale",
                expected=source_scale,
                actual=ssai_scale,
            )
        )

    source_offset = source.get("presentationTimeOffset") or 0
    ssai_offset = ssai.get("presentationTimeOffset") or 0
    if source_offset != ssai_offset:
        findings.append(
            Finding(
                kind="PRESENTATION_TIME_OFFSET_MISMATCH",
                severity=Severity.MEDIUM,
                message="SegmentBase presentationTimeOffset mismatch",
                location=location,
                attribute="SegmentBase.presentationTimeOffset",
                expected=source_offset,
                actual=ssai_offset,
            )
        )

    return findings
