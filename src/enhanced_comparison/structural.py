"""Independent structural pass of the enhanced comparison.

Steps run in order and each in isolation:

1. Semantic period and adaptation-set matching
2. Nested SegmentTemplate checks at adaptation-set and representation level
3. Whole-tree timescale sweep over matched representations
4. Dynamic MPD checks
5. Cumulative period start drift
6. Tolerance-based root attribute comparisons
7. Per-period start and duration drift, then total content duration drift
8. Live time-shift window availability
9. Attributes and elements no check covers

Records reuse the deep validator's kinds, element paths and attribute names
wherever both passes describe the same condition, so the orchestrator can
merge them.
"""

from typing import Any, Callable, NamedTuple

from aws_lambda_powertools import Logger

from ..compliance.common import adaptation_set_location, match_adaptation_sets, period_location
from ..compliance.periods import TimelineEntry, build_timeline, find_matching_period, is_ad_period
from ..compliance.representations import match_representations, representation_location
from ..compliance.root import DYNAMIC
from ..mpd_parser.durations import duration_seconds, parse_datetime
from ..mpd_parser.timeline import timeline_entries
from ..mpd_parser.xml_parser import RawNode
from ..shared.models import AnalysisConfig, Difference, Severity
from .remediation import generate_solution

logger = Logger(service="ssai-manifest-validator", child=True)

LIVE_ATTRIBUTES = (
    "availabilityStartTime",
    "minimumUpdatePeriod",
    "timeShiftBufferDepth",
    "suggestedPresentationDelay",
)

# VOD mediaPresentationDuration may grow up to this factor with heavy ad load
MAX_DURATION_INCREASE = 2.0
UPDATE_PERIOD_VARIATION = 0.5
MAX_SEGMENT_DURATION_TOLERANCE = 0.001

TIMELINE_DRIFT_TOLERANCE = 0.1
TIMELINE_DRIFT_HIGH = 1.0
TOTAL_DRIFT_TOLERANCE = 0.5
TOTAL_DRIFT_VERY_HIGH = 2.0

Step = Callable[[RawNode, RawNode, AnalysisConfig], list[Difference]]


class MatchedAdaptationSet(NamedTuple):
    """A matched adaptation set pair with its element path."""

    location: str
    source: RawNode
    ssai: RawNode


def difference(
    kind: str,
    tag: str,
    severity: Severity,
    message: str,
    attribute: str | None = None,
    source_value: Any = None,
    ssai_value: Any = None,
    solution: str = "",
    impact: str | None = None,
) -> Difference:
    """Build a structural record; without a solution one is chosen from the message."""
    return Difference(
        kind=kind,
        type=kind,
        tag=tag,
        attribute=attribute,
        source_value=source_value,
        ssai_value=ssai_value,
        severity=severity,
        message=message,
        solution=generate_solution(message, severity, solution or None),
        impact=impact,
    )


def matched_adaptation_sets(
    source_root: RawNode,
    ssai_root: RawNode,
    config: AnalysisConfig,
) -> list[MatchedAdaptationSet]:
    """Adaptation set pairs of semantically matched periods."""
    pairs = []
    ssai_periods = ssai_root.all("Period")
    for index, source_period in enumerate(source_root.all("Period")):
        ssai_period = find_matching_period(source_period, ssai_periods, config.period_start_tolerance)
        if ssai_period is None:
            continue
        location = period_location(source_period, index)
        for match in match_adaptation_sets(source_period.all("AdaptationSet"), ssai_period.all("AdaptationSet")):
            if match.ssai is not None:
                pairs.append(MatchedAdaptationSet(adaptation_set_location(location, match.key), match.source, match.ssai))
    return pairs


def run_structural_pass(
    source_root: RawNode,
    ssai_root: RawNode,
    config: AnalysisConfig | None = None,
) -> list[Difference]:
    """Run every structural step; a failing step is logged and skipped."""
    config = config or AnalysisConfig()
    steps: tuple[tuple[str, Step], ...] = (
        ("semantic matching", compare_semantic_structure),
        ("nested templates", check_nested_templates),
        ("timescale sweep", sweep_timescales),
        ("dynamic MPD", check_dynamic_features),
        ("cumulative drift", detect_cumulative_drift),
        ("root tolerances", compare_root_tolerances),
        ("timeline drift", check_timeline_drift),
        ("segment availability", check_segment_availability),
        ("uncovered attributes", detect_uncovered_attributes),
    )

    differences: list[Difference] = []
    for name, step in steps:
        try:
            differences.extend(step(source_root, ssai_root, config))
        except Exception:
            logger.exception("Structural comparison step failed", extra={"step": name})
    return differences


# =============================================================================
# 1. Semantic matching
# =============================================================================


def compare_semantic_structure(source_root: RawNode, ssai_root: RawNode, config: AnalysisConfig) -> list[Difference]:
    """Report source periods and adaptation sets without a semantic match."""
    differences = []
    ssai_periods = ssai_root.all("Period")

    for index, source_period in enumerate(source_root.all("Period")):
        location = period_location(source_period, index)
        ssai_period = find_matching_period(source_period, ssai_periods, config.period_start_tolerance)
        if ssai_period is None:
            differences.append(
                difference(
                    "PERIOD_MISSING",
                    location,
                    Severity.VERY_HIGH,
                    f"Period {location} missing in SSAI manifest",
                    attribute="Period",
                    source_value="Present",
                    ssai_value="Missing",
                    solution="Add missing period to SSAI manifest or verify if removal is intentional for ad insertion",
                )
            )
            continue

        for match in match_adaptation_sets(source_period.all("AdaptationSet"), ssai_period.all("AdaptationSet")):
            if match.ssai is None:
                differences.append(
                    difference(
                        "ADAPTATION_SET_MISSING",
                        adaptation_set_location(location, match.key),
                        Severity.VERY_HIGH,
                        f'AdaptationSet "{match.key}" missing in period "{location}"',
                        attribute="AdaptationSet",
                        source_value="Present",
                        ssai_value="Missing",
                        solution="Add missing adaptation set to SSAI manifest",
                    )
                )

    return differences


# =============================================================================
# 2. Nested SegmentTemplates
# =============================================================================


def compare_template_pair(source: RawNode, ssai: RawNode, location: str) -> list[Difference]:
    """Timescale, then S count and per-S duration.

    Durations are not compared once the timescales differ.
    """
    source_scale = source.get("timescale") or 1
    ssai_scale = ssai.get("timescale") or 1
    if source_scale != ssai_scale:
        return [_timescale_mismatch(location, source_scale, ssai_scale)]

    source_entries = timeline_entries(source)
    ssai_entries = timeline_entries(ssai)
    if not source_entries or not ssai_entries:
        return []

    differences = []
    if len(source_entries) != len(ssai_entries):
        differences.append(
            difference(
                "TIMELINE_SEGMENT_COUNT",
                location,
                Severity.HIGH,
                f"Timeline S element count mismatch in {location}",
                attribute="SegmentTimeline.S",
                source_value=len(source_entries),
                ssai_value=len(ssai_entries),
                solution="Ensure segment timeline has matching number of S elements",
            )
        )

    for index, (source_s, ssai_s) in enumerate(zip(source_entries, ssai_entries)):
        source_duration = (source_s.get("d") or 0) / source_scale
        ssai_duration = (ssai_s.get("d") or 0) / ssai_scale
        repeat_changed = source_s.get("r", 0) != ssai_s.get("r", 0)
        if repeat_changed or abs(source_duration - ssai_duration) > MAX_SEGMENT_DURATION_TOLERANCE:
            differences.append(
                difference(
                    "TIMELINE_ENTRY_MISMATCH",
                    location,
                    Severity.HIGH,
                    f"Timeline entry {index} differs in {location}",
                    attribute=f"S[{index}]",
                    source_value=f"d={source_duration:.3f}s r={source_s.get('r', 0)}",
                    ssai_value=f"d={ssai_duration:.3f}s r={ssai_s.get('r', 0)}",
                    solution="Adjust segment duration and repeat count to match source timeline",
                )
            )
    return differences


def check_nested_templates(source_root: RawNode, ssai_root: RawNode, config: AnalysisConfig) -> list[Difference]:
    """Compare templates declared on matched adaptation sets and representations."""
    differences = []

    for pair in matched_adaptation_sets(source_root, ssai_root, config):
        source_template = pair.source.first("SegmentTemplate")
        ssai_template = pair.ssai.first("SegmentTemplate")
        if source_template is not None and ssai_template is not None:
            differences.extend(compare_template_pair(source_template, ssai_template, pair.location))

        reps = match_representations(
            pair.source.all("Representation"), pair.ssai.all("Representation"), config.bandwidth_tolerance
        )
        for match in reps:
            if match.ssai is None:
                continue
            source_template = match.source.first("SegmentTemplate")
            ssai_template = match.ssai.first("SegmentTemplate")
            if source_template is not None and ssai_template is not None:
                location = representation_location(pair.location, match.source, match.index)
                differences.extend(compare_template_pair(source_template, ssai_template, location))

    return differences


# =============================================================================
# 3. Timescale sweep
# =============================================================================


def _declared_timescale(representation: RawNode, adaptation_set: RawNode) -> tuple[str, int | float] | None:
    """Innermost timescale in effect for a representation and where it is declared."""
    for level, node in (("representation", representation), ("adaptation_set", adaptation_set)):
        for tag in ("SegmentTemplate", "SegmentBase"):
            element = node.first(tag)
            if element is not None:
                return level, element.get("timescale") or 1
    return None


def sweep_timescales(source_root: RawNode, ssai_root: RawNode, config: AnalysisConfig) -> list[Difference]:
    """Compare the effective timescale of every matched representation pair.

    Catches timescales declared at different levels on each side, which the
    level-by-level template comparison does not pair up.
    """
    differences = []
    reported: set[str] = set()

    for pair in matched_adaptation_sets(source_root, ssai_root, config):
        reps = match_representations(
            pair.source.all("Representation"), pair.ssai.all("Representation"), config.bandwidth_tolerance
        )
        for match in reps:
            if match.ssai is None:
                continue
            source_declared = _declared_timescale(match.source, pair.source)
            ssai_declared = _declared_timescale(match.ssai, pair.ssai)
            if source_declared is None or ssai_declared is None:
                continue

            level, source_scale = source_declared
            ssai_scale = ssai_declared[1]
            if source_scale == ssai_scale:
                continue

            location = pair.location
            if level == "representation":
                location = representation_location(pair.location, match.source, match.index)
            if location not in reported:
                reported.add(location)
                differences.append(_timescale_mismatch(location, source_scale, ssai_scale))

    return differences


def _timescale_mismatch(location: str, source_scale: Any, ssai_scale: Any) -> Difference:
    return difference(
        "TIMESCALE_MISMATCH",
        location,
        Severity.VERY_HIGH,
        "Timescale mismatch",
        attribute="timescale",
        source_value=str(source_scale),
        ssai_value=str(ssai_scale),
        solution="Ensure timescale values match between source and SSAI manifests",
    )


# =============================================================================
# 4. Dynamic MPD
# =============================================================================


def check_dynamic_features(source_root: RawNode, ssai_root: RawNode, config: AnalysisConfig) -> list[Difference]:
    """Live attributes and clock source of dynamic presentations."""
    if DYNAMIC not in (source_root.get("type"), ssai_root.get("type")):
        return []

    differences = []
    for attribute in LIVE_ATTRIBUTES:
        if source_root.get(attribute) and not ssai_root.get(attribute):
            differences.append(
                difference(
                    "LIVE_ATTRIBUTE_MISSING",
                    "MPD",
                    Severity.VERY_HIGH,
                    f"Missing live streaming attribute: {attribute}",
                    attribute=attribute,
                    source_value=source_root.get(attribute),
                    ssai_value="Missing",
                    solution=f"Add {attribute} to SSAI manifest for proper live streaming support",
                )
            )

    if source_root.get("type") == DYNAMIC and ssai_root.first("UTCTiming") is None:
        differences.append(
            difference(
                "UTC_TIMING_MISSING",
                "MPD",
                Severity.VERY_HIGH,
                "UTCTiming missing for dynamic MPD - required for live streaming",
                attribute="UTCTiming",
                source_value="Present",
                ssai_value="Missing",
                solution="Add UTCTiming element for clock synchronization in live streams",
            )
        )

    return differences


# =============================================================================
# 5. Cumulative drift
# =============================================================================


def ssai_content_timeline(ssai_root: RawNode) -> list[tuple[TimelineEntry, float]]:
    """SSAI content periods with their start moved back by the ad time before them."""
    content = []
    ad_time = 0.0
    for entry in build_timeline(ssai_root.all("Period")):
        if is_ad_period(entry.period):
            ad_time += entry.duration or 0.0
        else:
            content.append((entry, entry.start - ad_time))
    return content


def detect_cumulative_drift(source_root: RawNode, ssai_root: RawNode, config: AnalysisConfig) -> list[Difference]:
    """Walk content periods in lockstep summing absolute start divergence.

    Time taken by SSAI ad periods is removed from the SSAI timeline before
    comparing. Reports only the first period at which the running sum
    exceeds the threshold.
    """
    source_timeline = build_timeline(source_root.all("Period"))
    ssai_content = ssai_content_timeline(ssai_root)

    cumulative = 0.0
    for index, (source_entry, (ssai_entry, ssai_start)) in enumerate(zip(source_timeline, ssai_content)):
        cumulative += abs(source_entry.start - ssai_start)
        if cumulative > config.cumulative_drift_threshold:
            return [
                difference(
                    "CUMULATIVE_DRIFT",
                    "Timeline",
                    Severity.HIGH,
                    f"Cumulative timing drift of {cumulative:.3f}s detected at period {index}",
                    attribute="start",
                    source_value=f"{source_entry.start:.3f}s",
                    ssai_value=f"{ssai_start:.3f}s",
                    solution="Review timing alignment across all periods to prevent cumulative drift",
                    impact=f"First offending period: {ssai_entry.id or index}",
                )
            ]
    return []


# =============================================================================
# 6. Root attribute tolerances
# =============================================================================


def compare_root_tolerances(source_root: RawNode, ssai_root: RawNode, config: AnalysisConfig) -> list[Difference]:
    """Tolerance checks on root attributes that ad insertion may legitimately change."""
    differences = []
    is_live = DYNAMIC in (source_root.get("type"), ssai_root.get("type"))

    source_duration = duration_seconds(source_root.get("mediaPresentationDuration"))
    ssai_duration = duration_seconds(ssai_root.get("mediaPresentationDuration"))
    if not is_live and source_duration and ssai_duration and ssai_duration > source_duration * MAX_DURATION_INCREASE:
        increase = (ssai_duration - source_duration) / source_duration * 100
        differences.append(
            difference(
                "EXCESSIVE_DURATION_INCREASE",
                "MPD",
                Severity.HIGH,
                "SSAI duration increase exceeds reasonable ad insertion limits",
                attribute="mediaPresentationDuration",
                source_value=f"{source_duration:.2f}s",
                ssai_value=f"{ssai_duration:.2f}s",
                solution=f"Verify ad insertion - duration increased by {increase:.1f}% which exceeds expected range",
            )
        )

    source_max = duration_seconds(source_root.get("maxSegmentDuration"))
    ssai_max = duration_seconds(ssai_root.get("maxSegmentDuration"))
    if source_max is not None and ssai_max is not None and abs(source_max - ssai_max) > MAX_SEGMENT_DURATION_TOLERANCE:
        differences.append(
            difference(
                "ATTRIBUTE_TOLERANCE_EXCEEDED",
                "MPD",
                Severity.MEDIUM,
                f"maxSegmentDuration difference ({abs(source_max - ssai_max):.3f}s) exceeds tolerance",
                attribute="maxSegmentDuration",
                source_value=f"{source_max:.3f}s",
                ssai_value=f"{ssai_max:.3f}s",
                solution="Align maxSegmentDuration with the longest segment of the source manifest",
            )
        )

    if is_live:
        differences.extend(_compare_live_tolerances(source_root, ssai_root))

    return differences


def _compare_live_tolerances(source_root: RawNode, ssai_root: RawNode) -> list[Difference]:
    differences = []

    source_update = duration_seconds(source_root.get("minimumUpdatePeriod"))
    ssai_update = duration_seconds(ssai_root.get("minimumUpdatePeriod"))
    if source_update and ssai_update is not None:
        variation = abs(source_update - ssai_update)
        if variation > source_update * UPDATE_PERIOD_VARIATION:
            differences.append(
                difference(
                    "ATTRIBUTE_TOLERANCE_EXCEEDED",
                    "MPD",
                    Severity.MEDIUM,
                    f"minimumUpdatePeriod difference ({variation:.3f}s) exceeds live tolerance",
                    attribute="minimumUpdatePeriod",
                    source_value=f"{source_update:.3f}s",
                    ssai_value=f"{ssai_update:.3f}s",
                    solution="Keep minimumUpdatePeriod close to the source refresh interval",
                )
            )

    ssai_start = ssai_root.get("availabilityStartTime")
    if source_root.get("availabilityStartTime") and ssai_start and parse_datetime(ssai_start) is None:
        differences.append(
            difference(
                "INVALID_TIMESTAMP",
                "MPD",
                Severity.HIGH,
                "Invalid timestamp format in availabilityStartTime",
                attribute="availabilityStartTime",
                source_value=source_root.get("availabilityStartTime"),
                ssai_value=ssai_start,
                solution="Fix timestamp format - should be valid ISO 8601 datetime",
            )
        )

    return differences


# =============================================================================
# 7. Timeline drift
# =============================================================================


def _drift_severity(drift: float) -> Severity:
    return Severity.HIGH if drift > TIMELINE_DRIFT_HIGH else Severity.MEDIUM


def check_timeline_drift(source_root: RawNode, ssai_root: RawNode, config: AnalysisConfig) -> list[Difference]:
    """Compare start and duration of each content period, then the content total.

    Source periods are paired in order with SSAI content periods, using the
    same ad-adjusted SSAI starts as the cumulative drift step. The total is
    only compared when every paired period declares a duration.
    """
    differences = []
    source_timeline = build_timeline(source_root.all("Period"))
    ssai_content = ssai_content_timeline(ssai_root)

    for index, (source_entry, (ssai_entry, ssai_start)) in enumerate(zip(source_timeline, ssai_content)):
        location = period_location(source_entry.period, index)

        start_drift = abs(source_entry.start - ssai_start)
        if start_drift > TIMELINE_DRIFT_TOLERANCE:
            differences.append(
                difference(
                    "TIMELINE_START_DRIFT",
                    location,
                    _drift_severity(start_drift),
                    f"Period start time drift: {start_drift:.3f}s",
                    attribute="start",
                    source_value=f"{source_entry.start:.3f}s",
                    ssai_value=f"{ssai_start:.3f}s",
                    solution="Align period start times to prevent timeline drift",
                )
            )

        if source_entry.duration is None or ssai_entry.duration is None:
            continue
        duration_drift = abs(source_entry.duration - ssai_entry.duration)
        if duration_drift > TIMELINE_DRIFT_TOLERANCE:
            differences.append(
                difference(
                    "TIMELINE_DURATION_DRIFT",
                    location,
                    _drift_severity(duration_drift),
                    f"Period duration drift: {duration_drift:.3f}s",
                    attribute="duration",
                    source_value=f"{source_entry.duration:.3f}s",
                    ssai_value=f"{ssai_entry.duration:.3f}s",
                    solution="Verify period duration consistency for content periods",
                )
            )

    source_durations = [entry.duration for entry in source_timeline]
    ssai_durations = [entry.duration for entry, _ in ssai_content]
    if not source_durations or not ssai_durations or None in source_durations + ssai_durations:
        return differences

    source_total = sum(source_durations)
    ssai_total = sum(ssai_durations)
    total_drift = abs(source_total - ssai_total)
    if total_drift > TOTAL_DRIFT_TOLERANCE:
        differences.append(
            difference(
                "CUMULATIVE_TIMELINE_DRIFT",
                "Timeline",
                Severity.VERY_HIGH if total_drift > TOTAL_DRIFT_VERY_HIGH else Severity.HIGH,
                f"Total timeline drift: {total_drift:.3f}s",
                attribute="total_duration",
                source_value=f"{source_total:.3f}s",
                ssai_value=f"{ssai_total:.3f}s",
                solution="Review overall timeline alignment - significant cumulative drift detected",
            )
        )

    return differences


# =============================================================================
# 8. Segment availability
# =============================================================================


def check_segment_availability(source_root: RawNode, ssai_root: RawNode, config: AnalysisConfig) -> list[Difference]:
    """A live SSAI time-shift window must keep the source's segments available."""
    if source_root.get("type") != DYNAMIC:
        return []

    source_depth = duration_seconds(source_root.get("timeShiftBufferDepth"))
    ssai_depth = duration_seconds(ssai_root.get("timeShiftBufferDepth"))
    if not source_depth or ssai_depth is None:
        return []
    if ssai_depth >= source_depth * (1 - config.time_shift_buffer_reduction):
        return []

    return [
        difference(
            "TIMESHIFT_BUFFER_REDUCED",
            "MPD",
            Severity.HIGH,
            "TimeShift buffer significantly reduced in SSAI manifest",
            attribute="timeShiftBufferDepth",
            source_value=f"{source_depth:.3f}s",
            ssai_value=f"{ssai_depth:.3f}s",
            solution="Increase timeShiftBufferDepth in SSAI manifest to match source",
            impact="Players lose access to segments at the start of the DVR window",
        )
    ]


# =============================================================================
# 9. Coverage
# =============================================================================

COVERED_ATTRIBUTES = frozenset(
    {
        # MPD
        "type",
        "mediaPresentationDuration",
        "minBufferTime",
        "profiles",
        "availabilityStartTime",
        "publishTime",
        "minimumUpdatePeriod",
        "timeShiftBufferDepth",
        "suggestedPresentationDelay",
        "maxSegmentDuration",
        "schemaLocation",
        # Period, AdaptationSet, Representation
        "id",
        "start",
        "duration",
        "contentType",
        "mimeType",
        "codecs",
        "lang",
        "label",
        "segmentAlignment",
        "bandwidth",
        "width",
        "height",
        "frameRate",
        "sar",
        "audioSamplingRate",
        # Segment addressing
        "timescale",
        "startNumber",
        "initialization",
        "media",
        "presentationTimeOffset",
        "t",
        "d",
        "r",
        # Descriptors and events
        "schemeIdUri",
        "value",
        "default_KID",
        "presentationTime",
        "target",
        "min",
        "max",
    }
)

COVERED_ELEMENTS = frozenset(
    {
        "Period",
        "AdaptationSet",
        "Representation",
        "SegmentTemplate",
        "SegmentTimeline",
        "S",
        "SegmentBase",
        "SegmentList",
        "BaseURL",
        "ContentProtection",
        "pssh",
        "Role",
        "Accessibility",
        "Label",
        "AudioChannelConfiguration",
        "Location",
        "PatchLocation",
        "UTCTiming",
        "ServiceDescription",
        "Latency",
        "PlaybackRate",
        "EssentialProperty",
        "SupplementalProperty",
        "AssetIdentifier",
        "EventStream",
        "Event",
        "InbandEventStream",
    }
)


def _uncovered_names(node: RawNode, found: dict[tuple[str, str], Any]) -> dict[tuple[str, str], Any]:
    """Collect (element, name) pairs no check reads, in document order.

    Children of an uncovered element are not visited; the element itself
    is the finding.
    """
    for name, value in node.attributes.items():
        if name not in COVERED_ATTRIBUTES:
            found.setdefault((node.tag, name), value)
    for tag, children in node.children.items():
        if tag not in COVERED_ELEMENTS:
            found.setdefault((node.tag, tag), children[0].text)
            continue
        for child in children:
            _uncovered_names(child, found)
    return found


def detect_uncovered_attributes(source_root: RawNode, ssai_root: RawNode, config: AnalysisConfig) -> list[Difference]:
    """Report attributes and child elements that no validation step compares.

    Reported once per element and name, as INFO: names in the source as
    UNCOVERED_ATTRIBUTE, names only the SSAI manifest carries as
    NEW_SSAI_ATTRIBUTE.
    """
    source_names = _uncovered_names(source_root, {})
    ssai_names = _uncovered_names(ssai_root, {})
    differences = []

    for (tag, name), value in source_names.items():
        differences.append(
            difference(
                "UNCOVERED_ATTRIBUTE",
                tag,
                Severity.INFO,
                f'Attribute "{name}" not covered in validation schema',
                attribute=name,
                source_value=value,
                ssai_value=ssai_names.get((tag, name)),
                solution="Review this attribute - it may not be covered in current validation logic",
            )
        )

    for (tag, name), value in ssai_names.items():
        if (tag, name) in source_names:
            continue
        differences.append(
            difference(
                "NEW_SSAI_ATTRIBUTE",
                tag,
                Severity.INFO,
                f'New attribute "{name}" found in SSAI manifest',
                attribute=name,
                ssai_value=value,
                solution="Review this new SSAI attribute - it may need validation coverage",
            )
        )

    if differences:
        logger.debug("Uncovered manifest names", extra={"count": len(differences)})
    return differences
