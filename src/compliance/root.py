"""MPD root checks: presentation type, live-service attributes and refresh.

Each public function compares the source and SSAI MPD roots and returns a
list of findings. Attribute rules are evaluated independently so a broken
attribute only affects its own rule.
"""

from typing import Callable, NamedTuple

from aws_lambda_powertools import Logger

from ..mpd_parser.durations import parse_datetime, parse_duration
from ..mpd_parser.xml_parser import RawNode
from ..shared.models import AnalysisConfig, Finding, Severity
from .common import is_valid_url
from .descriptors import ESSENTIAL, SUPPLEMENTAL, compare_descriptors

logger = Logger(service="ssai-manifest-validator", child=True)

DYNAMIC = "dynamic"
STATIC = "static"

VALID_UTC_SCHEMES = (
    "urn:mpeg:dash:utc:http-xsdate:2014",
    "urn:mpeg:dash:utc:http-iso:2014",
    "urn:mpeg:dash:utc:http-head:2014",
    "urn:mpeg:dash:utc:ntp:2014",
    "urn:mpeg:dash:utc:direct:2014",
)

# Allowed minBufferTime reduction (seconds)
LIVE_BUFFER_TOLERANCE = 0.1
VOD_BUFFER_TOLERANCE = 0.05

# Allowed mediaPresentationDuration shortfall (seconds, and relative for live)
DURATION_TOLERANCE = 0.1
LIVE_DURATION_RATIO_TOLERANCE = 0.05

# Recommended timeShiftBufferDepth as a multiple of minimumUpdatePeriod
BUFFER_TIME_MULTIPLIER = 1.5

# Duration increase above which the ad load is reported
HIGH_AD_RATIO = 0.5

LATENCY_TARGET_INCREASE = 1.5


def _duration(node: RawNode, attribute: str, errors: list[Finding]) -> float | None:
    result = parse_duration(node.get(attribute), "MPD", attribute)
    if result.error is not None:
        errors.append(result.error)
    return result.value


# =============================================================================
# Root attribute rules
# =============================================================================


class RootRule(NamedTuple):
    """A root attribute rule; ``predicate`` returns True when compliant."""

    attribute: str
    severity: Severity
    message: str
    predicate: Callable[[RawNode, RawNode, AnalysisConfig, list[Finding]], bool]
    missing: str = "Missing"


def _presentation_duration_ok(source: RawNode, ssai: RawNode, config: AnalysisConfig, errors: list[Finding]) -> bool:
    if not source.get("mediaPresentationDuration"):
        return True
    source_value = _duration(source, "mediaPresentationDuration", errors)
    ssai_value = _duration(ssai, "mediaPresentationDuration", errors)
    if source_value is None or ssai_value is None:
        return True

    shortfall = source_value - ssai_value
    if shortfall <= 0:
        return True
    if source.get("type") == DYNAMIC:
        return shortfall <= max(source_value * LIVE_DURATION_RATIO_TOLERANCE, DURATION_TOLERANCE)
    return shortfall <= DURATION_TOLERANCE


def _profiles_ok(source: RawNode, ssai: RawNode, config: AnalysisConfig, errors: list[Finding]) -> bool:
    if not source.get("profiles") or not ssai.get("profiles"):
        return True
    source_profiles = [p.strip() for p in str(source.get("profiles")).split(",")]
    ssai_profiles = [p.strip() for p in str(ssai.get("profiles")).split(",")]
    return all(p in ssai_profiles for p in source_profiles)


def _availability_start_ok(source: RawNode, ssai: RawNode, config: AnalysisConfig, errors: list[Finding]) -> bool:
    if source.get("type") != DYNAMIC or not source.get("availabilityStartTime"):
        return True
    source_time = parse_datetime(source.get("availabilityStartTime"))
    ssai_time = parse_datetime(ssai.get("availabilityStartTime"))
    if source_time is None:
        return True
    if ssai_time is None:
        return False
    return abs(ssai_time - source_time) <= config.availability_start_tolerance


def _min_buffer_time_ok(source: RawNode, ssai: RawNode, config: AnalysisConfig, errors: list[Finding]) -> bool:
    source_value = _duration(source, "minBufferTime", errors)
    ssai_value = _duration(ssai, "minBufferTime", errors)
    if source_value is None or ssai_value is None or ssai_value >= source_value:
        return True
    tolerance = LIVE_BUFFER_TOLERANCE if source.get("type") == DYNAMIC else VOD_BUFFER_TOLERANCE
    return source_value - ssai_value <= tolerance


def _publish_time_ok(source: RawNode, ssai: RawNode, config: AnalysisConfig, errors: list[Finding]) -> bool:
    source_time = parse_datetime(source.get("publishTime"))
    if source_time is None:
        return True
    ssai_time = parse_datetime(ssai.get("publishTime"))
    return ssai_time is not None and ssai_time >= source_time


def _time_shift_buffer_ok(source: RawNode, ssai: RawNode, config: AnalysisConfig, errors: list[Finding]) -> bool:
    if not source.get("timeShiftBufferDepth"):
        return True
    source_value = _duration(source, "timeShiftBufferDepth", errors)
    ssai_value = _duration(ssai, "timeShiftBufferDepth", errors)
    if source_value is None or ssai_value is None:
        return True
    return ssai_value >= source_value * (1 - config.time_shift_buffer_reduction)


def _presentation_delay_ok(source: RawNode, ssai: RawNode, config: AnalysisConfig, errors: list[Finding]) -> bool:
    if not source.get("suggestedPresentationDelay"):
        return True
    return source.get("type") != DYNAMIC or bool(ssai.get("suggestedPresentationDelay"))


ROOT_RULES = (
    RootRule(
        "mediaPresentationDuration",
        Severity.VERY_HIGH,
        "SSAI duration cannot be shorter than source",
        _presentation_duration_ok,
    ),
    RootRule("profiles", Severity.HIGH, "SSAI must support all source profiles", _profiles_ok),
    RootRule(
        "availabilityStartTime",
        Severity.VERY_HIGH,
        "availabilityStartTime mismatch exceeds tolerance",
        _availability_start_ok,
    ),
    RootRule(
        "minBufferTime",
        Severity.HIGH,
        "SSAI minBufferTime should not be less than source",
        _min_buffer_time_ok,
    ),
    RootRule("publishTime", Severity.MEDIUM, "SSAI publishTime should be >= source", _publish_time_ok),
    RootRule(
        "timeShiftBufferDepth",
        Severity.HIGH,
        "timeShiftBufferDepth significantly reduced",
        _time_shift_buffer_ok,
        missing="Missing/Reduced",
    ),
    RootRule(
        "suggestedPresentationDelay",
        Severity.MEDIUM,
        "suggestedPresentationDelay missing for live stream",
        _presentation_delay_ok,
    ),
)


def check_root_attributes(source: RawNode, ssai: RawNode, config: AnalysisConfig) -> list[Finding]:
    """Evaluate the root attribute rules.

    Unparsable durations met along the way are appended as their own
    findings after the rule results.
    """
    findings = []
    parse_errors: list[Finding] = []

    for rule in ROOT_RULES:
        try:
            passed = rule.predicate(source, ssai, config, parse_errors)
        except Exception as e:
            logger.exception("Root rule failed", extra={"rule": rule.attribute})
            findings.append(
                Finding(
                    kind="CHECK_FAILED",
                    severity=Severity.HIGH,
                    message=f"Validation error for {rule.attribute}: {e}",
                    attribute=rule.attribute,
                    expected="Valid value",
                    actual="Error during validation",
                )
            )
            continue

        if not passed:
            findings.append(
                Finding(
                    kind="ROOT_ATTRIBUTE_MISMATCH",
                    severity=rule.severity,
                    message=rule.message,
                    attribute=rule.attribute,
                    expected=source.get(rule.attribute) or "Present",
                    actual=ssai.get(rule.attribute) or rule.missing,
                )
            )

    return findings + parse_errors


# =============================================================================
# Presentation type
# =============================================================================


def check_type_compatibility(source: RawNode, ssai: RawNode) -> list[Finding]:
    """Type must match; each type must carry its own attribute set."""
    findings = []
    source_type = source.get("type")
    ssai_type = ssai.get("type")

    if not source_type and not ssai_type:
        findings.append(
            Finding(
                kind="TYPE_MISSING",
                severity=Severity.MEDIUM,
                message="MPD type not specified, assuming static",
                attribute="type",
                expected="static or dynamic",
                actual="Missing",
            )
        )
    elif not ssai_type:
        findings.append(
            Finding(
                kind="TYPE_MISSING",
                severity=Severity.VERY_HIGH,
                message="SSAI MPD missing type attribute",
                attribute="type",
                expected=source_type or STATIC,
                actual="Missing",
            )
        )
    elif (source_type or STATIC) != ssai_type:
        findings.append(
            Finding(
                kind="TYPE_MISMATCH",
                severity=Severity.VERY_HIGH,
                message="MPD type mismatch (static/dynamic)",
                attribute="type",
                expected=source_type or STATIC,
                actual=ssai_type,
            )
        )

    if ssai_type == DYNAMIC:
        required = ("availabilityStartTime", "minimumUpdatePeriod")
        missing = [a for a in required if not ssai.get(a)]
        if missing:
            findings.append(
                Finding(
                    kind="LIVE_ATTRIBUTES_MISSING",
                    severity=Severity.VERY_HIGH,
                    message=f"Dynamic MPD missing required live attributes: {', '.join(missing)}",
                    attribute="liveAttributes",
                    expected=", ".join(required),
                    actual=f"Missing: {', '.join(missing)}",
                )
            )
        if ssai.get("mediaPresentationDuration"):
            findings.append(
                Finding(
                    kind="DYNAMIC_HAS_DURATION",
                    severity=Severity.INFO,
                    message="Dynamic MPD has mediaPresentationDuration - may indicate finite live stream",
                    attribute="mediaPresentationDuration",
                    expected="Optional for dynamic",
                    actual=ssai.get("mediaPresentationDuration"),
                )
            )
    else:
        live_only = ("availabilityStartTime", "minimumUpdatePeriod", "timeShiftBufferDepth")
        present = [a for a in live_only if ssai.get(a)]
        if present:
            findings.append(
                Finding(
                    kind="STATIC_HAS_LIVE_ATTRIBUTES",
                    severity=Severity.MEDIUM,
                    message=f"Static MPD has live-only attributes: {', '.join(present)}",
                    attribute="staticIncompatibility",
                    expected="No live attributes",
                    actual=f"Present: {', '.join(present)}",
                )
            )
        if not ssai.get("mediaPresentationDuration"):
            findings.append(
                Finding(
                    kind="DURATION_MISSING",
                    severity=Severity.HIGH,
                    message="Static MPD missing required mediaPresentationDuration",
                    attribute="mediaPresentationDuration",
                    expected="Present",
                    actual="Missing",
                )
            )

    return findings


# =============================================================================
# Live nodes and refresh
# =============================================================================


def _element_texts(node: RawNode, tag: str) -> list[str]:
    return [child.text or "" for child in node.all(tag)]


def check_live_nodes(source: RawNode, ssai: RawNode) -> list[Finding]:
    """Location, PatchLocation, MPD-level descriptors and ad load."""
    findings = []
    is_live = DYNAMIC in (source.get("type"), ssai.get("type"))

    if is_live and source.all("Location") and not ssai.all("Location"):
        findings.append(
            Finding(
                kind="LOCATION_REMOVED",
                severity=Severity.MEDIUM,
                message="Location elements removed in SSAI manifest",
                attribute="Location",
                expected="Present",
                actual="Missing",
                impact="Manifest update mechanism may be affected",
            )
        )

    if source.all("PatchLocation") and not ssai.all("PatchLocation"):
        findings.append(
            Finding(
                kind="PATCH_LOCATION_REMOVED",
                severity=Severity.MEDIUM,
                message="PatchLocation elements removed in SSAI manifest",
                attribute="PatchLocation",
                expected="Present",
                actual="Missing",
                impact="Efficient manifest patching not available",
            )
        )

    findings.extend(compare_descriptors(source, ssai, ESSENTIAL, "MPD", scope="MPD "))
    findings.extend(compare_descriptors(source, ssai, SUPPLEMENTAL, "MPD", scope="MPD "))

    source_duration = parse_duration(source.get("mediaPresentationDuration")).value
    ssai_duration = parse_duration(ssai.get("mediaPresentationDuration")).value
    if source_duration and ssai_duration:
        increase = ssai_duration - source_duration
        ratio = increase / source_duration
        if ratio > HIGH_AD_RATIO:
            findings.append(
                Finding(
                    kind="HIGH_AD_RATIO",
                    severity=Severity.MEDIUM,
                    message=f"High ad insertion ratio: {ratio * 100:.1f}%",
                    attribute="mediaPresentationDuration",
                    expected=f"<= {HIGH_AD_RATIO * 100:.0f}% increase",
                    actual=f"{increase:.2f}s added",
                    impact="Verify if ad load is intentional",
                )
            )

    return findings


def check_buffer_relationships(source: RawNode, ssai: RawNode) -> list[Finding]:
    """suggestedPresentationDelay vs minBufferTime, and TSBD vs update period."""
    findings = []

    for node, severity, side in ((source, Severity.MEDIUM, "Source"), (ssai, Severity.HIGH, "SSAI")):
        buffer = parse_duration(node.get("minBufferTime")).value
        delay = parse_duration(node.get("suggestedPresentationDelay")).value
        if buffer and delay and delay < buffer:
            findings.append(
                Finding(
                    kind="PRESENTATION_DELAY_BELOW_BUFFER",
                    severity=severity,
                    message=f"{side} suggestedPresentationDelay is less than minBufferTime",
                    location="MPD" if side == "SSAI" else "MPD(source)",
                    attribute="bufferTimeRelationship",
                    expected=f">= {buffer:g}s",
                    actual=f"{delay:g}s",
                )
            )

    if source.get("type") == DYNAMIC:
        depth = parse_duration(ssai.get("timeShiftBufferDepth")).value
        update_period = parse_duration(ssai.get("minimumUpdatePeriod")).value
        if depth and update_period and depth < update_period * BUFFER_TIME_MULTIPLIER:
            findings.append(
                Finding(
                    kind="TIME_SHIFT_BUFFER_HEURISTIC",
                    severity=Severity.LOW,
                    message=f"timeShiftBufferDepth < {BUFFER_TIME_MULTIPLIER:g}x minimumUpdatePeriod",
                    attribute="liveTimingHeuristic",
                    expected=f">= {update_period * BUFFER_TIME_MULTIPLIER:.1f}s",
                    actual=f"{depth:g}s",
                    impact="Recommended practice, not a schema requirement",
                )
            )

    return findings


def check_utc_timing(source: RawNode, ssai: RawNode) -> list[Finding]:
    """Live streams need a clock source with a recognised scheme."""
    if source.get("type") != DYNAMIC:
        return []

    findings = []
    source_utc = source.first("UTCTiming")
    ssai_utc = ssai.first("UTCTiming")

    if source_utc is None:
        findings.append(
            Finding(
                kind="UTC_TIMING_MISSING",
                severity=Severity.HIGH,
                message="Source MPD missing UTCTiming for live stream",
                location="MPD(source)",
                attribute="UTCTiming",
                expected="Present",
                actual="Missing",
                impact="May cause clock sync issues",
            )
        )

    if ssai_utc is None:
        expected = (
            f"{source_utc.get('schemeIdUri')} ({source_utc.get('value')})" if source_utc is not None else "Present"
        )
        findings.append(
            Finding(
                kind="UTC_TIMING_MISSING",
                severity=Severity.VERY_HIGH,
                message="SSAI MPD missing UTCTiming - clock sync impossible",
                attribute="UTCTiming",
                expected=expected,
                actual="Missing",
                impact="Will cause ad boundary errors and segment misalignment",
            )
        )
        return findings

    scheme = ssai_utc.get("schemeIdUri")
    if scheme not in VALID_UTC_SCHEMES:
        findings.append(
            Finding(
                kind="UTC_TIMING_INVALID_SCHEME",
                severity=Severity.HIGH,
                message=f"Invalid UTCTiming scheme: {scheme}",
                attribute="UTCTiming.schemeIdUri",
                expected="Valid scheme (e.g., urn:mpeg:dash:utc:http-xsdate:2014)",
                actual=scheme or "Missing",
            )
        )
    if not ssai_utc.get("value"):
        findings.append(
            Finding(
                kind="UTC_TIMING_VALUE_MISSING",
                severity=Severity.VERY_HIGH,
                message="UTCTiming missing value (time source URL)",
                attribute="UTCTiming.value",
                expected="Time source URL",
                actual="Missing",
            )
        )

    return findings


def check_manifest_refresh(ssai: RawNode) -> list[Finding]:
    """A dynamic SSAI manifest needs a way to be refreshed."""
    if ssai.get("type") != DYNAMIC:
        return []

    findings = []
    locations = _element_texts(ssai, "Location")
    patch_locations = _element_texts(ssai, "PatchLocation")

    if not locations and not patch_locations and not ssai.get("minimumUpdatePeriod"):
        findings.append(
            Finding(
                kind="REFRESH_MECHANISM_MISSING",
                severity=Severity.VERY_HIGH,
                message="No manifest refresh mechanism (Location/PatchLocation/minimumUpdatePeriod)",
                attribute="refreshMechanism",
                expected="Location, PatchLocation, or minimumUpdatePeriod",
                actual="Missing",
                impact="Live playback will stall",
            )
        )

    for index, url in enumerate(locations):
        if not is_valid_url(url):
            findings.append(
                Finding(
                    kind="INVALID_LOCATION_URL",
                    severity=Severity.HIGH,
                    message=f"Invalid Location URL at index {index}: {url}",
                    attribute=f"Location[{index}]",
                    expected="Valid URL",
                    actual=url,
                )
            )
    for index, url in enumerate(patch_locations):
        if not is_valid_url(url):
            findings.append(
                Finding(
                    kind="INVALID_LOCATION_URL",
                    severity=Severity.MEDIUM,
                    message=f"Invalid PatchLocation URL at index {index}: {url}",
                    attribute=f"PatchLocation[{index}]",
                    expected="Valid URL",
                    actual=url,
                )
            )

    return findings


def check_service_description(source: RawNode, ssai: RawNode) -> list[Finding]:
    """Latency targets and playback-rate bounds must not be loosened."""
    source_service = source.first("ServiceDescription")
    if source_service is None:
        return []

    ssai_service = ssai.first("ServiceDescription")
    if ssai_service is None:
        return [
            Finding(
                kind="SERVICE_DESCRIPTION_REMOVED",
                severity=Severity.MEDIUM,
                message="ServiceDescription removed by SSAI",
                attribute="ServiceDescription",
                expected="Present",
                actual="Missing",
                impact="May affect low-latency playback expectations",
            )
        ]

    findings = []
    source_latency = source_service.first("Latency")
    ssai_latency = ssai_service.first("Latency")
    if source_latency is not None and ssai_latency is not None:
        source_max = source_latency.get("max")
        source_target = source_latency.get("target")
        ssai_target = ssai_latency.get("target")
        if isinstance(ssai_target, (int, float)):
            if isinstance(source_max, (int, float)) and source_max and ssai_target > source_max:
                findings.append(
                    Finding(
                        kind="LATENCY_ABOVE_MAX",
                        severity=Severity.HIGH,
                        message="SSAI latency exceeds source maximum",
                        location="MPD.ServiceDescription",
                        attribute="Latency.target",
                        expected=f"<= {source_max}ms",
                        actual=f"{ssai_target}ms",
                    )
                )
            if isinstance(source_target, (int, float)) and ssai_target > source_target * LATENCY_TARGET_INCREASE:
                findings.append(
                    Finding(
                        kind="LATENCY_TARGET_INCREASED",
                        severity=Severity.MEDIUM,
                        message="SSAI significantly increased latency target",
                        location="MPD.ServiceDescription",
                        attribute="Latency.target",
                        expected=f"{source_target}ms",
                        actual=f"{ssai_target}ms",
                    )
                )

    source_rate = source_service.first("PlaybackRate")
    ssai_rate = ssai_service.first("PlaybackRate")
    if source_rate is not None and ssai_rate is not None:
        source_min, source_max = source_rate.get("min"), source_rate.get("max")
        ssai_min, ssai_max = ssai_rate.get("min"), ssai_rate.get("max")
        narrowed_max = None not in (source_max, ssai_max) and ssai_max < source_max
        narrowed_min = None not in (source_min, ssai_min) and ssai_min > source_min
        if narrowed_max or narrowed_min:
            findings.append(
                Finding(
                    kind="PLAYBACK_RATE_RESTRICTED",
                    severity=Severity.MEDIUM,
                    message="SSAI restricted playback rate range",
                    location="MPD.ServiceDescription",
                    attribute="PlaybackRate",
                    expected=f"{source_min}-{source_max}",
                    actual=f"{ssai_min}-{ssai_max}",
                )
            )

    return findings
