"""Period checks: structure, ad detection, timeline continuity and parity.

Periods are matched semantically: by id, else by start time within the
period start tolerance. Ad periods inserted by the SSAI service are
detected heuristically and excluded from content duration accounting.
"""

from typing import NamedTuple

from ..mpd_parser.durations import parse_duration
from ..mpd_parser.xml_parser import RawNode
from ..shared.models import AnalysisConfig, Finding, Severity
from .common import label, period_location

AD_ID_MARKERS = ("ad", "preroll", "midroll", "postroll")
AD_ASSET_SCHEME_MARKERS = ("ad-id", "urn:uuid")
AD_EVENT_SCHEME_MARKERS = ("scte35", "scte:214", "urn:scte", "splice")
SSAI_VENDOR_SCHEME_MARKERS = ("ssai", "ad-insertion", "google:dai", "amazon:mediatailor")
AD_ROLE_MARKERS = ("advertisement", "ad")

# Signalling streams an SSAI service is expected to consume
AD_SIGNALLING_EVENT_MARKERS = ("scte35", "ad-id", "urn:scte")

# Consecutive periods may gap or overlap by this much (seconds)
CONTINUITY_TOLERANCE = 0.1

# Source period starts must chain within this (seconds)
SOURCE_CHAIN_TOLERANCE = 0.001

# Event presentationTime drift still considered the same event (ticks)
EVENT_TIME_TOLERANCE = 1000


class TimelineEntry(NamedTuple):
    """A period placed on the presentation timeline (seconds)."""

    id: str | None
    start: float
    duration: float | None
    end: float | None
    period: RawNode


def _scheme(node: RawNode) -> str:
    return str(node.get("schemeIdUri") or "").lower()


def is_ad_period(period: RawNode) -> bool:
    """Heuristically decide whether a period was inserted for ads.

    Any of: the id names an ad slot, the AssetIdentifier scheme suggests an
    ad id, an EventStream carries SCTE-35/splice signalling, a descriptor
    references a known SSAI vendor scheme, or a Role value mentions ads.
    """
    period_id = period.get("id")
    if period_id is not None and any(m in str(period_id).lower() for m in AD_ID_MARKERS):
        return True

    asset = period.first("AssetIdentifier")
    if asset is not None and any(m in _scheme(asset) for m in AD_ASSET_SCHEME_MARKERS):
        return True

    if any(any(m in _scheme(s) for m in AD_EVENT_SCHEME_MARKERS) for s in period.all("EventStream")):
        return True

    descriptors = period.all("EssentialProperty") + period.all("SupplementalProperty")
    if any(any(m in _scheme(d) for m in SSAI_VENDOR_SCHEME_MARKERS) for d in descriptors):
        return True

    for role in period.all("Role"):
        value = str(role.get("value") or "").lower()
        if any(m in value for m in AD_ROLE_MARKERS):
            return True

    return False


def period_start(period: RawNode) -> float | None:
    """Parsed Period@start, None when absent or unparsable."""
    return parse_duration(period.get("start")).value


def find_matching_period(
    source_period: RawNode,
    ssai_periods: list[RawNode],
    tolerance: float = CONTINUITY_TOLERANCE,
) -> RawNode | None:
    """Match by id, else by start time within ``tolerance`` (missing start is 0)."""
    source_id = source_period.get("id")
    if source_id is not None:
        for candidate in ssai_periods:
            if candidate.get("id") == source_id:
                return candidate

    source_start = period_start(source_period) if source_period.has("start") else 0.0
    if source_start is None:
        return None

    for candidate in ssai_periods:
        candidate_start = period_start(candidate) if candidate.has("start") else 0.0
        if candidate_start is not None and abs(source_start - candidate_start) < tolerance:
            return candidate
    return None


def build_timeline(periods: list[RawNode]) -> list[TimelineEntry]:
    """Place periods on the timeline.

    A period without a parsable start begins where the previous one with a
    known duration ended.
    """
    timeline = []
    cursor = 0.0

    for period in periods:
        start = period_start(period)
        duration = parse_duration(period.get("duration")).value
        actual_start = start if start is not None else cursor
        end = actual_start + duration if duration is not None else None
        period_id = period.get("id")
        timeline.append(
            TimelineEntry(
                id=str(period_id) if period_id is not None else None,
                start=actual_start,
                duration=duration,
                end=end,
                period=period,
            )
        )
        if end is not None:
            cursor = end

    return timeline


# =============================================================================
# Checks
# =============================================================================


def check_period_structure(
    source_periods: list[RawNode],
    ssai_periods: list[RawNode],
    config: AnalysisConfig,
) -> list[Finding]:
    """Period count, ids, start drift and ad period hygiene."""
    findings = []

    if len(source_periods) > len(ssai_periods):
        findings.append(
            Finding(
                kind="PERIOD_COUNT_MISMATCH",
                severity=Severity.VERY_HIGH,
                message="Missing periods in SSAI manifest",
                attribute="Period",
                expected=f"{len(source_periods)} periods",
                actual=f"{len(ssai_periods)} periods",
                impact="Content periods may be missing, causing playback gaps",
            )
        )

    ssai_ids = {p.get("id") for p in ssai_periods if p.get("id") is not None}

    for index, source_period in enumerate(source_periods):
        location = period_location(source_period, index)
        source_id = source_period.get("id")

        if source_id is not None and source_id not in ssai_ids:
            findings.append(
                Finding(
                    kind="PERIOD_ID_MISSING",
                    severity=Severity.HIGH,
                    message=f"Period ID missing in SSAI: {source_id}",
                    location=location,
                    attribute="Period.id",
                    expected=str(source_id),
                    actual="Missing",
                    impact="Period identification may fail",
                )
            )

        for attribute in ("start", "duration"):
            error = parse_duration(source_period.get(attribute), location, attribute).error
            if error is not None:
                findings.append(error)

        source_start = period_start(source_period)
        if source_start is None:
            continue
        match = find_matching_period(source_period, ssai_periods, config.period_start_tolerance)
        if match is None or not match.has("start"):
            continue
        ssai_result = parse_duration(match.get("start"), location, "start")
        if ssai_result.error is not None:
            findings.append(ssai_result.error)
            continue

        drift = abs(source_start - ssai_result.value)
        if drift > config.period_start_tolerance:
            findings.append(
                Finding(
                    kind="PERIOD_START_MISMATCH",
                    severity=Severity.MEDIUM,
                    message=f"Period start time mismatch: {drift:.3f}s",
                    location=location,
                    attribute="start",
                    expected=f"{source_start:.3f}",
                    actual=f"{ssai_result.value:.3f}",
                )
            )

    for index, ssai_period in enumerate(ssai_periods):
        if is_ad_period(ssai_period):
            findings.extend(check_ad_period(ssai_period, index))

    return findings


def check_ad_period(period: RawNode, index: int) -> list[Finding]:
    """An inserted ad period needs a duration and clear identification."""
    findings = []
    location = f"Period[{label(period, index)}]"
    period_id = period.get("id")

    if not period.get("duration"):
        findings.append(
            Finding(
                kind="AD_PERIOD_DURATION_MISSING",
                severity=Severity.HIGH,
                message="Ad period missing duration",
                location=location,
                attribute="Period.duration",
                expected="Present",
                actual="Missing",
                impact="Ad duration cannot be determined",
            )
        )

    if period_id is None or "ad" not in str(period_id).lower():
        findings.append(
            Finding(
                kind="AD_PERIOD_UNLABELLED",
                severity=Severity.MEDIUM,
                message="Ad period lacks clear identification",
                location=location,
                attribute="Period.id",
                expected="Descriptive ad period ID",
                actual=str(period_id) if period_id is not None else "Missing",
            )
        )

    asset = period.first("AssetIdentifier")
    if asset is not None and (not asset.get("schemeIdUri") or not asset.get("value")):
        findings.append(
            Finding(
                kind="AD_ASSET_IDENTIFIER_INCOMPLETE",
                severity=Severity.MEDIUM,
                message="Incomplete AssetIdentifier in ad period",
                location=location,
                attribute="AssetIdentifier",
                expected="schemeIdUri and value",
                actual=(
                    f"schemeIdUri: {asset.get('schemeIdUri') or 'Missing'}, "
                    f"value: {asset.get('value') or 'Missing'}"
                ),
                impact="Ad tracking may be affected",
            )
        )

    return findings


def check_timeline_continuity(timeline: list[TimelineEntry]) -> list[Finding]:
    """Consecutive periods must neither gap nor overlap beyond tolerance."""
    findings = []

    for current, following in zip(timeline, timeline[1:]):
        if current.end is None:
            continue
        gap = following.start - current.end
        if abs(gap) <= CONTINUITY_TOLERANCE:
            continue
        word = "gap" if gap > 0 else "overlap"
        findings.append(
            Finding(
                kind=f"TIMELINE_{word.upper()}",
                severity=Severity.VERY_HIGH,
                message=f"Timeline {word} detected: {abs(gap):.3f}s",
                location=f"Period[{following.id or 'unknown'}]",
                attribute="start",
                expected=f"{current.end:.3f}s",
                actual=f"{following.start:.3f}s",
                details={"between": f"{current.id} and {following.id}"},
            )
        )

    return findings


def check_duration_parity(
    source_timeline: list[TimelineEntry],
    ssai_timeline: list[TimelineEntry],
) -> list[Finding]:
    """Source content duration must survive in SSAI non-ad periods."""
    source_duration = sum(e.duration for e in source_timeline if e.duration is not None)
    content_duration = sum(
        e.duration for e in ssai_timeline if e.duration is not None and not is_ad_period(e.period)
    )
    difference = abs(source_duration - content_duration)
    tolerance = max(source_duration * 0.01, 1.0)

    if source_duration <= 0 or difference <= tolerance:
        return []

    return [
        Finding(
            kind="CONTENT_DURATION_MISMATCH",
            severity=Severity.VERY_HIGH,
            message="Content duration mismatch",
            attribute="mediaPresentationDuration",
            expected=f"{source_duration:.2f}s",
            actual=f"{content_duration:.2f}s",
            details={"difference": round(difference, 2)},
        )
    ]


def ad_period_summary(ssai_timeline: list[TimelineEntry]) -> tuple[list[TimelineEntry], Finding]:
    """Ad periods of the SSAI timeline and the INFO finding reporting them."""
    ad_entries = [e for e in ssai_timeline if is_ad_period(e.period)]
    total = sum(e.duration for e in ad_entries if e.duration is not None)
    finding = Finding(
        kind="AD_PERIODS_INSERTED",
        severity=Severity.INFO,
        message=f"SSAI inserted {len(ad_entries)} ad periods",
        attribute="Period",
        actual=len(ad_entries),
        details={
            "totalAdDuration": f"{total:.2f}",
            "adPeriodIds": [e.id for e in ad_entries],
        },
    )
    return ad_entries, finding


def check_source_continuity(source_periods: list[RawNode]) -> list[Finding]:
    """Source periods should chain end to start; only the last may be open."""
    findings = []
    expected_start = 0.0
    last_index = len(source_periods) - 1

    for index, period in enumerate(source_periods):
        start = period_start(period)
        actual_start = start if start is not None else expected_start

        if index > 0 and abs(actual_start - expected_start) > SOURCE_CHAIN_TOLERANCE:
            findings.append(
                Finding(
                    kind="SOURCE_CONTINUITY_GAP",
                    severity=Severity.MEDIUM,
                    message=f"Period {index} continuity gap detected",
                    location="MPD(source)",
                    attribute=f"Period[{index}].start",
                    expected=f"{expected_start:.3f}s",
                    actual=f"{actual_start:.3f}s",
                    details={"gap": f"{abs(actual_start - expected_start):.3f}s"},
                )
            )

        duration = parse_duration(period.get("duration")).value
        if duration is not None:
            expected_start = actual_start + duration
        elif index < last_index and not period.get("duration"):
            findings.append(
                Finding(
                    kind="PERIOD_DURATION_MISSING",
                    severity=Severity.MEDIUM,
                    message=f"Period {index} missing duration (not last period)",
                    location="MPD(source)",
                    attribute=f"Period[{index}].duration",
                    expected="Present",
                    actual="Missing",
                )
            )

    return findings


def check_event_streams(source_period: RawNode, ssai_period: RawNode, location: str) -> list[Finding]:
    """EventStreams, their Events and InbandEventStreams must be preserved."""
    findings = []
    ssai_streams = ssai_period.all("EventStream")
    source_schemes = {s.get("schemeIdUri") for s in source_period.all("EventStream")}

    for stream in source_period.all("EventStream"):
        scheme = stream.get("schemeIdUri")
        counterpart = next((s for s in ssai_streams if s.get("schemeIdUri") == scheme), None)

        if counterpart is None:
            consumed = any(m in str(scheme or "") for m in AD_SIGNALLING_EVENT_MARKERS)
            findings.append(
                Finding(
                    kind="EVENT_STREAM_REMOVED" if consumed else "EVENT_STREAM_MISSING",
                    severity=Severity.HIGH if consumed else Severity.MEDIUM,
                    message=f"EventStream {scheme} removed by SSAI" if consumed else f"EventStream {scheme} missing in SSAI",
                    location=location,
                    attribute="EventStream",
                    expected=scheme,
                    actual="Missing",
                    impact="Verify SSAI consumed this for ad insertion" if consumed else None,
                )
            )
            continue

        findings.extend(_check_events(stream, counterpart, location))

    added = [s.get("schemeIdUri") for s in ssai_streams if s.get("schemeIdUri") not in source_schemes]
    if added:
        findings.append(
            Finding(
                kind="EVENT_STREAMS_ADDED",
                severity=Severity.INFO,
                message=f"SSAI added {len(added)} new EventStreams",
                location=location,
                attribute="EventStream",
                actual=added,
            )
        )

    ssai_inband = {s.get("schemeIdUri") for s in ssai_period.iter("InbandEventStream")}
    for stream in source_period.iter("InbandEventStream"):
        scheme = stream.get("schemeIdUri")
        if scheme not in ssai_inband:
            findings.append(
                Finding(
                    kind="INBAND_EVENT_STREAM_REMOVED",
                    severity=Severity.HIGH,
                    message=f"InbandEventStream {scheme} removed by SSAI",
                    location=location,
                    attribute="InbandEventStream",
                    expected=scheme,
                    actual="Missing",
                )
            )
            ssai_inband.add(scheme)

    return findings


def _check_events(source_stream: RawNode, ssai_stream: RawNode, location: str) -> list[Finding]:
    findings = []
    ssai_events = ssai_stream.all("Event")

    for event in source_stream.all("Event"):
        event_id = event.get("id")
        time = event.get("presentationTime") or 0

        def same_event(candidate: RawNode) -> bool:
            if event_id is not None and candidate.get("id") == event_id:
                return True
            return abs(time - (candidate.get("presentationTime") or 0)) < EVENT_TIME_TOLERANCE

        if not any(same_event(c) for c in ssai_events):
            findings.append(
                Finding(
                    kind="EVENT_MISSING",
                    severity=Severity.HIGH,
                    message=f"Event {event_id if event_id is not None else 'unknown'} missing or timing shifted",
                    location=location,
                    attribute=f"EventStream@{source_stream.get('schemeIdUri')}",
                    expected=time,
                    actual="Missing",
                )
            )

    return findings
