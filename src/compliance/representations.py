"""Representation checks: scored matching, attributes and ABR ladder."""

from typing import NamedTuple

from ..mpd_parser.xml_parser import RawNode
from ..shared.models import AnalysisConfig, Finding, Severity
from .common import codec_base, label, parse_frame_rate

# Match scoring
SCORE_BANDWIDTH_CLOSE = 100
SCORE_BANDWIDTH_NEAR = 50
SCORE_RESOLUTION = 50
SCORE_CODECS = 25
SCORE_FRAME_RATE = 10
SCORE_FLOOR = 100
NEAR_BANDWIDTH_TOLERANCE = 0.05

ASPECT_RATIO_TOLERANCE = 0.01
FRAME_RATE_TOLERANCE = 0.1

# ABR ladder coverage
LADDER_EDGE_TOLERANCE = 0.1
LADDER_GAP_FACTOR = 2


class RepresentationMatch(NamedTuple):
    source: RawNode
    ssai: RawNode | None
    index: int


def _bandwidth(representation: RawNode) -> float | None:
    value = representation.get("bandwidth")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def match_representations(
    source_reps: list[RawNode],
    ssai_reps: list[RawNode],
    bandwidth_tolerance: float = 0.01,
) -> list[RepresentationMatch]:
    """Pair each source representation with its best SSAI candidate.

    Bandwidth within tolerance scores 100, within 5% scores 50; equal
    resolution adds 50, equal codecs 25, equal frame rate 10. A candidate
    below the score floor is not accepted. Each SSAI representation is used
    at most once. Source representations without bandwidth are skipped.
    """
    matches = []
    used: set[int] = set()

    for index, source in enumerate(source_reps):
        bandwidth = _bandwidth(source)
        if not bandwidth:
            continue

        best_index, best_score = None, -1
        for candidate_index, candidate in enumerate(ssai_reps):
            if candidate_index in used:
                continue
            score = _score(source, candidate, bandwidth, bandwidth_tolerance)
            if score > best_score:
                best_index, best_score = candidate_index, score

        if best_index is not None and best_score >= SCORE_FLOOR:
            used.add(best_index)
            matches.append(RepresentationMatch(source, ssai_reps[best_index], index))
        else:
            matches.append(RepresentationMatch(source, None, index))

    return matches


def _score(source: RawNode, candidate: RawNode, bandwidth: float, tolerance: float) -> int:
    score = 0
    difference = abs((_bandwidth(candidate) or 0) - bandwidth)
    if difference <= bandwidth * tolerance:
        score += SCORE_BANDWIDTH_CLOSE
    elif difference <= bandwidth * NEAR_BANDWIDTH_TOLERANCE:
        score += SCORE_BANDWIDTH_NEAR

    width, height = source.get("width"), source.get("height")
    if width and height and candidate.get("width") == width and candidate.get("height") == height:
        score += SCORE_RESOLUTION
    if source.get("codecs") and candidate.get("codecs") == source.get("codecs"):
        score += SCORE_CODECS
    if source.get("frameRate") and candidate.get("frameRate") == source.get("frameRate"):
        score += SCORE_FRAME_RATE
    return score


def representation_location(as_location: str, representation: RawNode, index: int) -> str:
    return f"{as_location}.Representation[{label(representation, index)}]"


def check_representation_structure(
    source_reps: list[RawNode],
    ssai_reps: list[RawNode],
    location: str,
) -> list[Finding]:
    """Counts, ids and bandwidth declarations."""
    findings = []

    if len(source_reps) > len(ssai_reps):
        findings.append(
            Finding(
                kind="REPRESENTATION_COUNT_MISMATCH",
                severity=Severity.HIGH,
                message="Missing representations in SSAI AdaptationSet",
                location=location,
                attribute="Representation",
                expected=len(source_reps),
                actual=len(ssai_reps),
                impact="Reduced quality options for adaptive streaming",
            )
        )

    ssai_ids = {r.get("id") for r in ssai_reps if r.get("id") is not None}

    for index, representation in enumerate(source_reps):
        rep_location = representation_location(location, representation, index)
        rep_id = representation.get("id")
        bandwidth = representation.get("bandwidth")

        if rep_id is not None and rep_id not in ssai_ids:
            findings.append(
                Finding(
                    kind="REPRESENTATION_ID_MISSING",
                    severity=Severity.MEDIUM,
                    message=f"Representation ID missing in SSAI: {rep_id}",
                    location=rep_location,
                    attribute="Representation.id",
                    expected=str(rep_id),
                    actual="Missing",
                )
            )

        if bandwidth in (None, "", 0):
            findings.append(
                Finding(
                    kind="BANDWIDTH_MISSING",
                    severity=Severity.VERY_HIGH,
                    message="Representation missing bandwidth",
                    location=rep_location,
                    attribute="bandwidth",
                    expected="Present",
                    actual="Missing",
                    impact="Cannot determine bitrate for adaptive streaming",
                )
            )
        elif _bandwidth(representation) is None or bandwidth < 0:
            findings.append(
                Finding(
                    kind="BANDWIDTH_INVALID",
                    severity=Severity.HIGH,
                    message=f"Invalid bandwidth value: {bandwidth}",
                    location=rep_location,
                    attribute="bandwidth",
                    expected="Positive integer",
                    actual=bandwidth,
                )
            )

    return findings


def check_missing_representations(matches: list[RepresentationMatch], location: str) -> list[Finding]:
    return [
        Finding(
            kind="REPRESENTATION_MISSING",
            severity=Severity.HIGH,
            message=f"Missing representation: {m.source.get('bandwidth')}bps",
            location=representation_location(location, m.source, m.index),
            attribute="Representation",
            expected={
                "bandwidth": m.source.get("bandwidth"),
                "width": m.source.get("width"),
                "height": m.source.get("height"),
            },
            actual="Missing",
        )
        for m in matches
        if m.ssai is None
    ]


def check_representation_pair(
    source: RawNode,
    ssai: RawNode,
    location: str,
    config: AnalysisConfig,
) -> list[Finding]:
    """Compare one matched pair of representations."""
    findings = []
    findings.extend(_check_video_attributes(source, ssai, location))
    findings.extend(_check_audio_attributes(source, ssai, location))
    findings.extend(_check_codecs(source, ssai, location))

    source_bandwidth = _bandwidth(source)
    ssai_bandwidth = _bandwidth(ssai)
    if source_bandwidth and ssai_bandwidth is not None:
        if abs(source_bandwidth - ssai_bandwidth) > source_bandwidth * config.bandwidth_tolerance:
            findings.append(
                Finding(
                    kind="BANDWIDTH_MISMATCH",
                    severity=Severity.VERY_HIGH,
                    message="Representation bandwidth mismatch",
                    location=location,
                    attribute="bandwidth",
                    expected=source_bandwidth,
                    actual=ssai_bandwidth,
                )
            )

    sar = source.get("sar")
    if sar is not None and sar != ssai.get("sar"):
        findings.append(
            Finding(
                kind="ATTRIBUTE_MISMATCH",
                severity=Severity.VERY_HIGH,
                message="Representation sar mismatch",
                location=location,
                attribute="sar",
                expected=sar,
                actual=ssai.get("sar"),
            )
        )

    return findings


def _check_video_attributes(source: RawNode, ssai: RawNode, location: str) -> list[Finding]:
    findings = []
    if not source.get("width") and not source.get("height"):
        return findings

    for attribute in ("width", "height"):
        expected = source.get(attribute)
        actual = ssai.get(attribute)
        if not expected:
            continue
        if not actual:
            findings.append(
                Finding(
                    kind="ATTRIBUTE_MISSING",
                    severity=Severity.HIGH,
                    message=f"Representation {attribute} missing in SSAI",
                    location=location,
                    attribute=attribute,
                    expected=str(expected),
                    actual="Missing",
                    impact="Video resolution cannot be determined",
                )
            )
        elif expected != actual:
            findings.append(
                Finding(
                    kind="ATTRIBUTE_MISMATCH",
                    severity=Severity.VERY_HIGH,
                    message=f"Representation {attribute} mismatch",
                    location=location,
                    attribute=attribute,
                    expected=str(expected),
                    actual=str(actual),
                    impact="Incorrect values affect quality selection and display",
                )
            )

    width, height = source.get("width"), source.get("height")
    ssai_width, ssai_height = ssai.get("width"), ssai.get("height")
    if width and height and ssai_width and ssai_height:
        source_ratio = width / height
        ssai_ratio = ssai_width / ssai_height
        if abs(source_ratio - ssai_ratio) > ASPECT_RATIO_TOLERANCE:
            findings.append(
                Finding(
                    kind="ASPECT_RATIO_MISMATCH",
                    severity=Severity.MEDIUM,
                    message="Aspect ratio mismatch",
                    location=location,
                    attribute="aspectRatio",
                    expected=f"{source_ratio:.3f}",
                    actual=f"{ssai_ratio:.3f}",
                )
            )

    frame_rate = source.get("frameRate")
    ssai_frame_rate = ssai.get("frameRate")
    if frame_rate and ssai_frame_rate:
        source_fps = parse_frame_rate(frame_rate)
        ssai_fps = parse_frame_rate(ssai_frame_rate)
        if source_fps and ssai_fps and abs(source_fps - ssai_fps) > FRAME_RATE_TOLERANCE:
            findings.append(
                Finding(
                    kind="FRAME_RATE_MISMATCH",
                    severity=Severity.HIGH,
                    message="Frame rate mismatch",
                    location=location,
                    attribute="frameRate",
                    expected=frame_rate,
                    actual=ssai_frame_rate,
                    impact="Frame rate differences affect playback smoothness",
                )
            )
    elif frame_rate:
        findings.append(
            Finding(
                kind="ATTRIBUTE_MISSING",
                severity=Severity.MEDIUM,
                message="Frame rate missing in SSAI",
                location=location,
                attribute="frameRate",
                expected=frame_rate,
                actual="Missing",
            )
        )

    return findings


def _check_audio_attributes(source: RawNode, ssai: RawNode, location: str) -> list[Finding]:
    rate = source.get("audioSamplingRate")
    ssai_rate = ssai.get("audioSamplingRate")
    if not rate:
        return []
    if not ssai_rate:
        return [
            Finding(
                kind="ATTRIBUTE_MISSING",
                severity=Severity.HIGH,
                message="Audio sampling rate missing in SSAI",
                location=location,
                attribute="audioSamplingRate",
                expected=str(rate),
                actual="Missing",
                impact="Audio sampling rate cannot be determined",
            )
        ]
    if rate != ssai_rate:
        return [
            Finding(
                kind="ATTRIBUTE_MISMATCH",
                severity=Severity.VERY_HIGH,
                message="Representation audioSamplingRate mismatch",
                location=location,
                attribute="audioSamplingRate",
                expected=str(rate),
                actual=str(ssai_rate),
                impact="Audio sampling rate differences affect audio quality",
            )
        ]
    return []


def _check_codecs(source: RawNode, ssai: RawNode, location: str) -> list[Finding]:
    codecs = source.get("codecs")
    ssai_codecs = ssai.get("codecs")
    if not codecs or codecs == ssai_codecs:
        return []
    if not ssai_codecs:
        return [
            Finding(
                kind="ATTRIBUTE_MISSING",
                severity=Severity.MEDIUM,
                message="Codecs missing in SSAI",
                location=location,
                attribute="codecs",
                expected=codecs,
                actual="Missing",
            )
        ]
    if codec_base(codecs) != codec_base(ssai_codecs):
        return [
            Finding(
                kind="CODEC_FAMILY_MISMATCH",
                severity=Severity.VERY_HIGH,
                message="Codec family mismatch",
                location=location,
                attribute="codecs",
                expected=codecs,
                actual=ssai_codecs,
                impact="Different codec families may cause playback issues",
            )
        ]
    return [
        Finding(
            kind="CODEC_PROFILE_MISMATCH",
            severity=Severity.MEDIUM,
            message="Codec profile/level mismatch",
            location=location,
            attribute="codecs",
            expected=codecs,
            actual=ssai_codecs,
        )
    ]


def _ratios(bandwidths: list[float]) -> list[float]:
    return [high / low for low, high in zip(bandwidths, bandwidths[1:]) if low]


def check_abr_ladder(source_reps: list[RawNode], ssai_reps: list[RawNode], location: str) -> list[Finding]:
    """Flag lost low/high-end renditions and widened rung spacing."""
    source_ladder = sorted(b for b in (_bandwidth(r) for r in source_reps) if b)
    ssai_ladder = sorted(b for b in (_bandwidth(r) for r in ssai_reps) if b)
    if not source_ladder or not ssai_ladder:
        return []

    findings = []
    if ssai_ladder[0] > source_ladder[0] * (1 + LADDER_EDGE_TOLERANCE):
        findings.append(
            Finding(
                kind="ABR_LOW_END_MISSING",
                severity=Severity.MEDIUM,
                message="SSAI missing low-bandwidth representations",
                location=location,
                attribute="bandwidth",
                expected=source_ladder[0],
                actual=ssai_ladder[0],
                impact="Users with poor connections may not be able to play",
            )
        )
    if ssai_ladder[-1] < source_ladder[-1] * (1 - LADDER_EDGE_TOLERANCE):
        findings.append(
            Finding(
                kind="ABR_HIGH_END_MISSING",
                severity=Severity.MEDIUM,
                message="SSAI missing high-bandwidth representations",
                location=location,
                attribute="bandwidth",
                expected=source_ladder[-1],
                actual=ssai_ladder[-1],
                impact="High-quality playback options reduced",
            )
        )

    if len(source_ladder) > 2 and len(ssai_ladder) > 2:
        source_ratios = _ratios(source_ladder)
        ssai_ratios = _ratios(ssai_ladder)
        source_average = sum(source_ratios) / len(source_ratios)
        ssai_average = sum(ssai_ratios) / len(ssai_ratios)
        if ssai_average > source_average * LADDER_GAP_FACTOR:
            findings.append(
                Finding(
                    kind="ABR_LADDER_GAPS",
                    severity=Severity.LOW,
                    message="SSAI ABR ladder has large bandwidth gaps",
                    location=location,
                    attribute="bandwidth",
                    expected=f"{source_average:.2f}x average step",
                    actual=f"{ssai_average:.2f}x average step",
                )
            )

    return findings
