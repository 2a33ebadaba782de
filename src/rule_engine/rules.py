"""Baseline rules over canonical manifests.

Each rule is a pure function of (current manifest, previous manifest or
None, config) returning a list of findings. Comparison rules return
nothing when no previous manifest is supplied.
"""

from typing import Callable

from aws_lambda_powertools import Logger

from ..comparator.diff import segments_equal
from ..shared.models import (
    AnalysisConfig,
    CanonicalMPD,
    ContentType,
    RuleFinding,
    RuleLevel,
)

logger = Logger(service="ssai-manifest-validator", child=True)

# Audio and video first segments must agree within this (seconds)
AV_DURATION_EPSILON = 1e-6

Rule = Callable[[CanonicalMPD, CanonicalMPD | None, AnalysisConfig], list[RuleFinding]]


def check_segment_duration(
    mpd: CanonicalMPD,
    prev: CanonicalMPD | None,
    config: AnalysisConfig,
) -> list[RuleFinding]:
    """Flag segments outside [min_segment_duration, max_segment_duration]."""
    findings = []

    for period in mpd.periods:
        for adaptation in period.adaptation_sets:
            for representation in adaptation.representations:
                for segment in representation.segments:
                    if config.min_segment_duration and segment.duration < config.min_segment_duration:
                        rule_id, threshold, word = "SEGMENT_TOO_SHORT", config.min_segment_duration, "below"
                    elif config.max_segment_duration and segment.duration > config.max_segment_duration:
                        rule_id, threshold, word = "SEGMENT_TOO_LONG", config.max_segment_duration, "above"
                    else:
                        continue

                    findings.append(
                        RuleFinding(
                            rule_id=rule_id,
                            level=RuleLevel.ERROR,
                            message=f"Segment duration {segment.duration:g}s {word} threshold {threshold:g}s",
                            details={
                                "periodId": period.id,
                                "adaptationType": adaptation.type.value,
                                "representationId": representation.id,
                                "segmentStart": segment.start,
                                "duration": segment.duration,
                                "threshold": threshold,
                            },
                            highlight_segments=[segment],
                        )
                    )

    return findings


def check_drm(
    mpd: CanonicalMPD,
    prev: CanonicalMPD | None,
    config: AnalysisConfig,
) -> list[RuleFinding]:
    """Flag periods without any ContentProtection."""
    return [
        RuleFinding(
            rule_id="DRM_MISSING",
            level=RuleLevel.ERROR,
            message=f"DRM protection missing in Period {period.id or 'unknown'}",
            details={"periodId": period.id},
        )
        for period in mpd.periods
        if not period.drm_present
    ]


def check_profile_alignment(
    mpd: CanonicalMPD,
    prev: CanonicalMPD | None,
    config: AnalysisConfig,
) -> list[RuleFinding]:
    """Flag representations whose segments differ from the first of their adaptation set."""
    findings = []

    for period in mpd.periods:
        for adaptation in period.adaptation_sets:
            base = adaptation.representations[0]
            for other in adaptation.representations[1:]:
                if segments_equal(base.segments, other.segments):
                    continue
                findings.append(
                    RuleFinding(
                        rule_id="PROFILE_MISMATCH",
                        level=RuleLevel.ERROR,
                        message=f"Segments differ across profiles in {adaptation.type.value} adaptation",
                        details={
                            "periodId": period.id,
                            "adaptationType": adaptation.type.value,
                            "baseRepId": base.id,
                            "mismatchRepId": other.id,
                            "baseSegmentCount": len(base.segments),
                            "mismatchSegmentCount": len(other.segments),
                        },
                    )
                )

    return findings


def compare_audio_video_duration(
    mpd: CanonicalMPD,
    prev: CanonicalMPD | None,
    config: AnalysisConfig,
) -> list[RuleFinding]:
    """Warn when the first video and first audio segment durations differ."""
    findings = []

    for period in mpd.periods:
        video = period.adaptations_of(ContentType.VIDEO)
        audio = period.adaptations_of(ContentType.AUDIO)
        if not video or not audio:
            continue

        video_segments = video[0].representations[0].segments
        audio_segments = audio[0].representations[0].segments
        if not video_segments or not audio_segments:
            continue

        video_duration = video_segments[0].duration
        audio_duration = audio_segments[0].duration
        difference = abs(video_duration - audio_duration)
        if difference > AV_DURATION_EPSILON:
            findings.append(
                RuleFinding(
                    rule_id="AV_DURATION_MISMATCH",
                    level=RuleLevel.WARNING,
                    message=f"Audio and video segment durations differ in Period {period.id or 'unknown'}",
                    details={
                        "periodId": period.id,
                        "videoDuration": video_duration,
                        "audioDuration": audio_duration,
                        "difference": difference,
                    },
                )
            )

    return findings


def compare_period_start_times(
    mpd: CanonicalMPD,
    prev: CanonicalMPD | None,
    config: AnalysisConfig,
) -> list[RuleFinding]:
    """Warn when the period at the same index starts at a different time."""
    if prev is None:
        return []

    findings = []
    for index, (prev_period, curr_period) in enumerate(zip(prev.periods, mpd.periods)):
        if prev_period.start == curr_period.start:
            continue
        diff = None
        if prev_period.start is not None and curr_period.start is not None:
            diff = curr_period.start - prev_period.start
        findings.append(
            RuleFinding(
                rule_id="PERIOD_START_CHANGED",
                level=RuleLevel.WARNING,
                message=f"Period {curr_period.id or index} start time changed",
                details={
                    "periodId": curr_period.id,
                    "periodIndex": index,
                    "prev": prev_period.start,
                    "curr": curr_period.start,
                    "diff": diff,
                },
            )
        )

    return findings


def compare_period_ids(
    mpd: CanonicalMPD,
    prev: CanonicalMPD | None,
    config: AnalysisConfig,
) -> list[RuleFinding]:
    """Flag a different period id at the same index."""
    if prev is None:
        return []

    return [
        RuleFinding(
            rule_id="PERIOD_ID_CHANGED",
            level=RuleLevel.ERROR,
            message=f"Period ID changed at index {index}",
            details={"periodIndex": index, "prev": prev_period.id, "curr": curr_period.id},
        )
        for index, (prev_period, curr_period) in enumerate(zip(prev.periods, mpd.periods))
        if prev_period.id != curr_period.id
    ]


RULES: tuple[Rule, ...] = (
    check_segment_duration,
    check_drm,
    check_profile_alignment,
    compare_audio_video_duration,
    compare_period_start_times,
    compare_period_ids,
)


def run_all_rules(
    mpd: CanonicalMPD,
    prev: CanonicalMPD | None = None,
    config: AnalysisConfig | None = None,
) -> list[RuleFinding]:
    """Run every baseline rule and concatenate the findings.

    A rule that raises is logged and skipped; the remaining rules still run.

    Args:
        mpd: Current canonical manifest
        prev: Previous refresh of the same manifest, if any
        config: Thresholds (defaults when omitted)

    Returns:
        Findings in rule order
    """
    config = config or AnalysisConfig()
    findings: list[RuleFinding] = []

    for rule in RULES:
        try:
            findings.extend(rule(mpd, prev, config))
        except Exception:
            logger.exception("Baseline rule failed", extra={"rule": rule.__name__})

    return findings
