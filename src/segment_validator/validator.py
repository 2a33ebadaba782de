"""Per-segment runtime validation.

Segments are expanded from the manifest and annotated with download times
observed by the playback engine. Three independent rules apply, each
critical:

- Download time exceeding the segment duration by more than the allowed
  ratio, or the absolute download time limit, evaluated only for real samples
- Duration above the configured maximum
- Duration below the configured minimum
"""

from typing import Literal

from aws_lambda_powertools import Logger
from pydantic import Field

from ..mpd_parser.timeline import expand_timeline, has_open_ended_repeat, timeline_entries
from ..mpd_parser.xml_parser import RawNode
from ..shared.config import get_settings
from ..shared.models import AnalysisConfig, AnalysisModel, SegmentInfo, SegmentValidationConfig, StreamType

logger = Logger(service="ssai-manifest-validator", child=True)

# Download times below this are presumed cache hits
CACHE_HIT_THRESHOLD = 0.05

DOWNLOAD_TIME_EXCEEDED = "DOWNLOAD_TIME_EXCEEDED"
SEGMENT_TOO_LONG = "SEGMENT_TOO_LONG"
SEGMENT_TOO_SHORT = "SEGMENT_TOO_SHORT"


class SegmentViolation(AnalysisModel):
    """One rule hit on one segment."""

    segment: SegmentInfo
    rule: str
    severity: Literal["CRITICAL"] = "CRITICAL"
    message: str


class SegmentValidationResult(AnalysisModel):
    """Aggregate of a validation run."""

    has_critical: bool
    violations: list[SegmentViolation] = Field(default_factory=list)
    total_segments: int
    violating_segments: int = Field(description="Distinct segments with at least one violation")


def _content_type(adaptation_set: RawNode) -> str:
    content_type = adaptation_set.get("contentType")
    if content_type:
        return str(content_type)
    mime_type = str(adaptation_set.get("mimeType") or "")
    for candidate in ("video", "audio"):
        if candidate in mime_type:
            return candidate
    if "text" in mime_type or "application" in mime_type:
        return "text"
    return "unknown"


def extract_segment_info(root: RawNode, stream_type: StreamType | None = None) -> list[SegmentInfo]:
    """Expand every representation's SegmentTimeline into SegmentInfo records.

    Args:
        root: Parsed MPD element
        stream_type: Overrides the type derived from MPD@type

    Returns:
        Segments in document order, numbered from 0 per representation.
        Open-ended timelines are skipped with a warning.
    """
    if stream_type is None:
        stream_type = StreamType.LIVE if root.get("type") == "dynamic" else StreamType.VOD

    segments = []
    for period_index, period in enumerate(root.all("Period")):
        period_id = str(period.get("id") or f"period_{period_index}")
        for as_index, adaptation_set in enumerate(period.all("AdaptationSet")):
            as_id = str(adaptation_set.get("id") or f"as_{as_index}")
            content_type = _content_type(adaptation_set)
            for rep_index, representation in enumerate(adaptation_set.all("Representation")):
                rep_id = str(representation.get("id") or f"rep_{rep_index}")
                template = representation.first("SegmentTemplate") or adaptation_set.first("SegmentTemplate")
                entries = timeline_entries(template)
                if not entries:
                    continue
                if has_open_ended_repeat(entries):
                    logger.warning(
                        "Skipping open-ended SegmentTimeline",
                        extra={"period_id": period_id, "representation_id": rep_id},
                    )
                    continue

                for number, segment in enumerate(expand_timeline(entries, template.get("timescale") or 1)):
                    segments.append(
                        SegmentInfo(
                            period_id=period_id,
                            adaptation_set_id=as_id,
                            representation_id=rep_id,
                            content_type=content_type,
                            segment_number=number,
                            start_time_sec=segment.start,
                            duration_sec=segment.duration,
                            is_first_in_period=number == 0,
                            stream_type=stream_type,
                        )
                    )

    return segments


def default_config() -> SegmentValidationConfig:
    """Segment policy with the download limits configured for the deployment."""
    return SegmentValidationConfig.from_analysis_config(AnalysisConfig.from_settings(get_settings()))


def record_download_time(segment: SegmentInfo, download_time_sec: float) -> SegmentInfo:
    """Annotate a segment with the download time reported by the player."""
    return segment.model_copy(update={"download_time_sec": download_time_sec})


def violates_download_time(segment: SegmentInfo, config: SegmentValidationConfig) -> bool:
    if segment.download_time_sec is None:
        return False
    # TCP warm-up and DNS resolution on the first segment
    if segment.segment_number == 0 or segment.is_first_in_period:
        return False
    if segment.download_time_sec < CACHE_HIT_THRESHOLD:
        return False
    if segment.stream_type == StreamType.VOD and not config.enable_download_time_for_vod:
        return False
    if segment.download_time_sec > config.max_download_time:
        return True
    if segment.duration_sec <= 0:
        return False
    return segment.download_time_sec / segment.duration_sec > config.max_download_ratio


def _download_message(segment: SegmentInfo, config: SegmentValidationConfig) -> str:
    if segment.duration_sec > 0:
        ratio = segment.download_time_sec / segment.duration_sec
        if ratio > config.max_download_ratio:
            return (
                f"Download time ratio: {ratio:.2f}x ({segment.download_time_sec:.3f}s / "
                f"{segment.duration_sec:.3f}s) exceeds max {config.max_download_ratio}x"
            )
    return f"Download time {segment.download_time_sec:.3f}s exceeds max {config.max_download_time}s"


def validate_segment(
    segment: SegmentInfo,
    config: SegmentValidationConfig | None = None,
) -> list[SegmentViolation]:
    """Apply the three rules to one segment."""
    config = config or default_config()
    violations = []

    if violates_download_time(segment, config):
        violations.append(
            SegmentViolation(
                segment=segment,
                rule=DOWNLOAD_TIME_EXCEEDED,
                message=_download_message(segment, config),
            )
        )

    if segment.duration_sec > config.max_segment_duration:
        violations.append(
            SegmentViolation(
                segment=segment,
                rule=SEGMENT_TOO_LONG,
                message=f"Segment duration {segment.duration_sec:.3f}s exceeds max {config.max_segment_duration}s",
            )
        )

    if segment.duration_sec < config.min_segment_duration:
        violations.append(
            SegmentViolation(
                segment=segment,
                rule=SEGMENT_TOO_SHORT,
                message=f"Segment duration {segment.duration_sec:.3f}s below min {config.min_segment_duration}s",
            )
        )

    return violations


def validate_all_segments(
    segments: list[SegmentInfo],
    config: SegmentValidationConfig | None = None,
) -> SegmentValidationResult:
    """Validate every segment and count distinct violating segments."""
    config = config or default_config()
    violations = [v for segment in segments for v in validate_segment(segment, config)]
    violating = {
        (v.segment.period_id, v.segment.adaptation_set_id, v.segment.representation_id, v.segment.segment_number)
        for v in violations
    }

    logger.info(
        "Segment validation complete",
        extra={"total_segments": len(segments), "violations": len(violations), "violating_segments": len(violating)},
    )
    return SegmentValidationResult(
        has_critical=bool(violations),
        violations=violations,
        total_segments=len(segments),
        violating_segments=len(violating),
    )


def format_segment_details(violation: SegmentViolation) -> str:
    """One-line description of a violation for tabular display."""
    segment = violation.segment
    parts = [
        f"Period: {segment.period_id}",
        f"AdaptationSet: {segment.content_type or segment.adaptation_set_id}",
        f"Representation: {segment.representation_id}",
        f"Segment #: {segment.segment_number}",
        f"Start time: {segment.start_time_sec:.3f}s",
        f"Duration: {segment.duration_sec:.3f}s",
    ]
    if segment.download_time_sec:
        parts.append(f"Download time: {segment.download_time_sec:.3f}s")
    parts.append(f"Violation: {violation.message}")
    return " | ".join(parts)
