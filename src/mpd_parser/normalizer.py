"""Canonical model construction.

Maps a parsed MPD tree onto the CanonicalMPD model used by the structural
comparator and the baseline rule engine. Only video and audio adaptation
sets are kept; anything whose type cannot be inferred is skipped.
"""

from aws_lambda_powertools import Logger

from ..shared.models import (
    AdaptationSet,
    CanonicalMPD,
    ContentType,
    Period,
    Representation,
    Segment,
)
from .durations import parse_datetime, parse_duration
from .timeline import expand_timeline, has_open_ended_repeat, timeline_entries
from .xml_parser import RawNode

logger = Logger(service="ssai-manifest-validator", child=True)


def normalize_mpd(root: RawNode) -> CanonicalMPD:
    """Normalize a parsed MPD into the canonical model.

    Args:
        root: Parsed MPD root node

    Returns:
        CanonicalMPD with periods in document order
    """
    return CanonicalMPD(
        publish_time=parse_datetime(root.get("publishTime")),
        periods=[
            _normalize_period(period, period_index)
            for period_index, period in enumerate(root.all("Period"))
        ],
    )


def has_content_protection(period: RawNode) -> bool:
    """Check for ContentProtection at adaptation-set or representation level."""
    for adaptation_set in period.all("AdaptationSet"):
        if adaptation_set.all("ContentProtection"):
            return True
        for representation in adaptation_set.all("Representation"):
            if representation.all("ContentProtection"):
                return True
    return False


def infer_content_type(adaptation_set: RawNode) -> ContentType | None:
    """Infer the media type of an adaptation set.

    Precedence: contentType attribute, then mimeType, then the mimeType of
    any child representation.
    """
    candidates = [adaptation_set.get("contentType"), adaptation_set.get("mimeType")]
    candidates.extend(r.get("mimeType") for r in adaptation_set.all("Representation"))

    for candidate in candidates:
        if not isinstance(candidate, str):
            continue
        if "video" in candidate:
            return ContentType.VIDEO
        if "audio" in candidate:
            return ContentType.AUDIO
    return None


def _normalize_period(period: RawNode, period_index: int) -> Period:
    period_id = period.get("id")
    adaptation_sets = []
    for as_index, adaptation_set in enumerate(period.all("AdaptationSet")):
        normalized = _normalize_adaptation_set(adaptation_set, period_index, as_index)
        if normalized is not None:
            adaptation_sets.append(normalized)

    return Period(
        id=str(period_id) if period_id is not None else None,
        start=parse_duration(period.get("start")).value,
        drm_present=has_content_protection(period),
        adaptation_sets=adaptation_sets,
    )


def _normalize_adaptation_set(
    adaptation_set: RawNode,
    period_index: int,
    as_index: int,
) -> AdaptationSet | None:
    content_type = infer_content_type(adaptation_set)
    if content_type is None:
        return None

    representations = [
        _normalize_representation(rep, adaptation_set, period_index, as_index, rep_index)
        for rep_index, rep in enumerate(adaptation_set.all("Representation"))
    ]
    if not representations:
        return None

    return AdaptationSet(type=content_type, representations=representations)


def _normalize_representation(
    representation: RawNode,
    adaptation_set: RawNode,
    period_index: int,
    as_index: int,
    rep_index: int,
) -> Representation:
    rep_id = representation.get("id")
    if rep_id is None or rep_id == "":
        rep_id = f"rep_{period_index}_{as_index}_{rep_index}"

    bandwidth = representation.get("bandwidth")
    return Representation(
        id=str(rep_id),
        bandwidth=int(bandwidth) if isinstance(bandwidth, (int, float)) else None,
        segments=_extract_segments(representation, adaptation_set, str(rep_id)),
    )


def _extract_segments(
    representation: RawNode,
    adaptation_set: RawNode,
    rep_id: str,
) -> list[Segment]:
    template = representation.first("SegmentTemplate") or adaptation_set.first("SegmentTemplate")
    entries = timeline_entries(template)
    if not entries:
        return []

    if has_open_ended_repeat(entries):
        logger.warning(
            "SegmentTimeline has an open-ended repeat, segments not enumerated",
            extra={"representation_id": rep_id},
        )
        return []

    return expand_timeline(entries, template.get("timescale", 1))
