"""Structural diff of two canonical manifests.

Periods are tracked by id; a period without an id cannot be followed
across refreshes and is left out of the added/removed/modified sets.
Segment timelines are diffed by start time, so an insertion that shifts
positions without shifting time is not reported as a change.
"""

from typing import Any

from pydantic import Field

from ..shared.models import (
    AdaptationSet,
    AnalysisModel,
    CanonicalMPD,
    ContentType,
    Period,
    Segment,
)

# Two segments are equal when start and duration agree within this (seconds)
SEGMENT_EPSILON = 1e-6

TRACKED_TYPES = (ContentType.VIDEO, ContentType.AUDIO)


class PeriodModification(AnalysisModel):
    """Changes detected on a period present in both manifests."""

    id: str
    changes: dict[str, Any]


class PeriodSegmentDelta(AnalysisModel):
    """Segment count delta of one period."""

    added: int = 0
    removed: int = 0


class SegmentChanges(AnalysisModel):
    """Segment count deltas aggregated over all periods."""

    total_added: int = 0
    total_removed: int = 0
    by_period: dict[str, PeriodSegmentDelta] = Field(default_factory=dict)


class MPDComparison(AnalysisModel):
    """Result of comparing a previous manifest with the current one."""

    publish_time_changed: bool
    periods_added: list[str] = Field(default_factory=list)
    periods_removed: list[str] = Field(default_factory=list)
    periods_modified: list[PeriodModification] = Field(default_factory=list)
    segment_changes: SegmentChanges = Field(default_factory=SegmentChanges)


def compare_mpds(prev: CanonicalMPD, curr: CanonicalMPD) -> MPDComparison:
    """Compare two canonical manifests.

    Args:
        prev: Manifest from the previous refresh
        curr: Current manifest

    Returns:
        MPDComparison with period and segment changes

    Example:
        >>> result = compare_mpds(previous, current)
        >>> result.periods_added
        ['ad1']
    """
    prev_ids = {p.id for p in prev.periods if p.id}
    curr_ids = {p.id for p in curr.periods if p.id}

    return MPDComparison(
        publish_time_changed=prev.publish_time != curr.publish_time,
        periods_added=[p.id for p in curr.periods if p.id and p.id not in prev_ids],
        periods_removed=[p.id for p in prev.periods if p.id and p.id not in curr_ids],
        periods_modified=_find_modified_periods(prev.periods, curr.periods),
        segment_changes=_compare_segment_counts(prev, curr),
    )


def segments_equal(a: list[Segment], b: list[Segment]) -> bool:
    """Check two segment lists for equality within SEGMENT_EPSILON."""
    if len(a) != len(b):
        return False
    return all(
        abs(x.start - y.start) < SEGMENT_EPSILON and abs(x.duration - y.duration) < SEGMENT_EPSILON
        for x, y in zip(a, b)
    )


def diff_segment_timeline(prev: list[Segment], curr: list[Segment]) -> dict[str, list[Segment]]:
    """Find segments added and removed between two timelines, keyed by start time.

    Returns:
        {"added": [...], "removed": [...]} in timeline order
    """
    prev_starts = {s.start for s in prev}
    curr_starts = {s.start for s in curr}
    return {
        "added": [s for s in curr if s.start not in prev_starts],
        "removed": [s for s in prev if s.start not in curr_starts],
    }


def _find_modified_periods(prev_periods: list[Period], curr_periods: list[Period]) -> list[PeriodModification]:
    prev_by_id = {p.id: p for p in prev_periods if p.id}
    modified = []

    for curr_period in curr_periods:
        if not curr_period.id or curr_period.id not in prev_by_id:
            continue
        changes = _compare_periods(prev_by_id[curr_period.id], curr_period)
        if changes:
            modified.append(PeriodModification(id=curr_period.id, changes=changes))

    return modified


def _compare_periods(prev: Period, curr: Period) -> dict[str, Any]:
    changes: dict[str, Any] = {}

    if prev.start != curr.start:
        changes["startChanged"] = {"prev": prev.start, "curr": curr.start}

    if prev.drm_present != curr.drm_present:
        changes["drmChanged"] = {"prev": prev.drm_present, "curr": curr.drm_present}

    adaptation_changes = _compare_adaptations(prev, curr)
    if adaptation_changes:
        changes["adaptations"] = adaptation_changes

    return changes


def _compare_adaptations(prev: Period, curr: Period) -> dict[str, Any]:
    changes: dict[str, Any] = {}

    for content_type in TRACKED_TYPES:
        prev_as = _first_of_type(prev, content_type)
        curr_as = _first_of_type(curr, content_type)
        name = content_type.value

        if prev_as is None and curr_as is not None:
            changes[f"{name}Added"] = True
        elif prev_as is not None and curr_as is None:
            changes[f"{name}Removed"] = True
        elif prev_as is not None and curr_as is not None:
            prev_segments = _first_segments(prev_as)
            curr_segments = _first_segments(curr_as)
            if not segments_equal(prev_segments, curr_segments):
                changes[name] = {
                    "segmentsChanged": {
                        "added": len(curr_segments) - len(prev_segments),
                        "timeline": diff_segment_timeline(prev_segments, curr_segments),
                    }
                }

    return changes


def _compare_segment_counts(prev: CanonicalMPD, curr: CanonicalMPD) -> SegmentChanges:
    total_added = 0
    total_removed = 0
    by_period: dict[str, PeriodSegmentDelta] = {}

    # Positional pairing; an unmatched tail contributes nothing
    for index, (prev_period, curr_period) in enumerate(zip(prev.periods, curr.periods)):
        added = 0
        removed = 0
        for content_type in TRACKED_TYPES:
            prev_as = _first_of_type(prev_period, content_type)
            curr_as = _first_of_type(curr_period, content_type)
            if prev_as is None or curr_as is None:
                continue
            delta = len(_first_segments(curr_as)) - len(_first_segments(prev_as))
            if delta > 0:
                added += delta
            elif delta < 0:
                removed += -delta

        if added or removed:
            by_period[curr_period.id or str(index)] = PeriodSegmentDelta(added=added, removed=removed)
            total_added += added
            total_removed += removed

    return SegmentChanges(total_added=total_added, total_removed=total_removed, by_period=by_period)


def _first_of_type(period: Period, content_type: ContentType) -> AdaptationSet | None:
    adaptations = period.adaptations_of(content_type)
    return adaptations[0] if adaptations else None


def _first_segments(adaptation_set: AdaptationSet) -> list[Segment]:
    return adaptation_set.representations[0].segments if adaptation_set.representations else []
