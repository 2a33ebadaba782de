"""SegmentTimeline expansion.

Turns the compact ``<S t d r>`` encoding into explicit segments. Entries
with ``r=-1`` describe an unbounded run and cannot be enumerated; callers
check ``has_open_ended_repeat`` first and report the timeline as not
verified instead of expanding it.
"""

import math
from typing import Any

from ..shared.exceptions import ManifestParseError, OpenEndedTimelineError
from ..shared.models import Segment
from .xml_parser import RawNode


def timeline_entries(template: RawNode | None) -> list[RawNode]:
    """Get the S entries of a SegmentTemplate's SegmentTimeline."""
    if template is None:
        return []
    timeline = template.first("SegmentTimeline")
    if timeline is None:
        return []
    return timeline.all("S")


def has_open_ended_repeat(entries: list[RawNode] | list[dict[str, Any]]) -> bool:
    """Check whether any entry repeats until the next entry or period end."""
    return any(_number(entry, "r", 0) < 0 for entry in entries)


def expand_timeline(
    entries: list[RawNode] | list[dict[str, Any]],
    timescale: int | float | None = 1,
) -> list[Segment]:
    """Expand SegmentTimeline entries into segments.

    Args:
        entries: S entries with optional ``t``, required ``d`` and optional ``r``
        timescale: Ticks per second (defaults to 1)

    Returns:
        Segments in seconds, in non-decreasing start order

    Raises:
        OpenEndedTimelineError: If an entry has a negative repeat count
        ManifestParseError: If t, d, r or the timescale is not a number

    Example:
        >>> [s.start for s in expand_timeline([{"t": 0, "d": 2, "r": 2}])]
        [0.0, 2.0, 4.0]
    """
    scale = _as_number(timescale or 1, "timescale")
    segments: list[Segment] = []
    cursor = 0.0

    for index, entry in enumerate(entries):
        repeat = int(_number(entry, "r", 0))
        if repeat < 0:
            raise OpenEndedTimelineError(index)

        t = _number(entry, "t", None)
        duration = _number(entry, "d", 0) / scale
        start = t / scale if t is not None else cursor

        for i in range(repeat + 1):
            segments.append(Segment(start=start + i * duration, duration=duration))

        cursor = start + (repeat + 1) * duration

    return segments


def _entry_value(entry: RawNode | dict[str, Any], name: str, default: Any) -> Any:
    value = entry.get(name, default)
    return default if value is None else value


def _as_number(value: Any, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = math.nan
    if not math.isfinite(number):
        raise ManifestParseError(
            f"SegmentTimeline {name} is not a number: {value!r}",
            {"attribute": name, "value": str(value)},
        )
    return number


def _number(entry: RawNode | dict[str, Any], name: str, default: float | None) -> float | None:
    value = _entry_value(entry, name, default)
    return None if value is None else _as_number(value, name)
