"""ISO 8601 duration and date-time parsing for MPD attributes.

Duration parsing never raises: an unparsable value is returned as a
HIGH finding alongside a ``None`` value so callers can collect it and
carry on with the rest of the report.
"""

import re
from datetime import datetime, timezone
from typing import Any, NamedTuple

from ..shared.exceptions import DurationParseError
from ..shared.models import Finding, Severity

# PT1H30M45S, PT3599.000S, PT0.5H
_TIME_ONLY_PATTERN = re.compile(
    r"^PT(?:(\d+(?:\.\d+)?)H)?(?:(\d+(?:\.\d+)?)M)?(?:(\d+(?:\.\d+)?)S)?$"
)

# P1DT1H30M45S
_WITH_DAYS_PATTERN = re.compile(
    r"^P(?:(\d+(?:\.\d+)?)D)?T?(?:(\d+(?:\.\d+)?)H)?(?:(\d+(?:\.\d+)?)M)?(?:(\d+(?:\.\d+)?)S)?$"
)


class DurationResult(NamedTuple):
    """Outcome of parsing one duration attribute."""

    value: float | None
    error: Finding | None


def parse_duration(value: Any, location: str = "MPD", attribute: str | None = None) -> DurationResult:
    """Parse an ISO 8601 duration to seconds.

    Args:
        value: Attribute value (string, number, or None)
        location: Element path used on the error finding
        attribute: Attribute name used on the error finding

    Returns:
        DurationResult with either a value in seconds, or an error finding.
        A missing value yields (None, None).

    Example:
        >>> parse_duration("PT1H30M45.5S").value
        5445.5
    """
    if value is None or value == "":
        return DurationResult(None, None)
    if isinstance(value, bool):
        return _invalid(value, location, attribute)
    if isinstance(value, (int, float)):
        return DurationResult(float(value), None)

    try:
        return DurationResult(_parse_iso_duration(str(value)), None)
    except DurationParseError:
        return _invalid(value, location, attribute)


def duration_seconds(value: Any) -> float | None:
    """Parse a duration and discard the error."""
    return parse_duration(value).value


def _parse_iso_duration(text: str) -> float:
    # At least one component is required, and a T must be followed by one
    if text.endswith("T"):
        raise DurationParseError(text)

    match = _TIME_ONLY_PATTERN.match(text)
    if match and any(match.groups()):
        hours, minutes, seconds = (float(g or 0) for g in match.groups())
        return hours * 3600 + minutes * 60 + seconds

    match = _WITH_DAYS_PATTERN.match(text)
    if match and any(match.groups()):
        days, hours, minutes, seconds = (float(g or 0) for g in match.groups())
        return days * 86400 + hours * 3600 + minutes * 60 + seconds

    raise DurationParseError(text)


def _invalid(value: Any, location: str, attribute: str | None) -> DurationResult:
    return DurationResult(
        None,
        Finding(
            kind="INVALID_DURATION",
            severity=Severity.HIGH,
            message=f"Invalid ISO 8601 duration format: {value}",
            location=location,
            attribute=attribute,
            actual=value,
        ),
    )


def parse_datetime(value: Any) -> float | None:
    """Parse an ISO 8601 date-time to epoch seconds.

    Naive values are treated as UTC. Returns None when unparsable.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()
