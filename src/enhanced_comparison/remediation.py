"""Remediation text and display types for comparison records."""

from ..shared.models import Severity

SEVERITY_TYPES = {
    Severity.VERY_HIGH: "CRITICAL ERROR",
    Severity.HIGH: "ERROR",
    Severity.MEDIUM: "WARNING",
    Severity.LOW: "INFO",
    Severity.INFO: "INFO",
}

# First matching entry wins; every keyword must appear in the lowercased message
KEYWORD_SOLUTIONS: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("missing", "period"),
        "Verify SSAI period mapping - content periods may have been incorrectly removed or merged during ad insertion",
    ),
    (
        ("missing", "adaptationset"),
        "Add missing AdaptationSet to SSAI manifest - essential for multi-track playback (video/audio/subtitles)",
    ),
    (
        ("missing", "representation"),
        "Restore missing representation to maintain ABR ladder quality options for adaptive streaming",
    ),
    (
        ("drm",),
        "Ensure all DRM systems and encryption keys are properly configured in SSAI manifest",
    ),
    (
        ("contentprotection",),
        "Ensure all DRM systems and encryption keys are properly configured in SSAI manifest",
    ),
    (
        ("timescale",),
        "Fix timescale mismatch - all timing calculations depend on consistent timescale values",
    ),
    (("timeline", "gap"), "Fix timeline continuity - gaps will cause playback interruptions and seeking issues"),
    (("timeline", "overlap"), "Fix timeline overlap - will cause duplicate content and playback errors"),
    (("bandwidth",), "Verify bandwidth values match source - incorrect values affect ABR switching decisions"),
    (("codec",), "Ensure codec compatibility - codec mismatches prevent playback on some devices"),
    (
        ("utctiming",),
        "Add UTCTiming element for live streams - required for clock synchronization and ad boundary accuracy",
    ),
    (
        ("eventstream",),
        "Verify event stream handling - SCTE-35 and ad signaling events may have been incorrectly processed",
    ),
    (
        ("audio", "channel"),
        "Fix audio channel configuration - mismatches cause audio playback issues and device compatibility problems",
    ),
    (
        ("essentialproperty",),
        "Restore EssentialProperty - players MUST understand these properties for compliant playback",
    ),
    (
        ("accessibility",),
        "Restore accessibility features - removal may violate accessibility compliance requirements",
    ),
    (
        ("segment", "template"),
        "Fix SegmentTemplate structure - required for proper segment URL construction and playback",
    ),
    (
        ("pssh",),
        "Verify PSSH data integrity - DRM initialization data must be identical for successful license acquisition",
    ),
    (("frame rate",), "Ensure frame rate consistency - mismatches cause playback quality issues"),
    (("resolution",), "Verify video resolution parameters - incorrect values affect quality selection and display"),
    (("width",), "Verify video resolution parameters - incorrect values affect quality selection and display"),
    (("height",), "Verify video resolution parameters - incorrect values affect quality selection and display"),
    (("language",), "Fix language code format - should follow RFC 5646 for proper language selection"),
    (("lang",), "Fix language code format - should follow RFC 5646 for proper language selection"),
    (("role",), "Ensure role descriptors match - affects track selection and accessibility features"),
    (("buffer",), "Adjust buffer time settings - insufficient buffering may cause rebuffering during ad transitions"),
    (("location",), "Verify manifest update URLs - required for live stream manifest refresh"),
    (("servicedescription",), "Review ServiceDescription changes - may affect low-latency streaming expectations"),
)

SEVERITY_SOLUTIONS = {
    Severity.VERY_HIGH: "CRITICAL: This issue will likely cause playback failure - immediate fix required before deployment",
    Severity.HIGH: "HIGH PRIORITY: This issue may cause playback problems on some devices or conditions - should be fixed",
    Severity.MEDIUM: "MEDIUM: This issue may affect user experience or compatibility - recommended to fix",
    Severity.LOW: "LOW: This is a minor issue or best practice recommendation - fix when convenient",
}

GENERIC_SOLUTION = "Review the issue details and update the SSAI manifest to ensure compatibility and compliance"


def map_severity_to_type(severity: Severity) -> str:
    """Display type of a deep validation finding."""
    return SEVERITY_TYPES.get(severity, "UNKNOWN")


def generate_solution(message: str, severity: Severity, solution: str | None = None) -> str:
    """Remediation text for a record.

    An explicit solution is returned as-is. Otherwise the text is chosen by
    message keywords, falling back to a severity-based recommendation.
    """
    if solution:
        return solution

    text = message.lower()
    # Element names are matched without the space some messages put in them
    compact = text.replace(" ", "")
    for keywords, remedy in KEYWORD_SOLUTIONS:
        if all(k in text or (" " not in k and k in compact) for k in keywords):
            return remedy

    return SEVERITY_SOLUTIONS.get(severity, GENERIC_SOLUTION)
