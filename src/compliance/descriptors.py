"""Essential and Supplemental property comparison.

Shared by the MPD-level and AdaptationSet-level checks. A removed
EssentialProperty breaks playback for players that must understand it; a
removed SupplementalProperty only loses optional metadata.
"""

from ..mpd_parser.xml_parser import RawNode
from ..shared.models import Finding, Severity
from .common import find_by_scheme

ESSENTIAL = "EssentialProperty"
SUPPLEMENTAL = "SupplementalProperty"


def compare_descriptors(
    source: RawNode,
    ssai: RawNode,
    tag: str,
    location: str,
    scope: str = "",
) -> list[Finding]:
    """Check that every source descriptor of ``tag`` survives in SSAI.

    Args:
        source: Element owning the source descriptors (MPD or AdaptationSet)
        ssai: Matching SSAI element
        tag: ``EssentialProperty`` or ``SupplementalProperty``
        location: Element path for the findings
        scope: Message prefix, e.g. ``"MPD "``

    Returns:
        Findings for removed descriptors and changed values
    """
    essential = tag == ESSENTIAL
    ssai_descriptors = ssai.all(tag)
    findings = []

    for descriptor in source.all(tag):
        scheme = descriptor.get("schemeIdUri")
        value = descriptor.get("value")
        counterpart = find_by_scheme(ssai_descriptors, scheme)

        if counterpart is None:
            findings.append(
                Finding(
                    kind="DESCRIPTOR_REMOVED",
                    severity=Severity.VERY_HIGH if essential else Severity.LOW,
                    message=f"{scope}{tag} removed: {scheme}",
                    location=location,
                    attribute=f"{tag}@{scheme}",
                    expected=f"{scheme}={value}" if value is not None else scheme,
                    actual="Missing",
                    impact=(
                        "Player MUST understand this property - removal breaks playback"
                        if essential
                        else "Optional metadata, not critical for playback"
                    ),
                )
            )
            continue

        if value in (None, "") or value == counterpart.get("value"):
            continue

        findings.append(
            Finding(
                kind="DESCRIPTOR_VALUE_MISMATCH",
                severity=Severity.VERY_HIGH if essential else Severity.MEDIUM,
                message=f"{scope}{tag} value mismatch" if essential else f"Descriptor value mismatch: {scheme}",
                location=location,
                attribute=f"{tag}@{scheme}",
                expected=value,
                actual=counterpart.get("value"),
            )
        )

    return findings
