"""ContentProtection checks.

Every DRM system protecting the source must survive ad insertion with its
initialization data (PSSH) and default key id unchanged.
"""

import base64
import binascii
import re

from ..mpd_parser.xml_parser import RawNode
from ..shared.models import Finding, Severity
from .common import child_text

WIDEVINE = "urn:uuid:edef8ba9-79d6-4ace-a3c8-27dcd51d21ed"
PLAYREADY = "urn:uuid:9a04f079-9840-4286-ab92-e65be0885f95"
FAIRPLAY = "urn:uuid:94ce86fb-07ff-4f43-adb8-93d2fa968ca2"
COMMON_ENCRYPTION = "urn:mpeg:dash:mp4protection:2011"

DRM_SYSTEM_NAMES = {
    WIDEVINE: "Widevine",
    PLAYREADY: "PlayReady",
    FAIRPLAY: "FairPlay",
    COMMON_ENCRYPTION: "Common Encryption",
}

UUID_SCHEME_PATTERN = re.compile(
    r"^urn:uuid:[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
HEX_KID_PATTERN = re.compile(r"^[0-9a-f]{32}$", re.IGNORECASE)

# Smallest possible pssh box: header, version/flags, system id, data size
MIN_PSSH_BOX_SIZE = 32
PSSH_BOX_TYPE = b"pssh"


def _scheme_key(scheme: object) -> str:
    return str(scheme or "").lower()


def drm_system_name(scheme: str | None) -> str:
    """Readable name for well-known scheme ids, else the scheme itself."""
    return DRM_SYSTEM_NAMES.get(_scheme_key(scheme), str(scheme))


def is_standard_scheme(scheme: str | None) -> bool:
    if not scheme:
        return False
    return _scheme_key(scheme) in DRM_SYSTEM_NAMES or bool(UUID_SCHEME_PATTERN.match(scheme))


def validate_pssh(pssh: str | None) -> str | None:
    """Structurally validate base64 PSSH box data.

    Returns:
        None when valid (or absent), otherwise the reason
    """
    if not pssh:
        return None
    try:
        decoded = base64.b64decode(pssh, validate=True)
    except (binascii.Error, ValueError):
        return "Invalid base64 encoding"
    if len(decoded) < MIN_PSSH_BOX_SIZE:
        return "PSSH data too short"
    if decoded[4:8] != PSSH_BOX_TYPE:
        return "Invalid PSSH box header"
    return None


def is_valid_key_id(key_id: object) -> bool:
    """A KID is 32 hex digits, optionally in UUID form."""
    if key_id is None or key_id == "":
        return False
    return bool(HEX_KID_PATTERN.match(str(key_id).replace("-", "")))


def protection_descriptors(adaptation_set: RawNode) -> list[RawNode]:
    """ContentProtection of the set, else of its first protected representation."""
    descriptors = adaptation_set.all("ContentProtection")
    if descriptors:
        return descriptors
    for representation in adaptation_set.all("Representation"):
        descriptors = representation.all("ContentProtection")
        if descriptors:
            return descriptors
    return []


def _pssh(descriptor: RawNode) -> str | None:
    return child_text(descriptor, "pssh")


def check_content_protection(
    source_descriptors: list[RawNode],
    ssai_descriptors: list[RawNode],
    location: str,
) -> list[Finding]:
    """Compare the ContentProtection lists of a matched adaptation set pair.

    Systems present on both sides are compared in depth; systems missing
    from SSAI are left to ``check_missing_drm_systems``. Scheme ids are
    compared case-insensitively.
    """
    if not source_descriptors:
        return []

    findings = []
    ssai_by_scheme: dict[str, RawNode] = {}
    for descriptor in ssai_descriptors:
        ssai_by_scheme.setdefault(_scheme_key(descriptor.get("schemeIdUri")), descriptor)
    source_keys = {_scheme_key(d.get("schemeIdUri")) for d in source_descriptors}
    seen: set[str] = set()

    for descriptor in source_descriptors:
        scheme = descriptor.get("schemeIdUri")
        key = _scheme_key(scheme)
        if key in seen:
            continue
        seen.add(key)

        counterpart = ssai_by_scheme.get(key)
        if counterpart is None:
            continue

        findings.extend(check_drm_system(descriptor, counterpart, location))

    added = [
        drm_system_name(d.get("schemeIdUri"))
        for key, d in ssai_by_scheme.items()
        if key and key not in source_keys
    ]
    if added:
        findings.append(
            Finding(
                kind="DRM_SYSTEMS_ADDED",
                severity=Severity.INFO,
                message="SSAI added DRM systems",
                location=location,
                attribute="ContentProtection",
                actual=added,
            )
        )

    return findings


def check_missing_drm_systems(
    pairs: list[tuple[str, RawNode, RawNode]],
    location: str,
) -> list[Finding]:
    """Report each source DRM system the SSAI period dropped, once per period.

    Args:
        pairs: (location, source, SSAI) of every matched adaptation set
        location: Period path used on the findings

    Returns:
        One VeryHigh finding per missing scheme, listing the affected
        adaptation sets
    """
    schemes: dict[str, str] = {}
    affected: dict[str, list[str]] = {}

    for as_location, source_as, ssai_as in pairs:
        ssai_keys = {_scheme_key(d.get("schemeIdUri")) for d in protection_descriptors(ssai_as)}
        for descriptor in protection_descriptors(source_as):
            key = _scheme_key(descriptor.get("schemeIdUri"))
            if key in ssai_keys:
                continue
            schemes.setdefault(key, descriptor.get("schemeIdUri"))
            locations = affected.setdefault(key, [])
            if as_location not in locations:
                locations.append(as_location)

    findings = []
    for key, locations in affected.items():
        scheme = schemes[key]
        name = drm_system_name(scheme)
        findings.append(
            Finding(
                kind="DRM_SYSTEM_MISSING",
                severity=Severity.VERY_HIGH,
                message=f"Missing DRM system: {name}",
                location=location,
                attribute=f"ContentProtection@{key}",
                expected=scheme,
                actual="Missing",
                impact=f"{name} protected content cannot be played",
                details={"adaptationSets": locations},
            )
        )
    return findings


def check_drm_system(source: RawNode, ssai: RawNode, location: str) -> list[Finding]:
    """Compare one DRM system present on both sides."""
    findings = []
    scheme = source.get("schemeIdUri")
    key = _scheme_key(scheme)
    name = drm_system_name(scheme)
    attribute = f"ContentProtection@{key}"
    source_pssh = _pssh(source)
    ssai_pssh = _pssh(ssai)
    source_kid = source.get("default_KID")

    if not is_standard_scheme(scheme):
        findings.append(
            Finding(
                kind="DRM_SCHEME_NON_STANDARD",
                severity=Severity.MEDIUM,
                message=f"Non-standard DRM schemeIdUri: {scheme}",
                location=location,
                attribute=attribute,
                actual=scheme,
                impact="May not be recognized by all players",
            )
        )

    reason = validate_pssh(source_pssh)
    if reason is not None:
        findings.append(
            Finding(
                kind="PSSH_INVALID",
                severity=Severity.HIGH,
                message=f"Invalid PSSH data for {name}",
                location=location,
                attribute=f"{attribute}.pssh",
                details={"reason": reason},
            )
        )

    if source_kid is not None and not is_valid_key_id(source_kid):
        findings.append(
            Finding(
                kind="KID_INVALID",
                severity=Severity.HIGH,
                message=f"Invalid default_KID format for {name}",
                location=location,
                attribute=f"{attribute}.default_KID",
                expected="32-character hex string or UUID format",
                actual=source_kid,
            )
        )

    if key == WIDEVINE and not source_pssh and not ssai_pssh:
        findings.append(
            Finding(
                kind="WIDEVINE_PSSH_MISSING",
                severity=Severity.MEDIUM,
                message="Widevine ContentProtection missing PSSH",
                location=location,
                attribute=f"{attribute}.pssh",
                impact="PSSH may be provided in initialization segment instead",
            )
        )

    value = source.get("value")
    if value not in (None, "") and value != ssai.get("value"):
        findings.append(
            Finding(
                kind="DRM_VALUE_MISMATCH",
                severity=Severity.MEDIUM,
                message="PlayReady value attribute mismatch" if key == PLAYREADY else "DRM system value mismatch",
                location=location,
                attribute=f"{attribute}.value",
                expected=value,
                actual=ssai.get("value"),
            )
        )

    if source_pssh and source_pssh != ssai_pssh:
        findings.append(
            Finding(
                kind="PSSH_MISMATCH",
                severity=Severity.VERY_HIGH,
                message="PSSH mismatch for DRM system",
                location=location,
                attribute=f"{attribute}.pssh",
                expected=name,
                impact="DRM initialization data must match exactly",
            )
        )

    if source_kid is not None and source_kid != ssai.get("default_KID"):
        findings.append(
            Finding(
                kind="KID_MISMATCH",
                severity=Severity.VERY_HIGH,
                message="default_KID mismatch",
                location=location,
                attribute=f"{attribute}.default_KID",
                expected=source_kid,
                actual=ssai.get("default_KID"),
            )
        )

    return findings
