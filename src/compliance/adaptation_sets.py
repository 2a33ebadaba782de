"""AdaptationSet checks.

Adaptation sets are paired by semantic key (content type, language, role,
codec family) rather than position, then compared attribute by attribute.
"""

import re
from typing import Any

from ..mpd_parser.xml_parser import RawNode
from ..shared.models import Finding, Severity
from .common import (
    AdaptationSetMatch,
    adaptation_set_location,
    child_text,
    codec_base,
    content_type_of,
    label,
    language_of,
    match_adaptation_sets,
    role_string,
    role_values,
)
from .descriptors import ESSENTIAL, SUPPLEMENTAL, compare_descriptors

VIDEO_CODEC_PREFIXES = ("avc1", "avc3", "hev1", "hvc1", "vp8", "vp9", "av01")
AUDIO_CODEC_PREFIXES = ("mp4a", "opus", "vorbis", "flac", "ac-3", "ec-3")
KNOWN_MIME_MAJOR_TYPES = ("video", "audio", "application", "text")

LANGUAGE_PATTERN = re.compile(r"^[a-z]{2,3}(-[A-Z]{2})?(-[a-z0-9]+)*$")

MPEG_CHANNEL_SCHEME = "urn:mpeg:dash:23003:3:audio_channel_configuration:2011"
MPEG_CHANNEL_LAYOUTS = {
    1: "Mono",
    2: "Stereo",
    3: "3.0",
    4: "4.0",
    5: "5.0",
    6: "5.1",
    7: "6.1",
    8: "7.1",
}

CRITICAL_ATTRIBUTES = ("mimeType", "contentType", "lang")


def validate_codecs(codecs: str | None, content_type: str | None) -> str | None:
    """Check a codec string against the known prefixes for its media type.

    Returns:
        None if the codec looks valid, otherwise the reason it does not
    """
    if not codecs:
        return "No codecs specified"
    codec = str(codecs).lower()
    media = (content_type or "").lower()
    if "video" in media and not codec.startswith(VIDEO_CODEC_PREFIXES):
        return f"Unknown video codec: {codecs}"
    if "audio" in media and not codec.startswith(AUDIO_CODEC_PREFIXES):
        return f"Unknown audio codec: {codecs}"
    return None


def is_valid_language_code(lang: str | None) -> bool:
    """Simplified RFC 5646 check."""
    if not lang:
        return False
    return lang == "und" or bool(LANGUAGE_PATTERN.match(lang))


def check_adaptation_set_structure(
    source_sets: list[RawNode],
    ssai_sets: list[RawNode],
    location: str,
) -> list[Finding]:
    """Counts, ids and declaration hygiene of the source adaptation sets."""
    findings = []

    if len(source_sets) > len(ssai_sets):
        findings.append(
            Finding(
                kind="ADAPTATION_SET_COUNT_MISMATCH",
                severity=Severity.VERY_HIGH,
                message="Missing AdaptationSets in SSAI period",
                location=location,
                attribute="AdaptationSet",
                expected=f"{len(source_sets)} AdaptationSets",
                actual=f"{len(ssai_sets)} AdaptationSets",
                impact="Media tracks missing, playback may fail",
            )
        )

    ssai_ids = {a.get("id") for a in ssai_sets if a.get("id") is not None}

    for index, adaptation_set in enumerate(source_sets):
        as_location = f"{location}.AdaptationSet[{label(adaptation_set, index)}]"
        as_id = adaptation_set.get("id")
        mime_type = adaptation_set.get("mimeType")
        codecs = adaptation_set.get("codecs")
        lang = adaptation_set.get("lang")

        if as_id is not None and as_id not in ssai_ids:
            findings.append(
                Finding(
                    kind="ADAPTATION_SET_ID_MISSING",
                    severity=Severity.MEDIUM,
                    message=f"AdaptationSet ID missing in SSAI: {as_id}",
                    location=as_location,
                    attribute="AdaptationSet.id",
                    expected=str(as_id),
                    actual="Missing",
                )
            )

        if not adaptation_set.get("contentType") and not mime_type:
            findings.append(
                Finding(
                    kind="CONTENT_TYPE_MISSING",
                    severity=Severity.HIGH,
                    message="AdaptationSet missing contentType and mimeType",
                    location=as_location,
                    attribute="contentType/mimeType",
                    expected="contentType or mimeType",
                    actual="Missing",
                    impact="Content type cannot be determined",
                )
            )

        if mime_type and not str(mime_type).startswith(KNOWN_MIME_MAJOR_TYPES):
            findings.append(
                Finding(
                    kind="UNUSUAL_MIME_TYPE",
                    severity=Severity.MEDIUM,
                    message=f"Unusual mimeType: {mime_type}",
                    location=as_location,
                    attribute="mimeType",
                    expected="Standard MIME type",
                    actual=mime_type,
                )
            )

        if not codecs:
            findings.append(
                Finding(
                    kind="CODECS_MISSING",
                    severity=Severity.MEDIUM,
                    message="AdaptationSet missing codecs attribute",
                    location=as_location,
                    attribute="codecs",
                    expected="Present",
                    actual="Missing",
                    impact="Codecs help players determine compatibility",
                )
            )
        else:
            reason = validate_codecs(codecs, adaptation_set.get("contentType") or mime_type)
            if reason is not None:
                findings.append(
                    Finding(
                        kind="INVALID_CODEC",
                        severity=Severity.MEDIUM,
                        message=f"Potentially invalid codec: {codecs}",
                        location=as_location,
                        attribute="codecs",
                        expected="Valid codec",
                        actual=codecs,
                        details={"reason": reason},
                    )
                )

        if lang and not is_valid_language_code(str(lang)):
            findings.append(
                Finding(
                    kind="INVALID_LANGUAGE",
                    severity=Severity.LOW,
                    message=f"Invalid language code: {lang}",
                    location=as_location,
                    attribute="lang",
                    expected="RFC 5646 format",
                    actual=lang,
                )
            )

        if not adaptation_set.has("segmentAlignment"):
            findings.append(
                Finding(
                    kind="SEGMENT_ALIGNMENT_MISSING",
                    severity=Severity.LOW,
                    message="AdaptationSet missing segmentAlignment attribute",
                    location=as_location,
                    attribute="segmentAlignment",
                    expected="Present",
                    actual="Missing",
                )
            )

    return findings


def check_adaptation_set_matches(matches: list[AdaptationSetMatch], location: str) -> list[Finding]:
    """Report missing and fuzzily matched adaptation sets."""
    findings = []

    for match in matches:
        as_location = adaptation_set_location(location, match.key)
        if match.ssai is None:
            source = match.source
            findings.append(
                Finding(
                    kind="ADAPTATION_SET_MISSING",
                    severity=Severity.VERY_HIGH,
                    message="Missing AdaptationSet in SSAI",
                    location=as_location,
                    attribute="AdaptationSet",
                    expected=(
                        f"{content_type_of(source) or 'unknown'} track with "
                        f"role={role_string(source)}, lang={language_of(source)}"
                    ),
                    actual="Missing",
                )
            )
        elif match.fuzzy:
            findings.append(
                Finding(
                    kind="ADAPTATION_SET_FUZZY_MATCH",
                    severity=Severity.LOW,
                    message="AdaptationSet matched with different codec",
                    location=as_location,
                    attribute="codecs",
                    expected=match.key,
                    actual=match.matched_key,
                )
            )

    return findings


def check_adaptation_set_pair(source: RawNode, ssai: RawNode, location: str) -> list[Finding]:
    """Compare one matched pair of adaptation sets."""
    findings = []
    findings.extend(_check_attributes(source, ssai, location))
    findings.extend(_check_roles(source, ssai, location))
    findings.extend(_check_accessibility(source, ssai, location))

    source_label = _label_text(source)
    if source_label and source_label != _label_text(ssai):
        findings.append(
            Finding(
                kind="LABEL_MISMATCH",
                severity=Severity.LOW,
                message="Label mismatch",
                location=location,
                attribute="Label",
                expected=source_label,
                actual=_label_text(ssai),
            )
        )

    if content_type_of(source) == "audio" or "audio" in str(source.get("mimeType") or ""):
        findings.extend(check_audio_channels(source, ssai, location))

    findings.extend(compare_descriptors(source, ssai, ESSENTIAL, location))
    findings.extend(compare_descriptors(source, ssai, SUPPLEMENTAL, location))
    return findings


def _label_text(adaptation_set: RawNode) -> str | None:
    text = child_text(adaptation_set, "Label")
    return text if text is not None else adaptation_set.get("label")


def _check_attributes(source: RawNode, ssai: RawNode, location: str) -> list[Finding]:
    findings = []

    for attribute in CRITICAL_ATTRIBUTES:
        expected = source.get(attribute)
        if expected not in (None, "") and expected != ssai.get(attribute):
            findings.append(
                Finding(
                    kind="ATTRIBUTE_MISMATCH",
                    severity=Severity.VERY_HIGH,
                    message=f"{attribute} mismatch in AdaptationSet",
                    location=location,
                    attribute=attribute,
                    expected=expected,
                    actual=ssai.get(attribute),
                )
            )

    source_codecs = source.get("codecs")
    ssai_codecs = ssai.get("codecs")
    if source_codecs and source_codecs != ssai_codecs:
        same_family = bool(ssai_codecs) and codec_base(source_codecs) == codec_base(ssai_codecs)
        findings.append(
            Finding(
                kind="CODEC_PROFILE_MISMATCH" if same_family else "CODEC_FAMILY_MISMATCH",
                severity=Severity.MEDIUM if same_family else Severity.VERY_HIGH,
                message="Codec profile/level mismatch" if same_family else "codecs mismatch in AdaptationSet",
                location=location,
                attribute="codecs",
                expected=source_codecs,
                actual=ssai_codecs,
            )
        )

    if source.has("segmentAlignment") and source.get("segmentAlignment") != ssai.get("segmentAlignment"):
        findings.append(
            Finding(
                kind="ATTRIBUTE_MISMATCH",
                severity=Severity.HIGH,
                message="segmentAlignment mismatch",
                location=location,
                attribute="segmentAlignment",
                expected=source.get("segmentAlignment"),
                actual=ssai.get("segmentAlignment"),
            )
        )

    return findings


def _check_roles(source: RawNode, ssai: RawNode, location: str) -> list[Finding]:
    source_roles = role_values(source)
    ssai_roles = role_values(ssai)
    if source_roles == ssai_roles:
        return []
    return [
        Finding(
            kind="ROLE_MISMATCH",
            severity=Severity.HIGH,
            message="Role mismatch",
            location=location,
            attribute="Role",
            expected=source_roles,
            actual=ssai_roles,
        )
    ]


def _check_accessibility(source: RawNode, ssai: RawNode, location: str) -> list[Finding]:
    ssai_schemes = {a.get("schemeIdUri") for a in ssai.all("Accessibility")}
    findings = []
    for scheme in sorted({str(a.get("schemeIdUri")) for a in source.all("Accessibility") if a.get("schemeIdUri")}):
        if scheme not in ssai_schemes:
            findings.append(
                Finding(
                    kind="ACCESSIBILITY_REMOVED",
                    severity=Severity.HIGH,
                    message=f"Accessibility feature removed: {scheme}",
                    location=location,
                    attribute=f"Accessibility@{scheme}",
                    expected=scheme,
                    actual="Missing",
                    impact="May violate accessibility requirements",
                )
            )
    return findings


# =============================================================================
# Audio channels
# =============================================================================


def _channel_configuration(adaptation_set: RawNode) -> RawNode | None:
    """AudioChannelConfiguration of the set, else of its first representation."""
    configuration = adaptation_set.first("AudioChannelConfiguration")
    if configuration is not None:
        return configuration
    for representation in adaptation_set.all("Representation"):
        configuration = representation.first("AudioChannelConfiguration")
        if configuration is not None:
            return configuration
    return None


def compare_channel_values(scheme: str | None, source_value: Any, ssai_value: Any) -> tuple[bool, str | None]:
    """Decide whether two channel configuration values are compatible.

    Returns:
        (compatible, reason). A compatible pair with a reason is a downmix.
    """
    if not scheme:
        return False, "No schemeIdUri specified"

    if scheme == MPEG_CHANNEL_SCHEME:
        if source_value == ssai_value:
            return True, None
        source_layout = MPEG_CHANNEL_LAYOUTS.get(source_value)
        ssai_layout = MPEG_CHANNEL_LAYOUTS.get(ssai_value)
        if source_layout is None or ssai_layout is None:
            return False, f"Invalid MPEG channel configuration: {source_value} vs {ssai_value}"
        if ssai_value < source_value:
            return True, f"Downmix from {source_layout} to {ssai_layout}"
        return False, f"Upmix from {source_layout} to {ssai_layout} not recommended"

    lowered = scheme.lower()
    if "dolby" in lowered or "dts" in lowered:
        if source_value == ssai_value:
            return True, None
        family = "Dolby" if "dolby" in lowered else "DTS"
        return False, f"{family} audio configurations must match exactly"

    if source_value == ssai_value:
        return True, None
    if isinstance(source_value, int) and isinstance(ssai_value, int):
        return False, f"Channel count mismatch: {source_value} vs {ssai_value}"
    return False, f"Unknown channel configuration format for scheme {scheme}"


def check_audio_channels(source: RawNode, ssai: RawNode, location: str) -> list[Finding]:
    """Scheme-aware AudioChannelConfiguration comparison."""
    source_config = _channel_configuration(source)
    ssai_config = _channel_configuration(ssai)

    if source_config is None and ssai_config is None:
        return []

    if ssai_config is None:
        return [
            Finding(
                kind="AUDIO_CHANNELS_REMOVED",
                severity=Severity.HIGH,
                message="AudioChannelConfiguration removed in SSAI",
                location=location,
                attribute="AudioChannelConfiguration",
                expected=f"{source_config.get('schemeIdUri')}: {source_config.get('value')}",
                actual="Missing",
                impact="Audio channel information lost",
            )
        ]

    if source_config is None:
        return [
            Finding(
                kind="AUDIO_CHANNELS_ADDED",
                severity=Severity.INFO,
                message="AudioChannelConfiguration added in SSAI",
                location=location,
                attribute="AudioChannelConfiguration",
                actual=f"{ssai_config.get('schemeIdUri')}: {ssai_config.get('value')}",
            )
        ]

    findings = []
    scheme = source_config.get("schemeIdUri")
    if scheme != ssai_config.get("schemeIdUri"):
        findings.append(
            Finding(
                kind="AUDIO_CHANNEL_SCHEME_MISMATCH",
                severity=Severity.HIGH,
                message="AudioChannelConfiguration schemeIdUri mismatch",
                location=location,
                attribute="AudioChannelConfiguration.schemeIdUri",
                expected=scheme,
                actual=ssai_config.get("schemeIdUri"),
                impact="Different audio channel interpretation",
            )
        )

    source_value = source_config.get("value")
    ssai_value = ssai_config.get("value")
    if source_value == ssai_value:
        return findings

    compatible, reason = compare_channel_values(scheme, source_value, ssai_value)
    findings.append(
        Finding(
            kind="AUDIO_CHANNEL_MISMATCH",
            severity=Severity.MEDIUM if compatible else Severity.HIGH,
            message="Audio channel configuration changed" if compatible else "Incompatible audio channel configuration",
            location=location,
            attribute="AudioChannelConfiguration.value",
            expected=source_value,
            actual=ssai_value,
            details={"scheme": scheme, "reason": reason},
        )
    )
    return findings


def pair_adaptation_sets(source_period: RawNode, ssai_period: RawNode) -> list[AdaptationSetMatch]:
    return match_adaptation_sets(source_period.all("AdaptationSet"), ssai_period.all("AdaptationSet"))
