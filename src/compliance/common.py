"""Helpers shared by the compliance checks.

Covers finding collection with per-check isolation, element path labels,
Role/codec accessors and the semantic adaptation-set matcher.
"""

from typing import Any, Callable, NamedTuple
from urllib.parse import urlparse

from aws_lambda_powertools import Logger

from ..mpd_parser.xml_parser import RawNode
from ..shared.models import Finding, Severity, SeveritySummary

logger = Logger(service="ssai-manifest-validator", child=True)

DEFAULT_ROLE = "main"
UNDETERMINED_LANGUAGE = "und"


class FindingCollector:
    """Accumulates findings, partitioned by severity.

    VeryHigh and High findings are errors; Medium, Low and Info are warnings.
    """

    def __init__(self) -> None:
        self.errors: list[Finding] = []
        self.warnings: list[Finding] = []

    def add(self, finding: Finding | None) -> None:
        if finding is None:
            return
        if finding.severity.is_critical:
            self.errors.append(finding)
        else:
            self.warnings.append(finding)

    def extend(self, findings: list[Finding]) -> None:
        for finding in findings:
            self.add(finding)

    def run(self, name: str, check: Callable[..., list[Finding]], *args: Any, **kwargs: Any) -> list[Finding]:
        """Run one check in isolation.

        A failing check is logged and recorded as a single HIGH finding so the
        remaining checks still run.

        Returns:
            Findings produced by the check (empty if it failed)
        """
        try:
            findings = check(*args, **kwargs)
        except Exception as e:
            logger.exception("Compliance check failed", extra={"check": name})
            self.add(
                Finding(
                    kind="CHECK_FAILED",
                    severity=Severity.HIGH,
                    message=f"Validation error for {name}: {e}",
                    attribute=name,
                    expected="Valid value",
                    actual="Error during validation",
                )
            )
            return []

        self.extend(findings)
        return findings


def generate_summary(
    errors: list[Finding],
    warnings: list[Finding],
    ad_periods: int = 0,
) -> SeveritySummary:
    """Tabulate findings per severity."""
    breakdown = {severity: 0 for severity in Severity}
    for finding in [*errors, *warnings]:
        breakdown[finding.severity] += 1

    critical = breakdown[Severity.VERY_HIGH] + breakdown[Severity.HIGH]
    return SeveritySummary(
        total_issues=len(errors) + len(warnings),
        total_errors=len(errors),
        total_warnings=len(warnings),
        critical_issues=critical,
        severity_breakdown=breakdown,
        is_valid=critical == 0,
        ad_periods_detected=ad_periods,
    )


# =============================================================================
# Element labels
# =============================================================================


def label(node: RawNode, index: int, attribute: str = "id") -> str:
    """Identifier of an element, or its position when it has none."""
    value = node.get(attribute)
    if value is None or value == "":
        return f"index_{index}"
    return str(value)


def period_location(period: RawNode, index: int) -> str:
    return f"Period[{label(period, index)}]"


def text_of(value: Any) -> str | None:
    """Render an attribute value for messages, keeping None."""
    return None if value is None else str(value)


def child_text(node: RawNode, tag: str) -> str | None:
    child = node.first(tag)
    return child.text if child is not None else None


def find_by_scheme(nodes: list[RawNode], scheme: Any) -> RawNode | None:
    """First descriptor with the given schemeIdUri."""
    for node in nodes:
        if node.get("schemeIdUri") == scheme:
            return node
    return None


def is_valid_url(value: Any) -> bool:
    """Check for an absolute URL with scheme and host."""
    if not value or not isinstance(value, str):
        return False
    parsed = urlparse(value.strip())
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


# =============================================================================
# AdaptationSet semantics
# =============================================================================


def content_type_of(adaptation_set: RawNode) -> str | None:
    """contentType attribute, else the major type of mimeType."""
    content_type = adaptation_set.get("contentType")
    if content_type:
        return str(content_type)
    mime_type = adaptation_set.get("mimeType")
    if isinstance(mime_type, str) and mime_type:
        return mime_type.split("/")[0]
    return None


def role_values(node: RawNode) -> list[str]:
    """Sorted Role values; a node without Role is the main role."""
    roles = node.all("Role")
    if not roles:
        return [DEFAULT_ROLE]
    return sorted(str(r.get("value")) for r in roles if r.get("value") not in (None, ""))


def role_string(node: RawNode) -> str:
    return ",".join(role_values(node)) or DEFAULT_ROLE


def codec_base(codecs: Any) -> str:
    """Codec family: the part of the codec string before the first dot."""
    if codecs is None:
        return ""
    return str(codecs).split(".")[0]


def language_of(adaptation_set: RawNode) -> str:
    lang = adaptation_set.get("lang")
    return str(lang) if lang not in (None, "") else UNDETERMINED_LANGUAGE


def semantic_key(adaptation_set: RawNode) -> str:
    """Composite key ``contentType:lang:role:codecFamily``."""
    return ":".join(
        [
            content_type_of(adaptation_set) or "unknown",
            language_of(adaptation_set),
            role_string(adaptation_set),
            codec_base(adaptation_set.get("codecs")) or "unknown",
        ]
    )


def build_semantic_map(adaptation_sets: list[RawNode]) -> dict[str, RawNode]:
    """Key adaptation sets semantically; repeated keys get a ``_n`` suffix."""
    semantic_map: dict[str, RawNode] = {}
    for adaptation_set in adaptation_sets:
        key = semantic_key(adaptation_set)
        if key in semantic_map:
            index = 1
            while f"{key}_{index}" in semantic_map:
                index += 1
            key = f"{key}_{index}"
        semantic_map[key] = adaptation_set
    return semantic_map


class AdaptationSetMatch(NamedTuple):
    """A source adaptation set and its SSAI counterpart (None when missing)."""

    key: str
    source: RawNode
    ssai: RawNode | None
    matched_key: str | None
    fuzzy: bool


def match_adaptation_sets(source_sets: list[RawNode], ssai_sets: list[RawNode]) -> list[AdaptationSetMatch]:
    """Pair adaptation sets by semantic key.

    An exact key match wins; otherwise the first SSAI set agreeing on
    content type, language and role is taken (codec family relaxed).
    """
    source_map = build_semantic_map(source_sets)
    ssai_map = build_semantic_map(ssai_sets)
    matches = []

    for key, source in source_map.items():
        if key in ssai_map:
            matches.append(AdaptationSetMatch(key, source, ssai_map[key], key, False))
            continue

        parts = key.split(":")
        prefix = ":".join(parts[:3]) + ":"
        fuzzy_key = next((k for k in ssai_map if k.startswith(prefix)), None)
        if fuzzy_key is not None:
            matches.append(AdaptationSetMatch(key, source, ssai_map[fuzzy_key], fuzzy_key, True))
        else:
            matches.append(AdaptationSetMatch(key, source, None, None, False))

    return matches


def adaptation_set_location(period_location: str, key: str) -> str:
    return f"{period_location}.AdaptationSet[{key}]"


def parse_frame_rate(value: Any) -> float | None:
    """Parse ``30``, ``29.97`` or ``30000/1001``."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value)
    try:
        if "/" in text:
            numerator, denominator = (float(p) for p in text.split("/", 1))
            return numerator / denominator if denominator else None
        return float(text)
    except ValueError:
        return None
