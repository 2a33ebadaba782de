"""Analysis orchestrator.

Runs parse -> normalize -> compare -> rules for one manifest (optionally
against the previous refresh of the same stream) and shapes the result:

    {success, normalized, comparison, rules, summary, metadata}

Parse and analysis failures never propagate; they become
``{success: false, error, timestamp}``.
"""

from datetime import datetime, timezone
from typing import Any

from aws_lambda_powertools import Logger

from ..comparator.diff import MPDComparison, compare_mpds
from ..mpd_parser.normalizer import normalize_mpd
from ..mpd_parser.validators import validate_mpd_schema
from ..mpd_parser.xml_parser import parse_mpd_xml
from ..rule_engine.rules import run_all_rules
from ..shared.config import get_settings
from ..shared.exceptions import ManifestParseError
from ..shared.models import AnalysisConfig, CanonicalMPD, ContentType, RuleFinding, RuleLevel

logger = Logger(service="ssai-manifest-validator", child=True)

_FIELD_BY_ALIAS = {field.alias: name for name, field in AnalysisConfig.model_fields.items() if field.alias}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_rule_config(overrides: dict[str, Any] | None = None) -> AnalysisConfig:
    """Merge user overrides over the environment defaults.

    Keys may use either the camelCase names of the JSON interface
    (``minSegmentDuration``) or the Python field names. Unknown keys are
    ignored with a warning.

    Raises:
        pydantic.ValidationError: If a merged value is out of range
    """
    values = AnalysisConfig.from_settings(get_settings()).model_dump()
    for key, value in (overrides or {}).items():
        name = _FIELD_BY_ALIAS.get(key, key)
        if name not in AnalysisConfig.model_fields:
            logger.warning("Ignoring unknown config override", extra={"key": key})
            continue
        values[name] = value
    return AnalysisConfig(**values)


def _load(xml: str | bytes) -> CanonicalMPD:
    xsd_path = get_settings().mpd_xsd_path
    if xsd_path:
        validate_mpd_schema(xml, xsd_path)
    return normalize_mpd(parse_mpd_xml(xml))


def analyze_mpd(
    xml: str | bytes,
    previous_xml: str | bytes | None = None,
    config: AnalysisConfig | None = None,
) -> dict[str, Any]:
    """Analyze one manifest.

    Args:
        xml: Current MPD document
        previous_xml: Previous refresh of the same stream, if any
        config: Rule thresholds (environment defaults when omitted)

    Returns:
        JSON-ready analysis result with camelCase keys
    """
    config = config or get_rule_config()

    try:
        current = _load(xml)
        previous = _load(previous_xml) if previous_xml else None
    except ManifestParseError as e:
        logger.warning("Manifest could not be parsed", extra={"error": e.to_dict()})
        return {"success": False, "error": e.message, "timestamp": _now()}
    except Exception as e:
        logger.exception("Manifest could not be normalized")
        return {"success": False, "error": f"Normalization failed: {e}", "timestamp": _now()}

    try:
        comparison = compare_mpds(previous, current) if previous is not None else None
        rules = run_all_rules(current, previous, config)
    except Exception as e:
        logger.exception("Manifest analysis failed")
        return {"success": False, "error": f"Analysis failed: {e}", "timestamp": _now()}

    logger.info(
        "Manifest analysis complete",
        extra={
            "periods": len(current.periods),
            "rule_findings": len(rules),
            "has_comparison": comparison is not None,
        },
    )

    return {
        "success": True,
        "normalized": current.model_dump(mode="json", by_alias=True),
        "comparison": comparison.model_dump(mode="json", by_alias=True) if comparison else None,
        "rules": [r.model_dump(mode="json", by_alias=True) for r in rules],
        "summary": generate_summary(current, comparison, rules),
        "metadata": {
            "timestamp": _now(),
            "periodsCount": len(current.periods),
            "hasComparison": comparison is not None,
            "rulesExecuted": len(rules),
        },
    }


def analyze_mpds(
    manifests: list[dict[str, Any]],
    config: AnalysisConfig | None = None,
) -> list[dict[str, Any]]:
    """Analyze successive refreshes of one stream in order.

    Each successfully parsed manifest becomes the previous manifest of the
    next one.

    Args:
        manifests: Items of the form ``{"xml": ..., "id": ...}``
        config: Rule thresholds shared by every analysis

    Returns:
        One result per manifest, each tagged with its ``id``
    """
    config = config or get_rule_config()
    results = []
    previous_xml = None

    for item in manifests:
        result = analyze_mpd(item["xml"], previous_xml, config)
        result["id"] = item.get("id")
        results.append(result)
        if result["success"]:
            previous_xml = item["xml"]

    return results


def generate_summary(
    mpd: CanonicalMPD,
    comparison: MPDComparison | None,
    rules: list[RuleFinding],
) -> dict[str, Any]:
    """Counts of periods, adaptations, segments, rule findings and changes."""
    adaptations = {t.value: 0 for t in ContentType}
    segments_by_type = {t.value: 0 for t in ContentType}

    for period in mpd.periods:
        for adaptation in period.adaptation_sets:
            adaptations[adaptation.type.value] += 1
            segments_by_type[adaptation.type.value] += sum(len(r.segments) for r in adaptation.representations)

    with_drm = sum(1 for p in mpd.periods if p.drm_present)
    summary: dict[str, Any] = {
        "periods": {
            "total": len(mpd.periods),
            "withDRM": with_drm,
            "withoutDRM": len(mpd.periods) - with_drm,
        },
        "adaptations": adaptations,
        "segments": {
            "total": sum(segments_by_type.values()),
            "byType": segments_by_type,
        },
        "rules": {
            "total": len(rules),
            "errors": sum(1 for r in rules if r.level == RuleLevel.ERROR),
            "warnings": sum(1 for r in rules if r.level == RuleLevel.WARNING),
        },
    }

    if comparison is not None:
        summary["changes"] = {
            "publishTimeChanged": comparison.publish_time_changed,
            "periodsAdded": len(comparison.periods_added),
            "periodsRemoved": len(comparison.periods_removed),
            "periodsModified": len(comparison.periods_modified),
            "segmentsAdded": comparison.segment_changes.total_added,
            "segmentsRemoved": comparison.segment_changes.total_removed,
        }

    return summary
