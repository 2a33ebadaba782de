"""Enhanced comparison of a source and an SSAI manifest.

Combines the structural pass with the deep compliance validator and
deduplicates the union on a structured key.
"""

from datetime import datetime, timezone

from aws_lambda_powertools import Logger

from ..compliance.validator import validate_ssai_manifest
from ..mpd_parser.xml_parser import parse_mpd_xml
from ..shared.models import AnalysisConfig, ComparisonReport, Difference, Finding, Severity, SeveritySummary
from .remediation import generate_solution, map_severity_to_type
from .structural import run_structural_pass

logger = Logger(service="ssai-manifest-validator", child=True)

DedupKey = tuple[str, str, str]


def finding_to_difference(finding: Finding) -> Difference:
    """Convert a deep validation finding to a comparison record."""
    return Difference(
        kind=finding.kind,
        type=map_severity_to_type(finding.severity),
        tag=finding.location,
        attribute=finding.attribute,
        source_value=finding.expected,
        ssai_value=finding.actual,
        severity=finding.severity,
        message=finding.message,
        solution=generate_solution(finding.message, finding.severity),
        impact=finding.impact,
    )


def dedup_key(record: Difference) -> DedupKey:
    """Case-insensitive (kind, tag, attribute) key; the message stands in for a missing attribute."""
    discriminator = record.attribute or record.message
    return record.kind.lower(), record.tag.lower(), discriminator.lower()


def merge_records(existing: Difference, incoming: Difference) -> Difference:
    """Keep the richer of two colliding records.

    The longer remediation text and any impact note survive, and the
    severity is the higher of the two.
    """
    updates = {}
    if incoming.impact and not existing.impact:
        updates["impact"] = incoming.impact
    if len(incoming.solution) > len(existing.solution):
        updates["solution"] = incoming.solution
    if incoming.severity.rank > existing.severity.rank:
        updates["severity"] = incoming.severity
    return existing.model_copy(update=updates) if updates else existing


def deduplicate(records: list[Difference]) -> list[Difference]:
    """Collapse records sharing a dedup key, preserving first-seen order."""
    merged: dict[DedupKey, Difference] = {}
    for record in records:
        key = dedup_key(record)
        if key in merged:
            merged[key] = merge_records(merged[key], record)
        else:
            merged[key] = record
    return list(merged.values())


def compare_manifests(
    source_xml: str | bytes,
    ssai_xml: str | bytes,
    config: AnalysisConfig | None = None,
) -> ComparisonReport:
    """Run the enhanced comparison.

    Args:
        source_xml: Source MPD document
        ssai_xml: SSAI MPD document
        config: Tolerances; defaults apply when omitted

    Returns:
        Deduplicated differences and the deep validator's severity summary.
        Any failure, including unparsable input, yields a single
        ``Enhanced comparison failed`` record.
    """
    config = config or AnalysisConfig()
    timestamp = datetime.now(timezone.utc).isoformat()

    try:
        source_root = parse_mpd_xml(source_xml)
        ssai_root = parse_mpd_xml(ssai_xml)

        structural = run_structural_pass(source_root, ssai_root, config)
        report = validate_ssai_manifest(source_root, ssai_root, config)
        deep = [finding_to_difference(f) for f in report.findings]
        differences = deduplicate([*structural, *deep])

    except Exception as e:
        logger.exception("Enhanced comparison failed")
        failure = Difference(
            kind="COMPARISON_FAILED",
            type="ERROR",
            tag="Enhanced Comparison",
            severity=Severity.HIGH,
            message=f"Enhanced comparison failed: {e}",
            solution="Check manifest format and structure",
        )
        return ComparisonReport(
            differences=[failure],
            validation_summary=SeveritySummary(
                total_issues=1,
                total_errors=1,
                critical_issues=1,
                severity_breakdown={severity: int(severity == Severity.HIGH) for severity in Severity},
                is_valid=False,
            ),
            timestamp=timestamp,
        )

    logger.info(
        "Enhanced comparison complete",
        extra={
            "structural": len(structural),
            "deep": len(deep),
            "differences": len(differences),
        },
    )
    return ComparisonReport(differences=differences, validation_summary=report.summary, timestamp=timestamp)
