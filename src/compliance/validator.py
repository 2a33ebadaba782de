"""Deep SSAI compliance validation.

Walks a source and an SSAI manifest side by side (root, periods, adaptation
sets, representations, segment addressing and DRM) and collects severity
graded findings. Every check runs in isolation: an exception inside one
check becomes a single HIGH finding and validation carries on.
"""

from datetime import datetime, timezone

from aws_lambda_powertools import Logger

from ..mpd_parser.xml_parser import RawNode, parse_mpd_xml
from ..shared.models import AnalysisConfig, Finding, Severity, ValidationReport
from .adaptation_sets import (
    check_adaptation_set_matches,
    check_adaptation_set_pair,
    check_adaptation_set_structure,
    pair_adaptation_sets,
)
from .common import FindingCollector, adaptation_set_location, generate_summary, period_location
from .drm import check_content_protection, check_missing_drm_systems, protection_descriptors
from .periods import (
    ad_period_summary,
    build_timeline,
    check_duration_parity,
    check_event_streams,
    check_period_structure,
    check_source_continuity,
    check_timeline_continuity,
    find_matching_period,
)
from .representations import (
    check_abr_ladder,
    check_missing_representations,
    check_representation_pair,
    check_representation_structure,
    match_representations,
    representation_location,
)
from .root import (
    check_buffer_relationships,
    check_live_nodes,
    check_manifest_refresh,
    check_root_attributes,
    check_service_description,
    check_type_compatibility,
    check_utc_timing,
)
from .segment_templates import check_segment_base, check_segment_template, effective_template

logger = Logger(service="ssai-manifest-validator", child=True)


def validate_ssai_manifest(
    source_root: RawNode,
    ssai_root: RawNode,
    config: AnalysisConfig | None = None,
) -> ValidationReport:
    """Validate an SSAI manifest against its source.

    Args:
        source_root: Parsed source MPD element
        ssai_root: Parsed SSAI MPD element
        config: Tolerances; defaults apply when omitted

    Returns:
        Report with errors (VeryHigh/High), warnings and a severity summary
    """
    config = config or AnalysisConfig()
    collector = FindingCollector()
    info: dict = {"adPeriods": 0, "adPeriodIds": []}

    try:
        collector.run("root attributes", check_root_attributes, source_root, ssai_root, config)
        collector.run("MPD type", check_type_compatibility, source_root, ssai_root)
        collector.run("live nodes", check_live_nodes, source_root, ssai_root)
        collector.run("buffer relationships", check_buffer_relationships, source_root, ssai_root)
        collector.run("UTCTiming", check_utc_timing, source_root, ssai_root)
        collector.run("manifest refresh", check_manifest_refresh, ssai_root)
        collector.run("ServiceDescription", check_service_description, source_root, ssai_root)

        source_periods = source_root.all("Period")
        ssai_periods = ssai_root.all("Period")
        _validate_period_layout(collector, source_periods, ssai_periods, config, info)

        for index, source_period in enumerate(source_periods):
            location = period_location(source_period, index)
            ssai_period = find_matching_period(source_period, ssai_periods, config.period_start_tolerance)
            if ssai_period is None:
                collector.add(
                    Finding(
                        kind="PERIOD_MISSING",
                        severity=Severity.VERY_HIGH,
                        message="Cannot find matching SSAI period for source period",
                        location=location,
                        attribute="Period",
                        expected=source_period.get("id") or f"index_{index}",
                        actual="Missing",
                    )
                )
                continue
            _validate_period(collector, source_period, ssai_period, location, config)

    except Exception as e:
        logger.exception("SSAI validation failed")
        collector.add(
            Finding(
                kind="VALIDATION_FAILED",
                severity=Severity.VERY_HIGH,
                message=f"Validation failed: {e}",
                attribute="MPD",
                expected="Valid MPD structure",
                actual="Validation error",
            )
        )

    summary = generate_summary(collector.errors, collector.warnings, ad_periods=info["adPeriods"])
    logger.info(
        "SSAI validation complete",
        extra={
            "errors": summary.total_errors,
            "warnings": summary.total_warnings,
            "is_valid": summary.is_valid,
        },
    )

    return ValidationReport(
        errors=collector.errors,
        warnings=collector.warnings,
        info=info,
        summary=summary,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


def validate_ssai_xml(
    source_xml: str | bytes,
    ssai_xml: str | bytes,
    config: AnalysisConfig | None = None,
) -> ValidationReport:
    """Parse both manifests and validate.

    Raises:
        ManifestParseError: If either document is not well-formed MPD XML
    """
    return validate_ssai_manifest(parse_mpd_xml(source_xml), parse_mpd_xml(ssai_xml), config)


def _validate_period_layout(
    collector: FindingCollector,
    source_periods: list[RawNode],
    ssai_periods: list[RawNode],
    config: AnalysisConfig,
    info: dict,
) -> None:
    collector.run("period structure", check_period_structure, source_periods, ssai_periods, config)

    source_timeline = build_timeline(source_periods)
    ssai_timeline = build_timeline(ssai_periods)
    collector.run("timeline continuity", check_timeline_continuity, ssai_timeline)
    collector.run("duration parity", check_duration_parity, source_timeline, ssai_timeline)

    ad_entries, ad_finding = ad_period_summary(ssai_timeline)
    if ad_entries:
        collector.add(ad_finding)
    info["adPeriods"] = len(ad_entries)
    info["adPeriodIds"] = [entry.id for entry in ad_entries]

    collector.run("source continuity", check_source_continuity, source_periods)


def _validate_period(
    collector: FindingCollector,
    source_period: RawNode,
    ssai_period: RawNode,
    location: str,
    config: AnalysisConfig,
) -> None:
    collector.run("event streams", check_event_streams, source_period, ssai_period, location)
    collector.run(
        "AdaptationSet structure",
        check_adaptation_set_structure,
        source_period.all("AdaptationSet"),
        ssai_period.all("AdaptationSet"),
        location,
    )

    matches = pair_adaptation_sets(source_period, ssai_period)
    collector.run("AdaptationSet matching", check_adaptation_set_matches, matches, location)

    protected_pairs = []
    for match in matches:
        if match.ssai is None:
            continue
        as_location = adaptation_set_location(location, match.key)
        protected_pairs.append((as_location, match.source, match.ssai))
        _validate_adaptation_set(collector, match.source, match.ssai, as_location, config)

    collector.run("DRM systems", check_missing_drm_systems, protected_pairs, location)


def _validate_adaptation_set(
    collector: FindingCollector,
    source_as: RawNode,
    ssai_as: RawNode,
    location: str,
    config: AnalysisConfig,
) -> None:
    collector.run("AdaptationSet attributes", check_adaptation_set_pair, source_as, ssai_as, location)

    source_reps = source_as.all("Representation")
    ssai_reps = ssai_as.all("Representation")
    collector.run("Representation structure", check_representation_structure, source_reps, ssai_reps, location)

    rep_matches = match_representations(source_reps, ssai_reps, config.bandwidth_tolerance)
    collector.run("Representation matching", check_missing_representations, rep_matches, location)

    compared_templates: set[tuple[int, int]] = set()
    for match in rep_matches:
        if match.ssai is None:
            continue
        rep_location = representation_location(location, match.source, match.index)
        collector.run(
            "Representation attributes", check_representation_pair, match.source, match.ssai, rep_location, config
        )

        source_template = effective_template(match.source, source_as)
        ssai_template = effective_template(match.ssai, ssai_as)
        if source_template is not None and ssai_template is not None:
            pair = (id(source_template), id(ssai_template))
            if pair not in compared_templates:
                compared_templates.add(pair)
                shared = source_template is source_as.first("SegmentTemplate")
                template_location = location if shared else rep_location
                collector.run(
                    "SegmentTemplate", check_segment_template, source_template, ssai_template, template_location, config
                )

        source_base = match.source.first("SegmentBase") or source_as.first("SegmentBase")
        ssai_base = match.ssai.first("SegmentBase") or ssai_as.first("SegmentBase")
        if source_base is not None and ssai_base is not None:
            collector.run("SegmentBase", check_segment_base, source_base, ssai_base, rep_location)

    collector.run("ABR ladder", check_abr_ladder, source_reps, ssai_reps, location)
    collector.run(
        "ContentProtection",
        check_content_protection,
        protection_descriptors(source_as),
        protection_descriptors(ssai_as),
        location,
    )
