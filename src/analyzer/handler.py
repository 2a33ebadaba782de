"""Lambda handler for SSAI manifest analysis.

Analyzes an SSAI manifest against its source:

1. Baseline analysis of the SSAI manifest (against the previous refresh if given)
2. Deep compliance validation of SSAI against source
3. Enhanced comparison (structural pass merged with the deep findings)
4. Optional report upload to S3
"""

import uuid
from typing import Any

from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext

from ..compliance.validator import validate_ssai_xml
from ..enhanced_comparison.orchestrator import compare_manifests
from ..shared.aws_clients import put_json_object
from ..shared.config import get_settings
from ..shared.exceptions import ManifestAnalysisError, ManifestParseError
from .fetcher import resolve_manifest
from .mpd_analyzer import analyze_mpd, get_rule_config

logger = Logger(service="ssai-manifest-validator")
tracer = Tracer(service="ssai-manifest-validator")
metrics = Metrics(service="ssai-manifest-validator", namespace="SSAIManifestValidation")


@logger.inject_lambda_context(log_event=True)
@tracer.capture_lambda_handler
@metrics.log_metrics(capture_cold_start_metric=True)
def handler(event: dict[str, Any], context: LambdaContext) -> dict[str, Any]:
    """Analyze an SSAI manifest.

    Args:
        event: Manifests to analyze and options
        context: Lambda context

    Returns:
        Analysis, validation and comparison reports

    Input event structure:
        {
            "ssai": {"uri": "s3://bucket/ssai.mpd"} | {"xml": "<MPD ...>"} | {"key": "ssai.mpd"},
            "source": {"uri": "s3://bucket/source.mpd"},
            "previous": {"uri": "s3://bucket/ssai-prev.mpd"},
            "config": {"minSegmentDuration": 2.0},
            "store_report": true,
            "report_id": "optional-id"
        }

    Output structure:
        {
            "report_id": "...",
            "environment": "dev",
            "is_valid": false,
            "analysis": {...},
            "validation": {...},
            "comparison": {...},
            "report_uri": "s3://reports/reports/<report_id>.json"
        }
    """
    settings = get_settings()
    report_id = event.get("report_id") or uuid.uuid4().hex

    logger.info(
        "Starting manifest analysis",
        extra={
            "report_id": report_id,
            "has_source": "source" in event,
            "has_previous": "previous" in event,
        },
    )

    try:
        config = get_rule_config(event.get("config"))

        with tracer.provider.in_subsegment("fetch_manifests"):
            ssai_xml = resolve_manifest(event.get("ssai"))
            source_xml = resolve_manifest(event.get("source"))
            previous_xml = resolve_manifest(event.get("previous"))

        if ssai_xml is None:
            raise ManifestAnalysisError(
                "Event is missing the 'ssai' manifest",
                "INVALID_EVENT",
                {"report_id": report_id},
            )

        with tracer.provider.in_subsegment("analyze_mpd"):
            analysis = analyze_mpd(ssai_xml, previous_xml, config)

        report: dict[str, Any] = {
            "report_id": report_id,
            "environment": settings.environment,
            "is_valid": analysis["success"],
            "analysis": analysis,
            "validation": None,
            "comparison": None,
        }

        if source_xml is not None and analysis["success"]:
            with tracer.provider.in_subsegment("validate_ssai"):
                validation = validate_ssai_xml(source_xml, ssai_xml, config)
            with tracer.provider.in_subsegment("compare_manifests"):
                comparison = compare_manifests(source_xml, ssai_xml, config)

            report["validation"] = validation.model_dump(mode="json", by_alias=True)
            report["comparison"] = comparison.model_dump(mode="json", by_alias=True)
            report["is_valid"] = validation.summary.is_valid

            if validation.summary.total_errors:
                metrics.add_metric(
                    name="SSAIValidationErrors",
                    unit=MetricUnit.Count,
                    value=validation.summary.total_errors,
                )

        if event.get("store_report") and settings.report_bucket:
            with tracer.provider.in_subsegment("store_report"):
                report["report_uri"] = _store_report(report_id, report)

        metrics.add_metric(
            name="ManifestAnalysisSuccess" if analysis["success"] else "ManifestAnalysisFailure",
            unit=MetricUnit.Count,
            value=1,
        )
        metrics.add_metadata(key="report_id", value=report_id)

        logger.info(
            "Manifest analysis complete",
            extra={
                "report_id": report_id,
                "is_valid": report["is_valid"],
                "rules": analysis.get("metadata", {}).get("rulesExecuted"),
            },
        )

        return report

    except ManifestParseError:
        # Raised only by the source manifest; SSAI parse errors are part of the analysis result
        logger.exception("Source manifest could not be parsed")
        metrics.add_metric(name="ManifestAnalysisFailure", unit=MetricUnit.Count, value=1)
        raise

    except ManifestAnalysisError:
        logger.exception("Manifest analysis error")
        metrics.add_metric(name="ManifestAnalysisFailure", unit=MetricUnit.Count, value=1)
        raise

    except Exception as e:
        logger.exception("Manifest analysis error")
        metrics.add_metric(name="ManifestAnalysisFailure", unit=MetricUnit.Count, value=1)
        raise ManifestAnalysisError(
            f"Manifest analysis failed: {e}",
            "ANALYSIS_ERROR",
            {"report_id": report_id, "error": str(e)},
        ) from e


@tracer.capture_method
def _store_report(report_id: str, report: dict[str, Any]) -> str:
    """Upload the report as JSON and return its S3 URI."""
    settings = get_settings()
    key = f"{settings.report_prefix.strip('/')}/{report_id}.json"
    uri = put_json_object(settings.report_bucket, key, report)
    logger.info("Stored analysis report", extra={"report_uri": uri})
    return uri
