"""Manifest analysis entry points.

This module handles:
- Parse, normalize, compare and rule orchestration per manifest
- Fetching collected manifests from S3
- The Lambda handler tying analysis, validation and comparison together
"""

from .fetcher import fetch_manifest, resolve_manifest
from .mpd_analyzer import analyze_mpd, analyze_mpds, generate_summary, get_rule_config

__all__ = [
    "analyze_mpd",
    "analyze_mpds",
    "generate_summary",
    "get_rule_config",
    "fetch_manifest",
    "resolve_manifest",
]
