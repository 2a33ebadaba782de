"""Enhanced comparison module.

This module handles:
- The independent structural pass
- Merging it with the deep compliance validator
- Structured deduplication and remediation text
"""

from .orchestrator import compare_manifests, deduplicate, dedup_key, finding_to_difference
from .remediation import generate_solution, map_severity_to_type
from .structural import run_structural_pass

__all__ = [
    "compare_manifests",
    "deduplicate",
    "dedup_key",
    "finding_to_difference",
    "generate_solution",
    "map_severity_to_type",
    "run_structural_pass",
]
