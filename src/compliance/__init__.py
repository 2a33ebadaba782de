"""SSAI compliance validation module.

This module handles:
- Root, live and timing attribute checks
- Period timeline, ad period and event stream checks
- Adaptation set, representation and segment addressing checks
- DRM preservation checks
"""

from .common import FindingCollector, generate_summary, match_adaptation_sets, semantic_key
from .drm import drm_system_name, validate_pssh
from .periods import is_ad_period
from .validator import validate_ssai_manifest, validate_ssai_xml

__all__ = [
    "FindingCollector",
    "generate_summary",
    "match_adaptation_sets",
    "semantic_key",
    "drm_system_name",
    "validate_pssh",
    "is_ad_period",
    "validate_ssai_manifest",
    "validate_ssai_xml",
]
