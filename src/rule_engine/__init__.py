"""Baseline rule engine over canonical manifests."""

from .rules import RULES, run_all_rules

__all__ = ["RULES", "run_all_rules"]
