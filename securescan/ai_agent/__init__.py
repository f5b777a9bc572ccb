"""
AI-assisted remediation.

Generates a proposed fix for a single finding through a configurable model
provider and describes it as a unified diff.
"""

from .diff import DiffApplyError, apply_diff, generate_diff
from .remediation import RemediationEngine, RemediationResult, apply_fix, clean_llm_response

__all__ = [
    "DiffApplyError",
    "RemediationEngine",
    "RemediationResult",
    "apply_diff",
    "apply_fix",
    "clean_llm_response",
    "generate_diff",
]
