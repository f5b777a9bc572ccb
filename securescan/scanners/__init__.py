"""
Tool adapters. Each adapter runs one external analyzer and normalizes its
output into :class:`~securescan.scanners.base.Finding` records.
"""

from .base import (
    BaseScanner,
    Finding,
    ScanResult,
    Severity,
    ToolExecutionError,
    ToolStatus,
    ToolUnavailableError,
    normalize_severity,
    summarize,
)
from .deep_analysis import DeepAnalysisScanner
from .javascript import ESLintScanner, NpmAuditScanner
from .patterns import SecurityPatternScanner
from .python import BanditScanner, SafetyScanner
from .semgrep import SemgrepScanner
from .trivy import TrivyScanner
from .trufflehog import TruffleHogScanner

__all__ = [
    'BaseScanner',
    'Finding',
    'ScanResult',
    'Severity',
    'ToolExecutionError',
    'ToolStatus',
    'ToolUnavailableError',
    'normalize_severity',
    'summarize',
    'BanditScanner',
    'DeepAnalysisScanner',
    'ESLintScanner',
    'NpmAuditScanner',
    'SafetyScanner',
    'SecurityPatternScanner',
    'SemgrepScanner',
    'TrivyScanner',
    'TruffleHogScanner',
]
