"""
JavaScript/TypeScript scanners.
"""

from .eslint import ESLintScanner
from .npm_audit import NpmAuditScanner

__all__ = ['ESLintScanner', 'NpmAuditScanner']
