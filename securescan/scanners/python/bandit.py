"""
Bandit scanner for Python sources.
"""
import os
from typing import List

from ..base import BaseScanner, Finding, Severity, ToolUnavailableError, normalize_severity

SEVERITY_MAP = {
    'HIGH': Severity.HIGH,
    'MEDIUM': Severity.MEDIUM,
    'LOW': Severity.LOW,
}

SKIP_DIRS = {'.git', 'node_modules', '.venv', 'venv'}


class BanditScanner(BaseScanner):
    """Language-specific security stage for Python: ``bandit -r -f json``."""

    def __init__(self, timeout: int = 120):
        super().__init__(
            name="bandit",
            description="Bandit finds common security issues in Python code",
            timeout=timeout
        )

    def is_applicable(self, repo_path: str) -> bool:
        """Only run when the repository contains Python files."""
        for root, dirs, files in os.walk(repo_path):
            dirs[:] = [d for d in dirs if d not in SKIP_DIRS]
            if any(fn.endswith('.py') for fn in files):
                return True
        return False

    def scan(self, repo_path: str) -> List[Finding]:
        if not self.is_applicable(repo_path):
            raise ToolUnavailableError("No Python files found")
        bandit = self._require_binary("bandit")
        cmd = [bandit, "-r", repo_path, "-f", "json", "-q"]
        result = self._run_command(cmd, cwd=repo_path)
        return self.parse(result.stdout, repo_path)

    def parse(self, output: str, repo_path: str) -> List[Finding]:
        data = self._load_json(output, {})
        findings = []
        for result in data.get('results') or []:
            finding = self._make_finding(
                repo_path,
                result.get('filename'),
                severity=normalize_severity(SEVERITY_MAP, result.get('issue_severity')),
                title=result.get('test_name') or result.get('test_id') or 'Bandit finding',
                description=result.get('issue_text') or '',
                line=result.get('line_number'),
                column=result.get('col_offset'),
                rule=result.get('test_id'),
                remediation=result.get('more_info') or 'Review and fix the security issue',
            )
            if finding:
                findings.append(finding)
        return findings
