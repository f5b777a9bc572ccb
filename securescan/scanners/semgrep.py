"""
Semgrep SAST scanner.
"""
from typing import List

from .base import BaseScanner, Finding, Severity, normalize_severity

SEVERITY_MAP = {
    'ERROR': Severity.HIGH,
    'HIGH': Severity.HIGH,
    'WARNING': Severity.MEDIUM,
    'MEDIUM': Severity.MEDIUM,
    'INFO': Severity.LOW,
    'LOW': Severity.LOW,
}


class SemgrepScanner(BaseScanner):
    """SAST stage: ``semgrep --config=auto --json``."""

    def __init__(self, timeout: int = 120):
        super().__init__(
            name="semgrep",
            description="Semgrep multi-language SAST",
            timeout=timeout
        )

    def scan(self, repo_path: str) -> List[Finding]:
        semgrep = self._require_binary("semgrep")
        cmd = [semgrep, "--config=auto", "--json", "--quiet", "--", repo_path]
        result = self._run_command(cmd, cwd=repo_path)
        return self.parse(result.stdout, repo_path)

    def parse(self, output: str, repo_path: str) -> List[Finding]:
        data = self._load_json(output, {})
        findings = []
        for result in data.get('results') or []:
            extra = result.get('extra') or {}
            start = result.get('start') or {}
            message = extra.get('message')
            finding = self._make_finding(
                repo_path,
                result.get('path'),
                severity=normalize_severity(SEVERITY_MAP, extra.get('severity', 'INFO')),
                title=message or result.get('check_id') or 'Semgrep finding',
                description=f"Semgrep finding: {message or 'Security issue detected'}",
                line=start.get('line'),
                column=start.get('col'),
                rule=result.get('check_id'),
                remediation='Apply suggested fix' if extra.get('fix') or extra.get('fix_regex')
                else 'Review and remediate based on rule documentation',
            )
            if finding:
                findings.append(finding)
        return findings
