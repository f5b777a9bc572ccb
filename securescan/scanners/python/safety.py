"""
Safety scanner for Python dependencies.
"""
import os
from typing import Any, Dict, List, Optional

from ..base import BaseScanner, Finding, Severity, ToolUnavailableError, normalize_severity
from ...path_guard import validate_within

SEVERITY_MAP = {
    'CRITICAL': Severity.HIGH,
    'HIGH': Severity.HIGH,
    'MEDIUM': Severity.MEDIUM,
    'MODERATE': Severity.MEDIUM,
    'LOW': Severity.LOW,
    'UNKNOWN': Severity.LOW,
}

REQUIREMENTS_FILES = [
    'requirements.txt',
    'requirements/prod.txt',
    'requirements/requirements.txt',
    'requirements.in',
    'requirements-dev.txt',
]


class SafetyScanner(BaseScanner):
    """Language-specific dependency stage for Python: ``safety check --json``."""

    def __init__(self, timeout: int = 120):
        super().__init__(
            name="safety",
            description="Safety checks Python dependencies for known security vulnerabilities",
            timeout=timeout
        )

    def _find_requirements_file(self, repo_path: str) -> Optional[str]:
        """Find the most appropriate requirements file to scan."""
        for candidate in REQUIREMENTS_FILES:
            path = validate_within(repo_path, candidate)
            if os.path.isfile(path):
                return path
        return None

    def is_applicable(self, repo_path: str) -> bool:
        return self._find_requirements_file(repo_path) is not None

    def scan(self, repo_path: str) -> List[Finding]:
        requirements_file = self._find_requirements_file(repo_path)
        if not requirements_file:
            raise ToolUnavailableError("No requirements file found")
        safety = self._require_binary("safety")
        cmd = [safety, "check", "--json", "--full-report", "--file", requirements_file]
        result = self._run_command(cmd, cwd=repo_path)
        return self.parse(result.stdout, repo_path, requirements_file)

    def parse(self, output: str, repo_path: str, requirements_file: Optional[str] = None) -> List[Finding]:
        data = self._load_json(output, [])
        # Safety 2.x wraps results in a report object; older releases emit a bare list
        vulns = data.get('vulnerabilities', []) if isinstance(data, dict) else data
        findings = []
        for vuln in vulns or []:
            if not isinstance(vuln, dict):
                continue
            finding = self._parse_vulnerability(vuln, repo_path, requirements_file)
            if finding:
                findings.append(finding)
        return findings

    def _severity(self, vuln: Dict[str, Any]) -> Severity:
        raw = vuln.get('severity')
        if isinstance(raw, dict):
            cvss = raw.get('cvssv3') or raw.get('cvssv2') or {}
            raw = cvss.get('base_severity')
        return normalize_severity(SEVERITY_MAP, raw)

    def _parse_vulnerability(self, vuln: Dict[str, Any], repo_path: str,
                             requirements_file: Optional[str]) -> Optional[Finding]:
        """Parse a vulnerability from Safety JSON output."""
        # Legacy output nests the advisory under "vulnerability"
        details = vuln.get('vulnerability') if isinstance(vuln.get('vulnerability'), dict) else vuln
        package = vuln.get('package_name') or vuln.get('dependency') or 'unknown package'
        vuln_id = str(details.get('vulnerability_id') or details.get('id') or '')
        fixed = details.get('fixed_versions') or details.get('fixed_in')
        if isinstance(fixed, list):
            fixed = ', '.join(str(v) for v in fixed if v)
        cve = details.get('CVE') or details.get('cve')

        return self._make_finding(
            repo_path,
            requirements_file,
            severity=self._severity(details),
            title=f"{package}: {vuln_id}" if vuln_id else package,
            description=details.get('advisory') or details.get('summary') or 'No description available',
            rule=vuln_id or None,
            remediation=f"Update {package} to version {fixed}" if fixed
            else f"Update {package} to a secure version",
            cve=cve if isinstance(cve, str) else None,
        )
