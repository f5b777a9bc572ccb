"""
npm audit scanner for Node.js dependencies.
"""
import os
from typing import List, Optional

from ..base import (
    BaseScanner,
    Finding,
    Severity,
    ToolExecutionError,
    ToolUnavailableError,
    normalize_severity,
)
from ...log_utils import scrub
from ...path_guard import validate_within

SEVERITY_MAP = {
    'critical': Severity.HIGH,
    'high': Severity.HIGH,
    'moderate': Severity.MEDIUM,
    'medium': Severity.MEDIUM,
    'low': Severity.LOW,
    'info': Severity.LOW,
}

MANIFEST = 'package.json'


class NpmAuditScanner(BaseScanner):
    """Dependency-audit stage: runs ``npm audit --json`` next to package.json."""

    def __init__(self, timeout: int = 120):
        super().__init__(
            name="npm-audit",
            description="npm audit checks Node.js dependencies for known vulnerabilities",
            timeout=timeout
        )

    def is_applicable(self, repo_path: str) -> bool:
        return os.path.isfile(validate_within(repo_path, MANIFEST))

    def scan(self, repo_path: str) -> List[Finding]:
        if not self.is_applicable(repo_path):
            raise ToolUnavailableError("No package.json found")
        npm = self._require_binary("npm")
        result = self._run_command([npm, "audit", "--json"], cwd=repo_path)
        return self.parse(result.stdout, repo_path)

    def parse(self, output: str, repo_path: str) -> List[Finding]:
        audit = self._load_json(output, {})
        if not isinstance(audit, dict):
            return []
        # npm reports registry and lockfile failures as a JSON error body
        if audit.get('error'):
            error = audit['error'] if isinstance(audit['error'], dict) else {'summary': audit['error']}
            self.logger.warning("npm audit failed: %s", scrub(error.get('summary')))
            raise ToolExecutionError(f"npm audit failed: {error.get('code') or 'unknown error'}")
        findings = []
        for package_name, vulnerability in (audit.get('vulnerabilities') or {}).items():
            finding = self._parse_vulnerability(package_name, vulnerability or {}, repo_path)
            if finding:
                findings.append(finding)
        return findings

    def _parse_vulnerability(self, package_name: str, vuln: dict, repo_path: str) -> Optional[Finding]:
        # npm 7+ nests advisory details under "via"; plain strings there are
        # transitive package names
        advisory = next((v for v in vuln.get('via') or [] if isinstance(v, dict)), {})
        title = vuln.get('title') or advisory.get('title') or 'Security vulnerability'
        cwe = vuln.get('cwe') or advisory.get('cwe') or []
        fix = vuln.get('fixAvailable')
        if vuln.get('recommendation'):
            remediation = vuln['recommendation']
        elif isinstance(fix, dict) and fix.get('version'):
            remediation = f"Update {fix.get('name', package_name)} to version {fix['version']}"
        else:
            remediation = f"Update {package_name} to a secure version"

        return self._make_finding(
            repo_path,
            MANIFEST,
            severity=normalize_severity(SEVERITY_MAP, vuln.get('severity')),
            title=f"{package_name}: {title}",
            description=vuln.get('overview') or f"Security vulnerability in {package_name}",
            remediation=remediation,
            cve=cwe[0] if isinstance(cwe, list) and cwe else None,
        )
