"""
Trivy filesystem scanner for vulnerable dependencies and misconfigurations.
"""
from typing import List, Optional

from .base import BaseScanner, Finding, Severity, normalize_severity

SEVERITY_MAP = {
    'CRITICAL': Severity.HIGH,
    'HIGH': Severity.HIGH,
    'MEDIUM': Severity.MEDIUM,
    'LOW': Severity.LOW,
    'UNKNOWN': Severity.LOW,
    'NEGLIGIBLE': Severity.LOW,
}


class TrivyScanner(BaseScanner):
    """Filesystem vulnerability stage: ``trivy fs --format json``."""

    def __init__(self, binary: str = "trivy", timeout: int = 180):
        super().__init__(
            name="trivy",
            description="Trivy filesystem vulnerability and misconfiguration scan",
            timeout=timeout
        )
        self.binary = binary

    def scan(self, repo_path: str) -> List[Finding]:
        trivy = self._require_binary(self.binary)
        cmd = [trivy, "fs", "--format", "json", "--quiet", "--scanners", "vuln,misconfig", repo_path]
        result = self._run_command(cmd, cwd=repo_path)
        return self.parse(result.stdout, repo_path)

    def parse(self, output: str, repo_path: str) -> List[Finding]:
        data = self._load_json(output, {})
        findings: List[Optional[Finding]] = []
        for result in data.get('Results') or []:
            target = result.get('Target')
            for vuln in result.get('Vulnerabilities') or []:
                findings.append(self._parse_vulnerability(vuln, target, repo_path))
            for misconfig in result.get('Misconfigurations') or []:
                findings.append(self._parse_misconfiguration(misconfig, target, repo_path))
        return [f for f in findings if f]

    def _parse_vulnerability(self, vuln: dict, target: Optional[str], repo_path: str) -> Optional[Finding]:
        vuln_id = vuln.get('VulnerabilityID') or ''
        package = vuln.get('PkgName') or 'unknown package'
        fixed = vuln.get('FixedVersion')
        return self._make_finding(
            repo_path,
            target,
            severity=normalize_severity(SEVERITY_MAP, vuln.get('Severity')),
            title=f"{package}: {vuln_id}",
            description=vuln.get('Description') or f"Vulnerability in {package}",
            rule=vuln_id or None,
            remediation=f"Update to version {fixed}" if fixed else 'Update to a patched version',
            cve=vuln_id if vuln_id.startswith('CVE-') else None,
        )

    def _parse_misconfiguration(self, misconfig: dict, target: Optional[str], repo_path: str) -> Optional[Finding]:
        cause = misconfig.get('CauseMetadata') or {}
        return self._make_finding(
            repo_path,
            target,
            severity=normalize_severity(SEVERITY_MAP, misconfig.get('Severity')),
            title=misconfig.get('Title') or misconfig.get('ID') or 'Misconfiguration',
            description=misconfig.get('Description') or '',
            line=cause.get('StartLine'),
            rule=misconfig.get('ID'),
            remediation=misconfig.get('Resolution') or 'Fix configuration issue',
        )
