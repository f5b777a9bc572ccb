"""
TruffleHog secret scanner.
"""
import json
from typing import List, Optional

from .base import BaseScanner, Finding, Severity

REMEDIATION = 'Remove the secret from code and rotate credentials if compromised'


class TruffleHogScanner(BaseScanner):
    """Secret-scan stage: ``trufflehog filesystem --json``, one JSON object per line."""

    def __init__(self, binary: str = "trufflehog", timeout: int = 120):
        super().__init__(
            name="secret-scan",
            description="TruffleHog filesystem secret detection",
            timeout=timeout
        )
        self.binary = binary

    def scan(self, repo_path: str) -> List[Finding]:
        trufflehog = self._require_binary(self.binary)
        cmd = [trufflehog, "filesystem", repo_path, "--json", "--no-verification", "--no-update"]
        result = self._run_command(cmd, cwd=repo_path)
        return self.parse(result.stdout, repo_path)

    def parse(self, output: str, repo_path: str) -> List[Finding]:
        findings = []
        for line in (output or '').splitlines():
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                # Log lines are interleaved with results
                continue
            finding = self._parse_record(record, repo_path)
            if finding:
                findings.append(finding)
        return findings

    def _parse_record(self, record: dict, repo_path: str) -> Optional[Finding]:
        detector = record.get('DetectorName')
        metadata = record.get('SourceMetadata')
        if not detector or not metadata:
            return None
        filesystem = (metadata.get('Data') or {}).get('Filesystem') or {}
        return self._make_finding(
            repo_path,
            filesystem.get('file'),
            severity=Severity.HIGH,
            title=f"Secret detected: {detector}",
            description=f"Potential secret or credential found: {detector}",
            line=filesystem.get('line'),
            rule=detector,
            remediation=REMEDIATION,
        )
