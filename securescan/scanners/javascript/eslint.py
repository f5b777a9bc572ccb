"""
ESLint scanner for JavaScript and TypeScript sources.
"""
from typing import Any, List, Optional

from ..base import BaseScanner, Finding, Severity, normalize_severity

# ESLint reports 2 for "error" and 1 for "warning"
SEVERITY_MAP = {
    2: Severity.HIGH,
    1: Severity.MEDIUM,
}

RULE_REMEDIATIONS = {
    'react-hooks/exhaustive-deps': 'Add missing dependencies to the useEffect dependency array',
    'prefer-const': 'Change let to const for variables that are never reassigned',
    'no-unused-vars': 'Remove unused variables or add underscore prefix',
    'no-console': 'Remove console statements in production code',
    'eqeqeq': 'Use strict equality (===) instead of loose equality (==)',
}


def get_remediation(rule_id: Optional[str]) -> str:
    return RULE_REMEDIATIONS.get(rule_id or '', 'Review and fix the ESLint rule violation')


class ESLintScanner(BaseScanner):
    """Lint stage: runs ESLint with the JSON formatter."""

    def __init__(self, timeout: int = 120):
        super().__init__(
            name="eslint",
            description="ESLint static analysis for JavaScript/TypeScript",
            timeout=timeout
        )

    def scan(self, repo_path: str) -> List[Finding]:
        npx = self._require_binary("npx")
        cmd = [npx, "--no-install", "eslint", "--format=json", "--ext", ".js,.jsx,.ts,.tsx", "--", repo_path]
        result = self._run_command(cmd, cwd=repo_path)
        return self.parse(result.stdout, repo_path)

    def parse(self, output: str, repo_path: str) -> List[Finding]:
        findings = []
        for file_result in self._load_json(output, []):
            for message in file_result.get('messages', []):
                finding = self._parse_message(message, file_result.get('filePath'), repo_path)
                if finding:
                    findings.append(finding)
        return findings

    def _parse_message(self, message: dict, file_path: Any, repo_path: str) -> Optional[Finding]:
        rule_id = message.get('ruleId')
        return self._make_finding(
            repo_path,
            file_path,
            severity=normalize_severity(SEVERITY_MAP, message.get('severity')),
            title=message.get('message') or 'ESLint rule violation',
            description=f"ESLint rule violation: {rule_id or 'unknown'}",
            line=message.get('line'),
            column=message.get('column'),
            rule=rule_id,
            remediation=get_remediation(rule_id),
        )
