"""
Pattern-match scanner: regex checks for risky JavaScript/TypeScript constructs.

Runs in-process, so it is the one stage that needs no external tool.
"""
import os
import re
from dataclasses import dataclass
from typing import Iterator, List, Pattern

from .base import BaseScanner, Finding, Severity
from ..path_guard import PathGuardError, validate_within

SOURCE_EXTENSIONS = ('.js', '.jsx', '.ts', '.tsx')
SKIP_DIRS = {'.git', 'node_modules'}
MAX_FILES = 100
MAX_FILE_BYTES = 1024 * 1024


@dataclass(frozen=True)
class SecurityPattern:
    pattern: Pattern
    severity: Severity
    title: str
    description: str
    remediation: str


SECURITY_PATTERNS = (
    SecurityPattern(
        pattern=re.compile(r'eval\s*\('),
        severity=Severity.HIGH,
        title='Use of eval() function',
        description='The eval() function can execute arbitrary JavaScript code and poses security risks',
        remediation='Avoid using eval(). Consider safer alternatives like JSON.parse() or specific parsing functions',
    ),
    SecurityPattern(
        pattern=re.compile(r'innerHTML\s*='),
        severity=Severity.MEDIUM,
        title='Potential XSS vulnerability with innerHTML',
        description='Setting innerHTML with user input can lead to cross-site scripting attacks',
        remediation='Use textContent or properly sanitize HTML content before setting innerHTML',
    ),
    SecurityPattern(
        pattern=re.compile(r'document\.write\s*\('),
        severity=Severity.MEDIUM,
        title='Use of document.write',
        description='document.write can be dangerous and is not recommended',
        remediation='Use modern DOM manipulation methods instead of document.write',
    ),
    SecurityPattern(
        pattern=re.compile(r'password', re.IGNORECASE),
        severity=Severity.LOW,
        title='Potential hardcoded password',
        description='File contains the word "password" which might indicate hardcoded credentials',
        remediation='Ensure passwords are not hardcoded in source code',
    ),
)


class SecurityPatternScanner(BaseScanner):
    """Scans up to MAX_FILES source files line by line."""

    def __init__(self, timeout: int = 120):
        super().__init__(
            name="security-patterns",
            description="Regex-based detection of risky JavaScript/TypeScript patterns",
            timeout=timeout
        )

    def _iter_source_files(self, repo_path: str) -> Iterator[str]:
        count = 0
        for root, dirs, files in os.walk(repo_path):
            dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS)
            for filename in sorted(files):
                if not filename.endswith(SOURCE_EXTENSIONS):
                    continue
                yield os.path.join(root, filename)
                count += 1
                if count >= MAX_FILES:
                    return

    def scan(self, repo_path: str) -> List[Finding]:
        findings = []
        for path in self._iter_source_files(repo_path):
            try:
                # Symlinks in the clone may point anywhere
                safe_path = validate_within(repo_path, path)
                if os.path.getsize(safe_path) > MAX_FILE_BYTES:
                    continue
                with open(safe_path, 'r', encoding='utf-8') as f:
                    content = f.read()
            except (PathGuardError, OSError, UnicodeDecodeError):
                continue
            findings.extend(self.scan_content(content, safe_path, repo_path))
        return findings

    def scan_content(self, content: str, path: str, repo_path: str) -> List[Finding]:
        findings = []
        lines = content.split('\n')
        for rule in SECURITY_PATTERNS:
            for line_number, line in enumerate(lines, start=1):
                if not rule.pattern.search(line):
                    continue
                finding = self._make_finding(
                    repo_path,
                    path,
                    severity=rule.severity,
                    title=rule.title,
                    description=rule.description,
                    line=line_number,
                    remediation=rule.remediation,
                )
                if finding:
                    findings.append(finding)
        return findings
