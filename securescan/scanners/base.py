"""
Base scanner class and the unified finding model.
"""
import abc
import json
import logging
import shutil
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ..log_utils import scrub
from ..path_guard import PathGuardError, relative_to_base
from ..safe_subprocess import SafeProcessResult, run_safe

DEFAULT_TOOL_TIMEOUT = 120


class Severity(str, Enum):
    """Unified severity levels."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def normalize_severity(table: Mapping[Any, Severity], raw: Any) -> Severity:
    """
    Map a tool-native severity onto the unified scale.

    String keys are matched case-insensitively. Anything the table does not
    name, including None, maps to LOW.
    """
    if raw is None:
        return Severity.LOW
    try:
        if raw in table:
            return table[raw]
    except TypeError:
        # Malformed tool output: lists and dicts are unhashable
        return Severity.LOW
    if isinstance(raw, str):
        key = raw.strip().upper()
        for candidate, severity in table.items():
            if isinstance(candidate, str) and candidate.upper() == key:
                return severity
    return Severity.LOW


def summarize(findings: List["Finding"]) -> Dict[str, int]:
    """Count findings per unified severity."""
    summary = {severity.value: 0 for severity in Severity}
    for finding in findings:
        summary[Severity(finding.severity).value] += 1
    return summary


@dataclass(frozen=True)
class Finding:
    """One normalized result from a tool adapter."""
    severity: Severity
    title: str
    description: str
    source: str
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    rule: Optional[str] = None
    remediation: Optional[str] = None
    cve: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = Severity(self.severity).value
        return data


class ToolStatus(str, Enum):
    """How a tool stage ended."""
    RAN = "ran"
    SKIPPED = "skipped"
    ERRORED = "errored"


@dataclass
class ScanResult:
    """Result of one tool stage."""
    scanner_name: str
    status: ToolStatus
    findings: List[Finding] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool": self.scanner_name,
            "status": self.status.value,
            "findings": len(self.findings),
            "error": self.error,
        }


class ToolUnavailableError(Exception):
    """Raised when a tool is not installed or does not apply to the repository."""


class ToolExecutionError(Exception):
    """Raised when a tool ran but failed without producing a report."""


class BaseScanner(abc.ABC):
    """Abstract base class for all tool adapters."""

    def __init__(self, name: str, description: str = "", timeout: int = DEFAULT_TOOL_TIMEOUT):
        """Initialize the scanner.

        Args:
            name: Scanner name (e.g., "semgrep", "npm-audit"); also the
                finding source identifier
            description: Optional description of the scanner
            timeout: Upper bound in seconds for the external process
        """
        self.name = name
        self.description = description
        self.timeout = timeout
        self.logger = logging.getLogger(f"scanner.{name.lower()}")

    def is_applicable(self, repo_path: str) -> bool:
        """Check if this scanner applies to the given repository."""
        return True

    @abc.abstractmethod
    def scan(self, repo_path: str) -> List[Finding]:
        """Run the tool against ``repo_path`` and return normalized findings.

        Raises:
            ToolUnavailableError: If the tool is missing or not applicable.
            SubprocessTimeout: If the tool exceeds its timeout.
        """

    def _require_binary(self, binary: str) -> str:
        path = shutil.which(binary)
        if not path:
            raise ToolUnavailableError(f"{binary} is not installed")
        return path

    def _run_command(self, command: List[str], cwd: Optional[str] = None,
                     timeout: Optional[int] = None) -> SafeProcessResult:
        """Run the tool.

        A non-zero exit with output is returned, not raised: most analyzers
        use it to signal that findings are present. A non-zero exit with
        empty stdout means the tool itself failed.

        Raises:
            ToolUnavailableError: If the binary is missing.
            ToolExecutionError: If the tool failed without a report.
        """
        self.logger.debug("Running command: %r", scrub(" ".join(command)))
        result = run_safe(command, timeout=timeout or self.timeout, cwd=cwd)
        if result.returncode == 127:
            raise ToolUnavailableError(f"{command[0]} is not installed")
        if result.returncode != 0:
            self.logger.debug("%s exited with %d", self.name, result.returncode)
            if not result.stdout.strip():
                self.logger.warning("%s failed with no output: %r", self.name, scrub(result.stderr))
                raise ToolExecutionError(f"{self.name} exited with code {result.returncode}")
        return result

    def _load_json(self, content: str, default: Any) -> Any:
        """Parse JSON output, returning ``default`` for empty output."""
        if not content or not content.strip():
            return default
        return json.loads(content)

    def _relative_path(self, repo_path: str, path: Optional[str]) -> Optional[str]:
        """Validate a tool-reported path and make it relative to the working copy.

        Returns None if the path escapes the working copy.
        """
        if not path:
            return None
        try:
            return relative_to_base(repo_path, path)
        except PathGuardError:
            self.logger.warning("Dropping path outside working copy from %s: %r", self.name, scrub(path))
            return None

    def _make_finding(self, repo_path: str, path: Optional[str], **fields: Any) -> Optional[Finding]:
        """Build a finding, dropping it when its path escapes the working copy."""
        relative = None
        if path:
            relative = self._relative_path(repo_path, path)
            if relative is None:
                return None
        return Finding(source=self.name, file=relative, **fields)
