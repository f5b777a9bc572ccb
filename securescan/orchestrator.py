"""
Scan orchestrator.

Runs the enabled tool adapters against a working copy in a fixed order,
reports progress before each stage, and aggregates the normalized findings.
A failing stage never aborts the scan: it is recorded and contributes no
findings.
"""
import logging
import os
from dataclasses import dataclass, field, fields, asdict
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .log_utils import describe_error, log_safe_error
from .safe_subprocess import SubprocessTimeout
from .scanners import (
    BanditScanner,
    BaseScanner,
    DeepAnalysisScanner,
    ESLintScanner,
    Finding,
    NpmAuditScanner,
    SafetyScanner,
    ScanResult,
    SecurityPatternScanner,
    SemgrepScanner,
    ToolStatus,
    ToolUnavailableError,
    TrivyScanner,
    TruffleHogScanner,
    summarize,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]

TRIVY_MIN_TIMEOUT = 180


@dataclass
class ScanOptions:
    """Which stages to run. Everything but deep analysis is on by default."""
    eslint: bool = True
    npm_audit: bool = True
    security_patterns: bool = True
    semgrep: bool = True
    trivy: bool = True
    secret_scan: bool = True
    bandit: bool = True
    safety: bool = True
    deep_analysis: bool = False

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ScanOptions":
        """Build options from a dict, ignoring keys that name no stage."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: bool(v) for k, v in (data or {}).items() if k in known})

    @classmethod
    def only(cls, keys: Sequence[str]) -> "ScanOptions":
        """Options with exactly the named stages enabled."""
        unknown = set(keys) - {f.name for f in fields(cls)}
        if unknown:
            raise ValueError(f"Unknown scan stages: {', '.join(sorted(unknown))}")
        return cls(**{f.name: f.name in keys for f in fields(cls)})

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)


@dataclass(frozen=True)
class ScanStage:
    key: str
    label: str
    progress: int
    scanner_factory: Callable[["ScanOrchestrator"], BaseScanner]


SCAN_STAGES = (
    ScanStage("eslint", "Running ESLint analysis...", 25,
              lambda o: ESLintScanner(timeout=o.tool_timeout)),
    ScanStage("npm_audit", "Running npm audit...", 50,
              lambda o: NpmAuditScanner(timeout=o.tool_timeout)),
    ScanStage("security_patterns", "Analyzing security patterns...", 60,
              lambda o: SecurityPatternScanner(timeout=o.tool_timeout)),
    ScanStage("semgrep", "Running Semgrep analysis...", 75,
              lambda o: SemgrepScanner(timeout=o.tool_timeout)),
    ScanStage("trivy", "Running Trivy security scan...", 85,
              lambda o: TrivyScanner(binary=o.trivy_bin, timeout=max(o.tool_timeout, TRIVY_MIN_TIMEOUT))),
    ScanStage("secret_scan", "Scanning for secrets...", 90,
              lambda o: TruffleHogScanner(binary=o.trufflehog_bin, timeout=o.tool_timeout)),
    ScanStage("bandit", "Running Bandit Python security scan...", 95,
              lambda o: BanditScanner(timeout=o.tool_timeout)),
    ScanStage("safety", "Running Safety dependency check...", 98,
              lambda o: SafetyScanner(timeout=o.tool_timeout)),
    ScanStage("deep_analysis", "Running deep analysis...", 99,
              lambda o: DeepAnalysisScanner()),
)


@dataclass
class OrchestrationResult:
    findings: List[Finding] = field(default_factory=list)
    files_scanned: int = 0
    summary: Dict[str, int] = field(default_factory=dict)
    tool_results: List[ScanResult] = field(default_factory=list)
    cancelled: bool = False

    def tool_results_dict(self) -> List[Dict[str, Any]]:
        return [result.to_dict() for result in self.tool_results]


def count_files(working_copy: str) -> int:
    """Count regular files in the working copy, ignoring git metadata."""
    total = 0
    for _root, dirs, files in os.walk(working_copy):
        dirs[:] = [d for d in dirs if d != '.git']
        total += len(files)
    return total


class ScanOrchestrator:
    """Drives the tool adapters over one working copy."""

    def __init__(self, tool_timeout: int = 120, trivy_bin: str = "trivy",
                 trufflehog_bin: str = "trufflehog", stages: Sequence[ScanStage] = SCAN_STAGES):
        self.tool_timeout = tool_timeout
        self.trivy_bin = trivy_bin
        self.trufflehog_bin = trufflehog_bin
        self.stages = tuple(stages)

    @classmethod
    def from_settings(cls, settings) -> "ScanOrchestrator":
        return cls(
            tool_timeout=settings.TOOL_TIMEOUT_SECONDS,
            trivy_bin=settings.TRIVY_BIN,
            trufflehog_bin=settings.TRUFFLEHOG_BIN,
        )

    def run(self, working_copy: str, options: Optional[ScanOptions] = None,
            on_progress: Optional[ProgressCallback] = None,
            is_cancelled: Optional[Callable[[], bool]] = None) -> OrchestrationResult:
        """
        Run every enabled stage in order.

        Args:
            working_copy: Path to the cloned repository
            options: Enabled stages; defaults to :class:`ScanOptions` defaults
            on_progress: Called with ``(label, progress)`` before each stage
            is_cancelled: Checked between stages; when it returns True the
                remaining stages are skipped and the result is marked cancelled

        Returns:
            OrchestrationResult with findings in stage order
        """
        options = options or ScanOptions()
        result = OrchestrationResult(files_scanned=count_files(working_copy))

        for stage in self.stages:
            if not getattr(options, stage.key, False):
                continue
            if is_cancelled and is_cancelled():
                logger.info("Scan cancelled before stage %s", stage.key)
                result.cancelled = True
                break
            if on_progress:
                on_progress(stage.label, stage.progress)
            stage_result = self.run_stage(stage, working_copy)
            result.tool_results.append(stage_result)
            result.findings.extend(stage_result.findings)

        result.summary = summarize(result.findings)
        logger.info(
            "Scan finished: %d findings from %d stages (%d files)",
            len(result.findings), len(result.tool_results), result.files_scanned,
        )
        return result

    def run_stage(self, stage: ScanStage, working_copy: str) -> ScanResult:
        """Run one stage, converting every failure into a recorded status."""
        try:
            scanner = stage.scanner_factory(self)
            findings = scanner.scan(working_copy)
        except ToolUnavailableError as e:
            logger.info("Skipping %s: %s", stage.key, describe_error(e)["message"])
            return ScanResult(stage.key, ToolStatus.SKIPPED, error=describe_error(e)["message"])
        except SubprocessTimeout as e:
            log_safe_error(logger, f"Stage {stage.key} timed out", e)
            return ScanResult(stage.key, ToolStatus.ERRORED, error="Tool timed out")
        except Exception as e:
            log_safe_error(logger, f"Stage {stage.key} failed", e)
            return ScanResult(stage.key, ToolStatus.ERRORED, error=describe_error(e)["type"])

        logger.debug("Stage %s produced %d findings", stage.key, len(findings))
        return ScanResult(stage.key, ToolStatus.RAN, findings=list(findings))
