"""
AI remediation engine.

Turns one finding into a proposed fix: reads the affected file from the
working copy, asks the configured model for a corrected version of the whole
file, and computes a diff between the two.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from ..log_utils import log_safe_error
from ..path_guard import PathGuardError, validate_within
from .diff import DiffApplyError, apply_diff, generate_diff
from .providers import AIProvider, LLMError, LLMMessage, ModelConfig, get_provider

logger = logging.getLogger(__name__)

NO_FILE_ERROR = "Finding does not have an associated file"
READ_ERROR = "Failed to read file"
EMPTY_RESPONSE_ERROR = "LLM returned empty response"
LLM_ERROR = "LLM request failed"
DIFF_ERROR = "Generated diff does not reproduce the fix"
WORKING_COPY_ERROR = "Failed to obtain working copy"

SYSTEM_PROMPT = """You are a senior software engineer specialized in code security and quality. Your task is to fix security vulnerabilities and code quality issues while ensuring:
1. The fix does not break existing functionality
2. The code remains readable and maintainable
3. All imports and dependencies are preserved
4. The fix addresses the root cause, not just the symptom
5. You return ONLY the complete fixed file content, nothing else

Respond with ONLY the complete fixed code, no explanations or markdown formatting."""

_FENCED_BLOCK = re.compile(r"^```[\w+-]*\n([\s\S]*?)\n```$")


@dataclass
class RemediationResult:
    success: bool
    original_content: Optional[str] = None
    fixed_content: Optional[str] = None
    diff: Optional[str] = None
    explanation: Optional[str] = None
    error: Optional[str] = None


def _text(value: Any) -> str:
    return getattr(value, "value", value)


def build_remediation_prompt(finding: Any, content: str) -> str:
    """Describe the finding and include the full file for the model."""
    lines = [
        "Fix the following security/quality issue in this code:",
        "",
        f"Issue: {finding.title}",
        f"Severity: {_text(finding.severity)}",
        f"Description: {finding.description}",
    ]
    if finding.remediation:
        lines.append(f"Suggested Remediation: {finding.remediation}")
    if finding.rule:
        lines.append(f"Rule: {finding.rule}")
    if finding.line:
        location = f"Location: Line {finding.line}"
        if finding.column:
            location += f", Column {finding.column}"
        lines.append(location)
    if finding.cve:
        lines.append(f"CVE: {finding.cve}")

    lines += [
        "",
        f"File: {finding.file}",
        "",
        "Original Code:",
        "```",
        content,
        "```",
        "",
        "Provide the complete fixed version of this file. Return ONLY the code, no explanations.",
    ]
    return "\n".join(lines)


def clean_llm_response(response: str) -> str:
    """Strip a markdown fence and stray backticks from a model reply."""
    cleaned = (response or "").strip()
    match = _FENCED_BLOCK.match(cleaned)
    if match:
        cleaned = match.group(1)
    cleaned = re.sub(r"^`+|`+$", "", cleaned)
    return cleaned.strip()


def apply_fix(working_copy: str, relative_path: str, content: str) -> str:
    """
    Write fixed content into a working copy.

    Returns:
        The absolute path written.

    Raises:
        PathTraversalError: If ``relative_path`` escapes the working copy.
        OSError: If the file cannot be written, e.g. its directory is gone.
    """
    path = validate_within(working_copy, relative_path)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    return path


class RemediationEngine:
    """Generates AI fixes for individual findings."""

    def __init__(self, provider_factory: Callable[..., AIProvider] = get_provider,
                 timeout: int = 120, max_tokens: int = 4096, ollama_base_url: Optional[str] = None):
        self.provider_factory = provider_factory
        self.provider_options = {"timeout": timeout, "max_tokens": max_tokens}
        if ollama_base_url:
            self.provider_options["ollama_base_url"] = ollama_base_url

    @classmethod
    def from_settings(cls, settings) -> "RemediationEngine":
        return cls(
            timeout=settings.LLM_TIMEOUT_SECONDS,
            max_tokens=settings.LLM_MAX_TOKENS,
            ollama_base_url=settings.OLLAMA_BASE_URL,
        )

    def _read_file(self, working_copy: str, relative_path: str) -> Optional[str]:
        try:
            path = validate_within(working_copy, relative_path)
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except (PathGuardError, OSError, UnicodeDecodeError) as e:
            log_safe_error(logger, "Could not read file for remediation", e)
            return None

    def build_messages(self, finding: Any, content: str) -> List[LLMMessage]:
        return [
            LLMMessage(role="system", content=SYSTEM_PROMPT),
            LLMMessage(role="user", content=build_remediation_prompt(finding, content)),
        ]

    async def remediate(self, finding: Any, working_copy: str, model_config: ModelConfig) -> RemediationResult:
        """
        Ask the model for a fix and return it with its diff.

        Failures are reported in the result rather than raised.
        """
        if not finding.file:
            return RemediationResult(success=False, error=NO_FILE_ERROR)

        original = self._read_file(working_copy, finding.file)
        if original is None:
            return RemediationResult(success=False, error=READ_ERROR)

        try:
            provider = self.provider_factory(model_config, **self.provider_options)
            response = await provider.chat(self.build_messages(finding, original))
        except LLMError as e:
            log_safe_error(logger, "Model request failed during remediation", e)
            return RemediationResult(success=False, original_content=original, error=LLM_ERROR)

        fixed = clean_llm_response(response.content)
        if not fixed:
            return RemediationResult(success=False, original_content=original, error=EMPTY_RESPONSE_ERROR)
        # Models drop the final newline; keep the file's
        if original.endswith("\n") and not fixed.endswith("\n"):
            fixed += "\n"

        diff = generate_diff(original, fixed, finding.file)
        try:
            if apply_diff(original, diff) != fixed:
                raise DiffApplyError("Round trip mismatch")
        except DiffApplyError as e:
            log_safe_error(logger, "Diff verification failed", e)
            return RemediationResult(success=False, original_content=original, error=DIFF_ERROR)

        logger.info("Generated fix for %r using %s", finding.file, model_config.model_name)
        return RemediationResult(
            success=True,
            original_content=original,
            fixed_content=fixed,
            diff=diff,
            explanation=f"Fixed {_text(finding.severity)} severity issue: {finding.title}",
        )

