"""
Pull request publisher.

Commits an applied fix on a new branch, pushes it and opens a pull request.
Every git call goes through ``run_safe`` with list arguments.
"""
import logging
import re
from typing import Any, List, Optional

from ..log_utils import scrub
from ..path_guard import PathGuardError, relative_to_base
from ..safe_subprocess import SubprocessTimeout, run_safe
from .api import GitHubAPI, GitHubAPIError
from .models import PullRequest
from .repository import parse_repository_reference

logger = logging.getLogger(__name__)

MAX_BRANCH_LENGTH = 100
BRANCH_PREFIX = "securescan/fix"
DIFF_PREVIEW_LINES = 60

_UNSAFE_BRANCH_CHARS = re.compile(r"[^A-Za-z0-9_/-]")


class PublishError(Exception):
    """Raised when a publishing step fails. ``step`` names the step."""

    def __init__(self, message: str, step: str):
        super().__init__(message)
        self.step = step


def sanitize_branch_name(name: str) -> str:
    """Restrict a branch name to ``[A-Za-z0-9_/-]`` and 100 characters."""
    if not isinstance(name, str):
        raise ValueError("Invalid branch name")
    branch = _UNSAFE_BRANCH_CHARS.sub("-", name)[:MAX_BRANCH_LENGTH]
    if not branch or branch.startswith("-"):
        raise ValueError("Invalid branch name")
    return branch


def _severity(finding: Any) -> str:
    return getattr(finding.severity, "value", finding.severity)


def build_branch_name(finding: Any) -> str:
    short_id = str(finding.id).replace("-", "")[:8]
    return sanitize_branch_name(f"{BRANCH_PREFIX}-{_severity(finding)}-{short_id}")


def build_commit_message(finding: Any) -> str:
    return f"Fix {_severity(finding)} severity issue: {finding.title}"


def build_pull_request_body(finding: Any, diff: Optional[str]) -> str:
    """Markdown description of the finding and the change."""
    location = finding.file or "unknown"
    if finding.line:
        location += f":{finding.line}"
        if finding.column:
            location += f":{finding.column}"

    lines = [
        "## Automated security fix",
        "",
        f"**Issue:** {finding.title}",
        f"**Severity:** {_severity(finding)}",
        f"**Source:** {finding.source}",
        f"**Location:** `{location}`",
    ]
    if finding.rule:
        lines.append(f"**Rule:** `{finding.rule}`")
    if finding.cve:
        lines.append(f"**CVE:** {finding.cve}")
    lines += ["", "### Description", "", finding.description or "No description provided."]
    if finding.remediation:
        lines += ["", "### Suggested remediation", "", finding.remediation]

    if diff:
        diff_lines = diff.splitlines()
        preview = "\n".join(diff_lines[:DIFF_PREVIEW_LINES])
        lines += ["", "### Changes", "", "```diff", preview, "```"]
        if len(diff_lines) > DIFF_PREVIEW_LINES:
            lines.append(f"_{len(diff_lines) - DIFF_PREVIEW_LINES} more diff lines not shown._")

    lines += ["", "---", "Generated by SecureScan. Review carefully before merging."]
    return "\n".join(lines)


class PullRequestPublisher:
    """Turns an applied fix in a working copy into a pull request."""

    def __init__(self, api: GitHubAPI, git_timeout: int = 60):
        self.api = api
        self.git_timeout = git_timeout

    def _git(self, repo_path: str, args: List[str], step: str) -> str:
        try:
            result = run_safe(["git", *args], timeout=self.git_timeout, cwd=repo_path)
        except SubprocessTimeout as e:
            raise PublishError(f"git {args[0]} timed out", step) from e
        if not result.ok:
            logger.error("git %s failed (step=%s): %r", args[0], step, scrub(result.stderr))
            raise PublishError(f"git {args[0]} failed", step)
        return result.stdout

    def setup_identity(self, repo_path: str, user_name: str, user_email: str) -> None:
        self._git(repo_path, ["config", "user.name", user_name], "identity")
        self._git(repo_path, ["config", "user.email", user_email], "identity")

    def create_branch_and_commit(self, repo_path: str, branch_name: str,
                                 commit_message: str, file_path: str) -> str:
        """Create ``branch_name`` and commit only ``file_path`` on it.

        Returns:
            The sanitized branch name actually used.
        """
        try:
            branch = sanitize_branch_name(branch_name)
            relative = relative_to_base(repo_path, file_path)
        except (ValueError, PathGuardError) as e:
            raise PublishError(str(e), "commit") from e

        self._git(repo_path, ["checkout", "-b", branch], "commit")
        self._git(repo_path, ["add", "--", relative], "commit")
        self._git(repo_path, ["commit", "-m", commit_message], "commit")
        return branch

    def push_branch(self, repo_path: str, branch_name: str) -> None:
        try:
            branch = sanitize_branch_name(branch_name)
        except ValueError as e:
            raise PublishError(str(e), "push") from e
        self._git(repo_path, ["push", "origin", branch], "push")

    def create_pull_request(self, owner: str, repo: str, title: str, body: str,
                            head: str, base: str) -> PullRequest:
        try:
            return self.api.create_pull_request(owner, repo, title, body, head, base)
        except GitHubAPIError as e:
            raise PublishError(f"Failed to create PR: {e}", "pull_request") from e

    def publish(self, working_copy: str, repository_url: str, finding: Any, diff: Optional[str],
                base_branch: str, user_name: str, user_email: str) -> PullRequest:
        """
        Commit the fixed file, push a branch and open a pull request.

        The fix must already be written into ``working_copy``.

        Raises:
            PublishError: At the first failing step.
        """
        reference = parse_repository_reference(repository_url)
        if reference is None:
            raise PublishError("Invalid GitHub URL format", "pull_request")
        if not finding.file:
            raise PublishError("Finding does not have an associated file", "commit")

        self.setup_identity(working_copy, user_name, user_email)
        branch = self.create_branch_and_commit(
            working_copy, build_branch_name(finding), build_commit_message(finding), finding.file
        )
        self.push_branch(working_copy, branch)
        pull_request = self.create_pull_request(
            reference.owner,
            reference.repo,
            title=f"[SecureScan] {build_commit_message(finding)}",
            body=build_pull_request_body(finding, diff),
            head=branch,
            base=base_branch,
        )
        logger.info("Opened pull request #%d on %s", pull_request.number, reference.full_name)
        return pull_request
