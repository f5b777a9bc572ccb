"""
Repository provider: resolves a repository URL and clones it into a
guarded working directory.
"""
import logging
import os
import re
import shutil
from typing import Optional

from ..log_utils import log_safe_error, scrub
from ..path_guard import PathGuardError, generate_temp_dir_name, validate_within
from ..safe_subprocess import SubprocessTimeout, run_safe
from .api import GitHubAPI, GitHubAPIError
from .models import Repository, RepositoryReference

logger = logging.getLogger(__name__)

GITHUB_URL_PATTERN = re.compile(r"^https://github\.com/([^/]+)/([^/]+?)(?:\.git)?(?:/.*)?$")


class RepositoryError(Exception):
    """Raised when a repository can't be resolved or cloned."""


def parse_repository_reference(url: str) -> Optional[RepositoryReference]:
    """Parse ``https://github.com/<owner>/<repo>[.git][/...]``; None if it doesn't match."""
    if not isinstance(url, str):
        return None
    match = GITHUB_URL_PATTERN.match(url.strip())
    if not match:
        return None
    owner, repo = match.groups()
    return RepositoryReference(owner=owner, repo=repo)


def _authenticated_url(clone_url: str, token: Optional[str]) -> str:
    if token and clone_url.startswith("https://"):
        return clone_url.replace("https://", f"https://x-access-token:{token}@", 1)
    return clone_url


class GitHubRepositoryProvider:
    """Resolves, clones and removes working copies of GitHub repositories."""

    def __init__(self, api: Optional[GitHubAPI] = None, token: Optional[str] = None,
                 clone_timeout: int = 300):
        self.token = token
        self.api = api or GitHubAPI(token=token)
        self.clone_timeout = clone_timeout

    def resolve(self, url: str) -> Repository:
        """
        Validate a repository URL and fetch its metadata.

        Raises:
            RepositoryError: With a stable message for invalid URLs, missing
                repositories and API failures.
        """
        reference = parse_repository_reference(url)
        if reference is None:
            raise RepositoryError("Invalid GitHub URL format")
        try:
            return self.api.get_repository(reference.owner, reference.repo)
        except GitHubAPIError as e:
            if e.status_code == 404:
                raise RepositoryError("Repository not found or is private") from e
            log_safe_error(logger, "Repository lookup failed", e)
            raise RepositoryError("Failed to access repository") from e

    def clone(self, repository: Repository, target_base_dir: str) -> str:
        """
        Shallow-clone ``repository`` into a fresh directory under ``target_base_dir``.

        Returns:
            Absolute path of the working copy.

        Raises:
            RepositoryError: If the directory name is unsafe or git fails.
        """
        try:
            os.makedirs(target_base_dir, exist_ok=True)
            clone_dir = validate_within(target_base_dir, generate_temp_dir_name(repository.name))
        except (PathGuardError, OSError) as e:
            log_safe_error(logger, "Could not prepare clone directory", e)
            raise RepositoryError("Failed to prepare working directory") from e

        cmd = ["git", "clone", "--depth", "1", "--",
               _authenticated_url(repository.clone_url, self.token), clone_dir]
        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")

        logger.info("Cloning %s", repository.full_name)
        try:
            result = run_safe(cmd, timeout=self.clone_timeout, env=env)
        except SubprocessTimeout as e:
            self.cleanup(clone_dir)
            raise RepositoryError("Repository clone timed out") from e

        if not result.ok:
            stderr = result.stderr or ""
            if self.token:
                stderr = stderr.replace(self.token, "***")
            logger.error("git clone failed for %s: %r", repository.full_name, scrub(stderr))
            self.cleanup(clone_dir)
            raise RepositoryError("Failed to clone repository")
        return clone_dir

    def cleanup(self, path: str) -> None:
        """Remove a working copy. Errors are logged, never raised."""
        if not path or not os.path.exists(path):
            return
        try:
            shutil.rmtree(path)
        except OSError as e:
            log_safe_error(logger, "Failed to cleanup directory", e)
