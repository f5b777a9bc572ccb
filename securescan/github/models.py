"""
Data models for GitHub API responses.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class Repository:
    """Repository information from GitHub API."""
    name: str
    full_name: str
    clone_url: str
    default_branch: str = "main"
    is_public: bool = True
    html_url: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Repository":
        return cls(
            name=data['name'],
            full_name=data['full_name'],
            clone_url=data['clone_url'],
            default_branch=data.get('default_branch') or "main",
            is_public=not data.get('private', False),
            html_url=data.get('html_url'),
        )


@dataclass(frozen=True)
class RepositoryReference:
    """Owner and name parsed from a repository URL."""
    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass
class PullRequest:
    """A pull request created through the API."""
    number: int
    url: str
    html_url: str
