"""
GitHub integration: repository lookup, cloning and pull requests.
"""

from .api import GitHubAPI, GitHubAPIError
from .models import PullRequest, Repository, RepositoryReference
from .pull_request import PublishError, PullRequestPublisher
from .repository import GitHubRepositoryProvider, RepositoryError, parse_repository_reference

__all__ = [
    'GitHubAPI',
    'GitHubAPIError',
    'GitHubRepositoryProvider',
    'PublishError',
    'PullRequest',
    'PullRequestPublisher',
    'Repository',
    'RepositoryError',
    'RepositoryReference',
    'parse_repository_reference',
]
