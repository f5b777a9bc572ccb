"""
Service factories injected into the routers with ``Depends``.
"""
from ..ai_agent.remediation import RemediationEngine
from ..github import GitHubAPI, GitHubRepositoryProvider, PullRequestPublisher
from ..orchestrator import ScanOrchestrator
from .config import settings


def get_github_api() -> GitHubAPI:
    return GitHubAPI(token=settings.GITHUB_TOKEN or None, base_url=settings.GITHUB_API_URL)


def get_repository_provider() -> GitHubRepositoryProvider:
    return GitHubRepositoryProvider(
        api=get_github_api(),
        token=settings.GITHUB_TOKEN or None,
        clone_timeout=settings.CLONE_TIMEOUT_SECONDS,
    )


def get_orchestrator() -> ScanOrchestrator:
    return ScanOrchestrator.from_settings(settings)


def get_remediation_engine() -> RemediationEngine:
    return RemediationEngine.from_settings(settings)


def get_publisher() -> PullRequestPublisher:
    return PullRequestPublisher(api=get_github_api(), git_timeout=settings.GIT_TIMEOUT_SECONDS)
