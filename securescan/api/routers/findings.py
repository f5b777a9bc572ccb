from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional
from datetime import datetime
import logging

from ..config import settings
from ..database import get_db
from ..dependencies import get_publisher, get_remediation_engine, get_repository_provider
from .. import models, storage
from ...ai_agent.providers import ModelConfig
from ...ai_agent.remediation import (
    NO_FILE_ERROR,
    WORKING_COPY_ERROR,
    RemediationEngine,
    RemediationResult,
    apply_fix,
)
from ...github import GitHubRepositoryProvider, PublishError, PullRequestPublisher, RepositoryError
from ...log_utils import log_safe_error
from ...path_guard import PathGuardError, validate_scan_id

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/findings",
    tags=["findings"]
)

class FindingResponse(BaseModel):
    id: str
    scan_id: str
    severity: str
    title: str
    description: Optional[str] = None
    source: str
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    rule: Optional[str] = None
    remediation: Optional[str] = None
    cve: Optional[str] = None
    remediation_status: str = "none"
    remediated_content: Optional[str] = None
    remediation_diff: Optional[str] = None
    remediation_error: Optional[str] = None
    remediated_at: Optional[datetime] = None
    pr_url: Optional[str] = None
    pr_number: Optional[int] = None

    model_config = {"from_attributes": True}

class RemediateRequest(BaseModel):
    model_config_id: Optional[str] = None

    model_config = {"protected_namespaces": ()}

class RemediateResponse(BaseModel):
    success: bool
    diff: Optional[str] = None
    explanation: Optional[str] = None
    error: Optional[str] = None
    finding: FindingResponse

class PullRequestResponse(BaseModel):
    number: int
    url: str
    html_url: str
    finding: FindingResponse


def _load_finding(db: Session, finding_id: str) -> models.Finding:
    try:
        validate_scan_id(finding_id)
    except PathGuardError:
        raise HTTPException(status_code=400, detail="Invalid finding ID")
    finding = storage.get_finding(db, finding_id)
    if not finding:
        raise HTTPException(status_code=404, detail="Finding not found")
    return finding


def _select_model_config(db: Session, config_id: Optional[str]) -> models.ModelConfiguration:
    if config_id:
        config = storage.get_model_config(db, config_id)
        if not config:
            raise HTTPException(status_code=404, detail="Model configuration not found")
        return config
    config = storage.get_default_model_config(db)
    if not config:
        raise HTTPException(status_code=400, detail="No default model configuration")
    return config


@router.get("/{finding_id}", response_model=FindingResponse)
def get_finding(finding_id: str, db: Session = Depends(get_db)):
    return _load_finding(db, finding_id)


def _remediation_context(db: Session, finding_id: str, config_id: Optional[str]):
    finding = _load_finding(db, finding_id)
    config = _select_model_config(db, config_id)
    repository_url = finding.scan.repository_url if finding.file else None
    return finding, ModelConfig.from_record(config), repository_url


def _store_remediation(db: Session, finding: models.Finding, result: RemediationResult) -> FindingResponse:
    return FindingResponse.model_validate(storage.record_remediation(db, finding, result))


@router.post("/{finding_id}/remediate", response_model=RemediateResponse)
async def remediate_finding(
    finding_id: str,
    request: Optional[RemediateRequest] = None,
    db: Session = Depends(get_db),
    provider: GitHubRepositoryProvider = Depends(get_repository_provider),
    engine: RemediationEngine = Depends(get_remediation_engine),
):
    """Generate an AI fix for one finding and store it on the finding.

    Database work runs in the threadpool so the event loop only waits on
    the model call. Every attempt is recorded, including one that fails
    because the repository could not be cloned.
    """
    finding, model_config, repository_url = await run_in_threadpool(
        _remediation_context, db, finding_id, request.model_config_id if request else None
    )

    if not finding.file:
        result = RemediationResult(success=False, error=NO_FILE_ERROR)
    else:
        working_copy = None
        try:
            repository = await run_in_threadpool(provider.resolve, repository_url)
            working_copy = await run_in_threadpool(provider.clone, repository, settings.WORK_DIR)
            result = await engine.remediate(finding, working_copy, model_config)
        except RepositoryError as e:
            log_safe_error(logger, "Could not prepare working copy for remediation", e)
            failed = RemediationResult(success=False, error=WORKING_COPY_ERROR)
            await run_in_threadpool(_store_remediation, db, finding, failed)
            raise HTTPException(status_code=502, detail=str(e))
        finally:
            if working_copy:
                await run_in_threadpool(provider.cleanup, working_copy)

    stored = await run_in_threadpool(_store_remediation, db, finding, result)
    return RemediateResponse(
        success=result.success,
        diff=result.diff,
        explanation=result.explanation,
        error=result.error,
        finding=stored,
    )


@router.post("/{finding_id}/pull-request", response_model=PullRequestResponse)
def create_pull_request(
    finding_id: str,
    db: Session = Depends(get_db),
    provider: GitHubRepositoryProvider = Depends(get_repository_provider),
    publisher: PullRequestPublisher = Depends(get_publisher),
):
    """Open a pull request with a finding's stored fix."""
    finding = _load_finding(db, finding_id)
    if finding.remediation_status != "success" or not finding.remediated_content:
        raise HTTPException(status_code=400, detail="Finding has no successful remediation")
    if finding.pr_url:
        raise HTTPException(status_code=409, detail="Pull request already exists")

    repository_url = finding.scan.repository_url
    working_copy = None
    try:
        repository = provider.resolve(repository_url)
        working_copy = provider.clone(repository, settings.WORK_DIR)
        try:
            apply_fix(working_copy, finding.file, finding.remediated_content)
        except OSError as e:
            log_safe_error(logger, "Could not write fix into working copy", e)
            raise HTTPException(status_code=502, detail={"message": "Failed to apply fix", "step": "apply"})
        pull_request = publisher.publish(
            working_copy,
            repository_url,
            finding,
            finding.remediation_diff,
            base_branch=repository.default_branch,
            user_name=settings.GIT_USER_NAME,
            user_email=settings.GIT_USER_EMAIL,
        )
    except RepositoryError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except PathGuardError as e:
        log_safe_error(logger, "Rejected fix path", e)
        raise HTTPException(status_code=400, detail="Invalid file path")
    except PublishError as e:
        log_safe_error(logger, "Publishing failed", e)
        raise HTTPException(status_code=502, detail={"message": "Failed to create pull request", "step": e.step})
    finally:
        if working_copy:
            provider.cleanup(working_copy)

    finding = storage.record_pull_request(db, finding, pull_request)
    return PullRequestResponse(
        number=pull_request.number,
        url=pull_request.url,
        html_url=pull_request.html_url,
        finding=FindingResponse.model_validate(finding),
    )
