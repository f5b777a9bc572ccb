from fastapi import APIRouter, HTTPException, Depends, BackgroundTasks
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import datetime
import logging

from ..config import settings
from ..database import get_db
from ..dependencies import get_orchestrator, get_repository_provider
from .. import database, storage
from .findings import FindingResponse
from ...github import GitHubRepositoryProvider, Repository, RepositoryError
from ...log_utils import log_safe_error
from ...orchestrator import ScanOptions, ScanOrchestrator
from ...path_guard import PathGuardError, validate_scan_id
from ...session_state import scan_sessions

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/scans",
    tags=["scans"]
)

CLONE_STEP = "Cloning repository..."
CLONE_PROGRESS = 10

class ScanOptionsModel(BaseModel):
    eslint: bool = True
    npm_audit: bool = True
    security_patterns: bool = True
    semgrep: bool = True
    trivy: bool = True
    secret_scan: bool = True
    bandit: bool = True
    safety: bool = True
    deep_analysis: bool = False

class ScanRequest(BaseModel):
    repository_url: str
    scan_options: ScanOptionsModel = ScanOptionsModel()

class ScanResponse(BaseModel):
    id: str
    repository_url: str
    repository_name: str
    status: str
    progress: int
    current_step: Optional[str] = None
    scan_options: Optional[Dict[str, bool]] = None
    files_scanned: Optional[int] = None
    summary: Optional[Dict[str, int]] = None
    tool_results: Optional[List[Dict[str, Any]]] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

class ScanDetailResponse(ScanResponse):
    findings: List[FindingResponse] = []

class ProgressResponse(BaseModel):
    status: str
    progress: int
    current_step: Optional[str] = None


def _validated_id(scan_id: str) -> str:
    try:
        return validate_scan_id(scan_id)
    except PathGuardError:
        raise HTTPException(status_code=400, detail="Invalid scan ID")


def perform_scan(scan_id: str, repository: Repository, options: ScanOptions,
                 provider: GitHubRepositoryProvider, orchestrator: ScanOrchestrator):
    """
    Background task: clone, run every enabled stage, store the results.
    """
    logger.info("Starting scan %s for %s", scan_id, repository.full_name)
    db = database.SessionLocal()
    working_copy = None

    def on_progress(step: str, progress: int):
        if storage.update_scan_progress(db, scan_id, progress, step):
            scan_sessions.update(scan_id, status="scanning", progress=progress, current_step=step)

    try:
        on_progress(CLONE_STEP, CLONE_PROGRESS)
        try:
            working_copy = provider.clone(repository, settings.WORK_DIR)
        except RepositoryError as e:
            storage.finish_scan(db, scan_id, "failed", error_message=str(e))
            return

        result = orchestrator.run(
            working_copy,
            options,
            on_progress=on_progress,
            is_cancelled=lambda: scan_sessions.is_cancelled(scan_id),
        )
        if result.cancelled:
            logger.info("Scan %s cancelled; results discarded", scan_id)
            return

        storage.replace_findings(db, scan_id, result.findings)
        completed = storage.finish_scan(
            db,
            scan_id,
            "completed",
            files_scanned=result.files_scanned,
            summary=result.summary,
            tool_results=result.tool_results_dict(),
        )
        if not completed:
            storage.clear_findings(db, scan_id)
    except Exception as e:
        log_safe_error(logger, f"Scan {scan_id} failed", e)
        db.rollback()
        storage.finish_scan(db, scan_id, "failed", error_message="Scan failed")
    finally:
        if working_copy:
            provider.cleanup(working_copy)
        scan_sessions.delete(scan_id)
        db.close()


@router.get("/", response_model=List[ScanResponse])
def list_scans(db: Session = Depends(get_db)):
    """Latest scans, newest first."""
    return storage.list_scans(db)


@router.post("/", response_model=ScanResponse)
def create_scan(
    request: ScanRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    provider: GitHubRepositoryProvider = Depends(get_repository_provider),
    orchestrator: ScanOrchestrator = Depends(get_orchestrator),
):
    """Validate the repository and start a scan in the background."""
    try:
        repository = provider.resolve(request.repository_url)
    except RepositoryError as e:
        raise HTTPException(status_code=400, detail=str(e))

    options = ScanOptions.from_mapping(request.scan_options.model_dump())
    scan = storage.create_scan(db, request.repository_url, repository.full_name, options.to_dict())
    scan_sessions.create(scan.id)

    background_tasks.add_task(perform_scan, scan.id, repository, options, provider, orchestrator)
    return scan


@router.get("/{scan_id}", response_model=ScanDetailResponse)
def get_scan(scan_id: str, db: Session = Depends(get_db)):
    scan = storage.get_scan(db, _validated_id(scan_id))
    if not scan:
        raise HTTPException(status_code=404, detail="Scan not found")
    response = ScanDetailResponse.model_validate(scan)
    response.findings = [FindingResponse.model_validate(f) for f in storage.get_findings(db, scan.id)]
    return response


@router.get("/{scan_id}/progress", response_model=ProgressResponse)
def get_scan_progress(scan_id: str, db: Session = Depends(get_db)):
    """Live progress while the scan runs, stored state afterwards."""
    scan_id = _validated_id(scan_id)
    live = scan_sessions.get(scan_id)
    if live:
        return ProgressResponse(**live.to_dict())

    scan = storage.get_scan(db, scan_id)
    if not scan:
        raise HTTPException(status_code=404, detail="Scan not found")
    return ProgressResponse(status=scan.status, progress=scan.progress or 0, current_step=scan.current_step)


@router.post("/{scan_id}/cancel")
def cancel_scan(scan_id: str, db: Session = Depends(get_db)):
    scan_id = _validated_id(scan_id)
    scan = storage.get_scan(db, scan_id)
    if not scan:
        raise HTTPException(status_code=404, detail="Scan not found")

    if not storage.cancel_scan(db, scan_id):
        raise HTTPException(status_code=409, detail="Scan already finished")
    scan_sessions.cancel(scan_id)
    return {"message": "Scan cancelled"}
