"""
Persistence operations for scans, findings and model configurations.

Terminal scan writes are conditional on the scan still being active, so a
background task finishing late can't overwrite a cancellation.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import case
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("pending", "scanning")
TERMINAL_STATUSES = ("completed", "failed")
CANCELLED_MESSAGE = "Scan cancelled"

_SEVERITY_ORDER = case(
    (models.Finding.severity == "high", 0),
    (models.Finding.severity == "medium", 1),
    (models.Finding.severity == "low", 2),
    else_=3,
)


# Scans

def create_scan(db: Session, repository_url: str, repository_name: str,
                scan_options: Dict[str, bool]) -> models.Scan:
    scan = models.Scan(
        repository_url=repository_url,
        repository_name=repository_name,
        status="pending",
        progress=0,
        scan_options=scan_options,
    )
    db.add(scan)
    db.commit()
    db.refresh(scan)
    return scan


def get_scan(db: Session, scan_id: str) -> Optional[models.Scan]:
    return db.query(models.Scan).filter(models.Scan.id == scan_id).first()


def list_scans(db: Session, limit: int = 50) -> List[models.Scan]:
    return (
        db.query(models.Scan)
        .order_by(models.Scan.created_at.desc())
        .limit(limit)
        .all()
    )


def _update_active(db: Session, scan_id: str, values: Dict[str, Any]) -> bool:
    updated = (
        db.query(models.Scan)
        .filter(models.Scan.id == scan_id, models.Scan.status.in_(ACTIVE_STATUSES))
        .update(values, synchronize_session=False)
    )
    db.commit()
    return bool(updated)


def update_scan_progress(db: Session, scan_id: str, progress: int,
                         current_step: Optional[str], status: str = "scanning") -> bool:
    """Record progress on an active scan. Progress never moves backwards.

    Returns:
        False if the scan is unknown or already terminal.
    """
    progress = min(100, max(0, int(progress)))
    return _update_active(db, scan_id, {
        models.Scan.status: status,
        models.Scan.current_step: current_step,
        models.Scan.progress: case(
            (models.Scan.progress < progress, progress),
            else_=models.Scan.progress,
        ),
    })


def finish_scan(db: Session, scan_id: str, status: str, **fields: Any) -> bool:
    """Move an active scan to ``completed`` or ``failed``.

    Returns:
        False if the scan had already left the active states.
    """
    if status not in TERMINAL_STATUSES:
        raise ValueError(f"Not a terminal status: {status!r}")
    values = {
        models.Scan.status: status,
        models.Scan.current_step: None,
        models.Scan.completed_at: datetime.utcnow(),
    }
    if status == "completed":
        values[models.Scan.progress] = 100
    for key, value in fields.items():
        values[getattr(models.Scan, key)] = value
    finished = _update_active(db, scan_id, values)
    if not finished:
        logger.info("Scan %s was no longer active; %s result discarded", scan_id, status)
    return finished


def cancel_scan(db: Session, scan_id: str) -> bool:
    return finish_scan(db, scan_id, "failed", error_message=CANCELLED_MESSAGE)


# Findings

def replace_findings(db: Session, scan_id: str, findings: Iterable[Any]) -> int:
    """Delete the scan's findings and insert ``findings`` in one transaction."""
    try:
        db.query(models.Finding).filter(models.Finding.scan_id == scan_id).delete(synchronize_session=False)
        rows = [models.Finding(scan_id=scan_id, **finding.to_dict()) for finding in findings]
        db.add_all(rows)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return len(rows)


def clear_findings(db: Session, scan_id: str) -> int:
    deleted = db.query(models.Finding).filter(models.Finding.scan_id == scan_id).delete(synchronize_session=False)
    db.commit()
    return deleted


def get_findings(db: Session, scan_id: str) -> List[models.Finding]:
    """Findings of a scan, high severity first."""
    return (
        db.query(models.Finding)
        .filter(models.Finding.scan_id == scan_id)
        .order_by(_SEVERITY_ORDER, models.Finding.file, models.Finding.line)
        .all()
    )


def get_finding(db: Session, finding_id: str) -> Optional[models.Finding]:
    return db.query(models.Finding).filter(models.Finding.id == finding_id).first()


def record_remediation(db: Session, finding: models.Finding, result: Any) -> models.Finding:
    """Store one remediation attempt on the finding."""
    finding.remediation_status = "success" if result.success else "failed"
    finding.remediated_content = result.fixed_content if result.success else None
    finding.remediation_diff = result.diff if result.success else None
    finding.remediation_error = None if result.success else result.error
    finding.remediated_at = datetime.utcnow()
    db.commit()
    db.refresh(finding)
    return finding


def record_pull_request(db: Session, finding: models.Finding, pull_request: Any) -> models.Finding:
    finding.pr_url = pull_request.html_url
    finding.pr_number = pull_request.number
    db.commit()
    db.refresh(finding)
    return finding


# Model configurations

def list_model_configs(db: Session) -> List[models.ModelConfiguration]:
    return db.query(models.ModelConfiguration).order_by(models.ModelConfiguration.created_at).all()


def get_model_config(db: Session, config_id: str) -> Optional[models.ModelConfiguration]:
    return db.query(models.ModelConfiguration).filter(models.ModelConfiguration.id == config_id).first()


def get_default_model_config(db: Session) -> Optional[models.ModelConfiguration]:
    return db.query(models.ModelConfiguration).filter(models.ModelConfiguration.is_default.is_(True)).first()


def _clear_defaults(db: Session, keep_id: Optional[str] = None) -> None:
    query = db.query(models.ModelConfiguration).filter(models.ModelConfiguration.is_default.is_(True))
    if keep_id:
        query = query.filter(models.ModelConfiguration.id != keep_id)
    query.update({models.ModelConfiguration.is_default: False}, synchronize_session=False)


def create_model_config(db: Session, **fields: Any) -> models.ModelConfiguration:
    config = models.ModelConfiguration(**fields)
    try:
        db.add(config)
        db.flush()
        if config.is_default:
            _clear_defaults(db, keep_id=config.id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(config)
    return config


def update_model_config(db: Session, config: models.ModelConfiguration, **fields: Any) -> models.ModelConfiguration:
    try:
        for key, value in fields.items():
            setattr(config, key, value)
        if config.is_default:
            _clear_defaults(db, keep_id=config.id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(config)
    return config


def set_default_model_config(db: Session, config: models.ModelConfiguration) -> models.ModelConfiguration:
    return update_model_config(db, config, is_default=True)


def delete_model_config(db: Session, config: models.ModelConfiguration) -> None:
    db.delete(config)
    db.commit()
