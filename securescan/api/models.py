import uuid

from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Scan(Base):
    __tablename__ = "scans"

    id = Column(String(36), primary_key=True, default=_uuid)
    repository_url = Column(Text, nullable=False)
    repository_name = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending")  # pending, scanning, completed, failed
    progress = Column(Integer, nullable=False, default=0)
    current_step = Column(String)
    scan_options = Column(JSON)
    files_scanned = Column(Integer, default=0)
    summary = Column(JSON)  # {"high": n, "medium": n, "low": n}
    tool_results = Column(JSON)  # [{"tool", "status", "findings", "error"}]
    error_message = Column(Text)
    created_at = Column(DateTime, server_default=func.now())
    completed_at = Column(DateTime)

    findings = relationship("Finding", back_populates="scan", cascade="all, delete-orphan",
                            passive_deletes=True)


class Finding(Base):
    __tablename__ = "findings"

    id = Column(String(36), primary_key=True, default=_uuid)
    scan_id = Column(String(36), ForeignKey("scans.id", ondelete="CASCADE"), nullable=False, index=True)
    severity = Column(String, nullable=False)  # high, medium, low
    title = Column(Text, nullable=False)
    description = Column(Text)
    source = Column(String, nullable=False)
    file = Column(Text)
    line = Column(Integer)
    column = Column(Integer)
    rule = Column(String)
    remediation = Column(Text)
    cve = Column(String)

    # Remediation lifecycle
    remediation_status = Column(String, nullable=False, default="none")  # none, success, failed
    remediated_content = Column(Text)
    remediation_diff = Column(Text)
    remediation_error = Column(Text)
    remediated_at = Column(DateTime)
    pr_url = Column(Text)
    pr_number = Column(Integer)

    created_at = Column(DateTime, server_default=func.now())

    scan = relationship("Scan", back_populates="findings")


class ModelConfiguration(Base):
    __tablename__ = "model_configurations"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    provider = Column(String, nullable=False)  # ollama, openai, anthropic, custom
    model_name = Column(String, nullable=False)
    endpoint = Column(Text)
    api_key = Column(Text)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
