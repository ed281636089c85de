"""SQLAlchemy database models for run history."""

from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, DateTime, Float, Integer, JSON, String
from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowRunModel(Base):
    """Database model for a finished workflow run."""
    __tablename__ = "workflow_runs"

    id = Column(String, primary_key=True)
    success = Column(Boolean, nullable=False)
    node_count = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)
    execution_time_ms = Column(Float, nullable=False, default=0.0)
    execution_order = Column(JSON)  # List of scheduled node IDs
    report = Column(JSON, nullable=False)  # The full execution report as returned by the API
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
