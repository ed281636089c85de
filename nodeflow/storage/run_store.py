"""Persistence of execution reports."""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..core.exceptions import StorageError
from ..core.logging import get_logger
from ..models.core import ExecutionReport, RunSummary
from .models import WorkflowRunModel

logger = get_logger(__name__)

DEFAULT_LIST_LIMIT = 50


class RunStore:
    """Stores execution reports so past runs can be inspected.

    Only reports are kept; workflow definitions are never persisted.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def save_report(
        self,
        report: ExecutionReport,
        node_count: int,
        run_id: Optional[str] = None
    ) -> str:
        """
        Persist an execution report.

        Args:
            report: Report returned by the execution engine
            node_count: Number of nodes in the executed workflow
            run_id: Identifier to store the run under; generated when omitted

        Returns:
            str: The run ID

        Raises:
            StorageError: If the report cannot be written
        """
        run_id = run_id or str(uuid.uuid4())
        row = WorkflowRunModel(
            id=run_id,
            success=report.success,
            node_count=node_count,
            error_count=len(report.errors),
            execution_time_ms=report.execution_time_ms,
            execution_order=list(report.execution_order),
            report=report.to_response()
        )

        with self.session_factory() as session:
            try:
                session.add(row)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Failed to save run {run_id}: {e}")
                raise StorageError(f"Failed to save run: {e}", operation="save_report") from e

        logger.debug(f"Saved run {run_id} with {node_count} nodes")
        return run_id

    def get_run(self, run_id: str) -> Dict[str, Any]:
        """Return the stored report of a run.

        Raises:
            StorageError: If the run does not exist or the lookup fails
        """
        with self.session_factory() as session:
            try:
                row = session.get(WorkflowRunModel, run_id)
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to load run: {e}", operation="get_run") from e

            if row is None:
                raise StorageError(f"Run not found: {run_id}", operation="get_run")

            return {"runId": row.id, **row.report}

    def list_runs(self, limit: int = DEFAULT_LIST_LIMIT) -> List[RunSummary]:
        """Most recent runs first."""
        query = (
            select(WorkflowRunModel)
            .order_by(WorkflowRunModel.created_at.desc())
            .limit(max(1, limit))
        )
        with self.session_factory() as session:
            try:
                rows = session.execute(query).scalars().all()
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to list runs: {e}", operation="list_runs") from e

            return [
                RunSummary(
                    run_id=row.id,
                    success=row.success,
                    node_count=row.node_count,
                    error_count=row.error_count,
                    execution_time_ms=row.execution_time_ms,
                    created_at=row.created_at
                )
                for row in rows
            ]
