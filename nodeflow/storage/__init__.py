"""Run history storage layer."""

from .database import Base, create_database_engine, create_session_factory, create_tables, drop_tables
from .models import WorkflowRunModel
from .run_store import RunStore

__all__ = [
    "Base",
    "create_database_engine",
    "create_session_factory",
    "create_tables",
    "drop_tables",
    "WorkflowRunModel",
    "RunStore",
]
