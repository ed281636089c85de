"""Core workflow engine components."""

from .exceptions import (
    WorkflowEngineError,
    GraphValidationError,
    CycleError,
    ActionRegistryError,
    UnknownHandlerError,
    HandlerError,
    StorageError,
    ConfigurationError,
    WebhookError,
)
from .logging import setup_logging, get_logger, logging_context
from .action_registry import ActionRegistry
from .graph import ExecutionGraph
from .scheduler import topological_order
from .execution_engine import ExecutionContext, ExecutionEngine

__all__ = [
    "WorkflowEngineError",
    "GraphValidationError",
    "CycleError",
    "ActionRegistryError",
    "UnknownHandlerError",
    "HandlerError",
    "StorageError",
    "ConfigurationError",
    "WebhookError",
    "setup_logging",
    "get_logger",
    "logging_context",
    "ActionRegistry",
    "ExecutionGraph",
    "topological_order",
    "ExecutionContext",
    "ExecutionEngine",
]
