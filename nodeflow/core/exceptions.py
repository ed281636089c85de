"""Custom exceptions for the workflow engine with detailed error information."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for categorizing exceptions."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of errors for better classification."""
    VALIDATION = "validation"
    EXECUTION = "execution"
    STORAGE = "storage"
    NETWORK = "network"
    CONFIGURATION = "configuration"
    SECURITY = "security"


class WorkflowEngineError(Exception):
    """Base exception for all workflow engine errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.EXECUTION,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.severity = severity
        self.category = category
        self.details = details or {}
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    @property
    def critical(self) -> bool:
        """Critical errors abort the remaining schedule of a run."""
        return self.severity == ErrorSeverity.CRITICAL

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging and API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "details": self.details,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "exception_type": self.__class__.__name__
        }

    def add_context(self, **kwargs):
        """Add additional context to the exception."""
        self.context.update(kwargs)
        return self

    def add_details(self, **kwargs):
        """Add additional details to the exception."""
        self.details.update(kwargs)
        return self


class GraphValidationError(WorkflowEngineError):
    """Raised when a node/edge list cannot be turned into an execution graph."""

    def __init__(self, message: str, node_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.VALIDATION,
            **kwargs
        )
        self.node_id = node_id
        if node_id:
            self.add_context(node_id=node_id)


class CycleError(GraphValidationError):
    """Raised by the scheduler when the graph contains a dependency cycle."""

    def __init__(self, node_id: str, **kwargs):
        super().__init__(f"Circular dependency detected: {node_id}", node_id=node_id, **kwargs)


class ActionRegistryError(WorkflowEngineError):
    """Raised when action registry operations fail."""

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        action: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.CONFIGURATION,
            **kwargs
        )
        if kind:
            self.add_context(kind=kind)
        if action:
            self.add_context(action=action)


class UnknownHandlerError(ActionRegistryError):
    """Raised when neither (kind, action) nor (kind, "default") is registered."""

    def __init__(self, kind: str, action: str, **kwargs):
        super().__init__(
            f"No handler found for node type: {kind} (action: {action})",
            kind=kind,
            action=action,
            **kwargs
        )
        self.kind = kind
        self.action = action


class HandlerError(WorkflowEngineError):
    """Raised by a node handler that cannot report its failure as data."""

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        kind: Optional[str] = None,
        critical: bool = False,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.CRITICAL if critical else ErrorSeverity.HIGH,
            category=ErrorCategory.EXECUTION,
            **kwargs
        )
        if node_id:
            self.add_context(node_id=node_id)
        if kind:
            self.add_context(kind=kind)


class StorageError(WorkflowEngineError):
    """Raised when run history storage operations fail."""

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.STORAGE,
            **kwargs
        )
        if operation:
            self.add_context(operation=operation)


class ConfigurationError(WorkflowEngineError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.CONFIGURATION,
            **kwargs
        )
        if config_key:
            self.add_context(config_key=config_key)


class WebhookError(WorkflowEngineError):
    """Raised when an incoming webhook cannot be accepted."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        workflow_id: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.SECURITY if status_code == 401 else ErrorCategory.VALIDATION,
            **kwargs
        )
        self.status_code = status_code
        if workflow_id:
            self.add_context(workflow_id=workflow_id)


def create_error_response(error: WorkflowEngineError) -> Dict[str, Any]:
    """Create a standardized error response from a WorkflowEngineError."""
    return {
        "error": error.error_code,
        "message": error.message,
        "details": {
            **error.details,
            "severity": error.severity.value,
            "category": error.category.value,
            "timestamp": error.timestamp.isoformat()
        },
        "context": error.context
    }
