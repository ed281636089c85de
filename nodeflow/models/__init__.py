"""Data models for the workflow engine."""

from .core import (
    DEFAULT_ACTION,
    BranchSkipPolicy,
    ErrorEntry,
    ErrorType,
    ExecuteWorkflowRequest,
    ExecutionReport,
    LLMProcessRequest,
    LogEntry,
    LogStatus,
    NodeStatus,
    RegisterWebhookRequest,
    RunSummary,
    WorkflowEdge,
    WorkflowNode,
)

__all__ = [
    "DEFAULT_ACTION",
    "BranchSkipPolicy",
    "ErrorEntry",
    "ErrorType",
    "ExecuteWorkflowRequest",
    "ExecutionReport",
    "LLMProcessRequest",
    "LogEntry",
    "LogStatus",
    "NodeStatus",
    "RegisterWebhookRequest",
    "RunSummary",
    "WorkflowEdge",
    "WorkflowNode",
]
