"""Core Pydantic models for the workflow engine."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_ACTION = "default"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NodeStatus(str, Enum):
    """Lifecycle of a node within one run."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED_BRANCH = "skipped_branch"


class LogStatus(str, Enum):
    """Status recorded on an execution log entry."""
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED_BRANCH = "skipped_branch"


class ErrorType(str, Enum):
    """Kinds of entries in a report's error list."""
    NODE_ERROR = "node_error"
    CYCLE = "cycle"
    INVALID_GRAPH = "invalid_graph"


class BranchSkipPolicy(str, Enum):
    """What the engine does after a condition node evaluates false.

    TRANSITIVE skips every node reachable from the condition and keeps
    running the rest of the schedule. HALT skips the contiguous run of
    downstream nodes right after the condition and then stops the run.
    """
    TRANSITIVE = "transitive"
    HALT = "halt"


class WorkflowNode(BaseModel):
    """Definition of a workflow node."""
    id: str = Field(..., description="Unique identifier for the node within its graph")
    kind: str = Field(..., description="Node type, e.g. gmail, webhook, condition, schedule, llm, trigger")
    action: str = Field(DEFAULT_ACTION, description="Sub-operation of the node kind")
    config: Dict[str, Any] = Field(default_factory=dict, description="Node specific parameters")
    status: NodeStatus = Field(NodeStatus.IDLE, description="Execution status, mutated during a run")

    @field_validator('id', 'kind')
    @classmethod
    def validate_not_empty(cls, value):
        """Ensure identifiers are not blank."""
        if not value or not value.strip():
            raise ValueError("Node id and kind cannot be empty")
        return value.strip()

    @field_validator('action', mode='before')
    @classmethod
    def default_action(cls, action):
        """Treat a missing or blank action as the default action."""
        if action is None or (isinstance(action, str) and not action.strip()):
            return DEFAULT_ACTION
        return action

    @field_validator('config', mode='before')
    @classmethod
    def default_config(cls, config):
        return config or {}

    @classmethod
    def from_canvas(cls, payload: Dict[str, Any]) -> "WorkflowNode":
        """Build a node from the canvas shape ``{id, type, data: {nodeType, config}}``.

        Flat payloads (``{id, kind, action, config}``) are accepted as well.
        """
        data = payload.get("data") or {}
        kind = payload.get("kind") or data.get("nodeType") or payload.get("type")
        config = data.get("config") or payload.get("config") or {}
        action = payload.get("action") or data.get("action")
        return cls(id=payload.get("id"), kind=kind, action=action, config=config)


class WorkflowEdge(BaseModel):
    """Directed data dependency: the target consumes the source's output."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(None, description="Edge identifier")
    source_node_id: str = Field(..., alias="source", description="Source node ID")
    target_node_id: str = Field(..., alias="target", description="Target node ID")
    source_handle: Optional[str] = Field(None, alias="sourceHandle", description="Advisory output port")
    target_handle: Optional[str] = Field(None, alias="targetHandle", description="Advisory input port")


class LogEntry(BaseModel):
    """Log entry for a workflow execution event."""
    model_config = ConfigDict(populate_by_name=True)

    node_id: str = Field(..., alias="nodeId")
    node_kind: str = Field(..., alias="nodeKind")
    status: LogStatus
    result: Optional[Any] = None
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class ErrorEntry(BaseModel):
    """One entry of a report's error list."""
    model_config = ConfigDict(populate_by_name=True)

    type: ErrorType = ErrorType.NODE_ERROR
    node_id: Optional[str] = Field(None, alias="nodeId")
    node_kind: Optional[str] = Field(None, alias="nodeKind")
    message: str
    critical: bool = False
    timestamp: datetime = Field(default_factory=_utcnow)


class ExecutionReport(BaseModel):
    """Outcome of one workflow run."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    logs: List[LogEntry] = Field(default_factory=list)
    results: Dict[str, Any] = Field(default_factory=dict)
    execution_order: List[str] = Field(default_factory=list, alias="executionOrder")
    execution_time_ms: float = Field(0.0, alias="executionTimeMs")
    errors: List[ErrorEntry] = Field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        """Serialize with camelCase keys for API consumers."""
        return self.model_dump(mode="json", by_alias=True)


class ExecuteWorkflowRequest(BaseModel):
    """Request body for executing a workflow."""
    nodes: Optional[List[Dict[str, Any]]] = Field(None, description="Canvas nodes")
    edges: Optional[List[Dict[str, Any]]] = Field(None, description="Canvas edges")


class RegisterWebhookRequest(BaseModel):
    """Request body for registering a webhook-triggered workflow."""
    model_config = ConfigDict(populate_by_name=True)

    workflow_id: str = Field(..., alias="workflowId")
    nodes: List[Dict[str, Any]] = Field(default_factory=list)
    edges: List[Dict[str, Any]] = Field(default_factory=list)
    secret: Optional[str] = None
    enabled: bool = True

    @field_validator('workflow_id')
    @classmethod
    def validate_workflow_id(cls, workflow_id):
        if not workflow_id or not workflow_id.strip():
            raise ValueError("Workflow ID cannot be empty")
        return workflow_id.strip()


class LLMProcessRequest(BaseModel):
    """Request body for the built-in text-processing service."""
    model_config = ConfigDict(populate_by_name=True)

    action: Optional[str] = Field(None, description="summarize, reply, extract or translate")
    input: Optional[Any] = Field(None, description="Text to process")
    model: Optional[str] = None
    service: Optional[str] = None
    target_language: Optional[str] = Field(None, alias="targetLanguage")
    custom_prompt: Optional[str] = Field(None, alias="customPrompt")


class RunSummary(BaseModel):
    """Summary of a stored run."""
    model_config = ConfigDict(populate_by_name=True)

    run_id: str = Field(..., alias="runId")
    success: bool
    node_count: int = Field(..., alias="nodeCount")
    error_count: int = Field(..., alias="errorCount")
    execution_time_ms: float = Field(..., alias="executionTimeMs")
    created_at: datetime = Field(..., alias="createdAt")
