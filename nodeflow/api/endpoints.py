"""FastAPI REST endpoints for executing workflows and inspecting runs."""

import uuid
from typing import Dict, List, Any, Optional
from fastapi import APIRouter, HTTPException, Depends, Query, status
from pydantic import ValidationError

from ..core.action_registry import ActionRegistry
from ..core.ai_service import AIService
from ..core.execution_engine import ExecutionEngine
from ..core.exceptions import StorageError, WorkflowEngineError, create_error_response
from ..core.logging import get_logger
from ..core.webhook_registry import WebhookRegistry
from ..models.core import ExecuteWorkflowRequest, RunSummary, WorkflowEdge, WorkflowNode
from ..storage.run_store import RunStore

logger = get_logger(__name__)

# Create router
router = APIRouter(prefix="/api/v1", tags=["workflow"])

# Global instances (initialized by the application factory)
_execution_engine: Optional[ExecutionEngine] = None
_action_registry: Optional[ActionRegistry] = None
_webhook_registry: Optional[WebhookRegistry] = None
_run_store: Optional[RunStore] = None
_ai_service: Optional[AIService] = None


def init_dependencies(
    execution_engine: ExecutionEngine,
    action_registry: ActionRegistry,
    webhook_registry: WebhookRegistry,
    run_store: Optional[RunStore] = None,
    ai_service: Optional[AIService] = None
):
    """Initialize the global dependencies."""
    global _execution_engine, _action_registry, _webhook_registry, _run_store, _ai_service
    _execution_engine = execution_engine
    _action_registry = action_registry
    _webhook_registry = webhook_registry
    _run_store = run_store
    _ai_service = ai_service


def get_execution_engine() -> ExecutionEngine:
    """Dependency to get the execution engine."""
    if _execution_engine is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Execution engine not initialized"
        )
    return _execution_engine


def get_action_registry() -> ActionRegistry:
    """Dependency to get the action registry."""
    if _action_registry is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Action registry not initialized"
        )
    return _action_registry


def get_webhook_registry() -> WebhookRegistry:
    """Dependency to get the webhook registry."""
    if _webhook_registry is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook registry not initialized"
        )
    return _webhook_registry


def get_ai_service() -> AIService:
    """Dependency to get the built-in LLM service."""
    if _ai_service is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="AI service not initialized"
        )
    return _ai_service


def get_optional_run_store() -> Optional[RunStore]:
    """Dependency returning the run store, or None when run history is off."""
    return _run_store


def get_run_store() -> RunStore:
    """Dependency to get the run store for history endpoints."""
    if _run_store is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "RunHistoryDisabled",
                "message": "Run history is not enabled on this server"
            }
        )
    return _run_store


def parse_workflow(nodes: List[Dict[str, Any]], edges: List[Dict[str, Any]]):
    """Convert canvas payloads into nodes and edges.

    Raises:
        HTTPException: 400 when a node or edge is malformed
    """
    try:
        workflow_nodes = [WorkflowNode.from_canvas(node) for node in nodes]
        workflow_edges = [WorkflowEdge.model_validate(edge) for edge in edges]
    except (ValidationError, AttributeError) as e:
        logger.warning(f"Rejected malformed workflow payload: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "InvalidWorkflow",
                "message": "Workflow nodes or edges are malformed",
                "details": {"original_error": str(e)}
            }
        )
    return workflow_nodes, workflow_edges


async def execute_and_record(
    execution_engine: ExecutionEngine,
    run_store: Optional[RunStore],
    nodes: List[WorkflowNode],
    edges: List[WorkflowEdge]
) -> Dict[str, Any]:
    """Run a workflow and build the API response body.

    The body is the execution report plus ``nodeResults`` and, when run
    history is enabled, the ``runId`` the report was stored under.
    """
    run_id = str(uuid.uuid4())
    report = await execution_engine.run(nodes, edges, run_id=run_id)

    body = report.to_response()
    body["nodeResults"] = [
        {"nodeId": node_id, "output": output}
        for node_id, output in body["results"].items()
    ]

    if run_store is not None:
        try:
            body["runId"] = run_store.save_report(report, node_count=len(nodes), run_id=run_id)
        except StorageError as e:
            # the run already happened; report it without a history entry
            logger.error(f"Run {run_id} finished but could not be stored: {e.message}")

    return body


# Endpoints

@router.post(
    "/workflow/execute",
    summary="Execute a workflow",
    description="Run a canvas workflow synchronously and return its execution report"
)
@router.post(
    "/execute",
    summary="Execute a workflow",
    description="Alias of /workflow/execute"
)
async def execute_workflow(
    request: ExecuteWorkflowRequest,
    execution_engine: ExecutionEngine = Depends(get_execution_engine),
    run_store: Optional[RunStore] = Depends(get_optional_run_store)
) -> Dict[str, Any]:
    """
    Execute a workflow graph.

    Args:
        request: Canvas nodes and edges
        execution_engine: Execution engine dependency
        run_store: Run history, if enabled

    Returns:
        The execution report with per-node results

    Raises:
        HTTPException: If nodes or edges are missing or malformed
    """
    if request.nodes is None or request.edges is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "InvalidRequest", "message": "Missing nodes or edges"}
        )

    nodes, edges = parse_workflow(request.nodes, request.edges)
    logger.info(f"Executing workflow with {len(nodes)} nodes and {len(edges)} edges")

    try:
        return await execute_and_record(execution_engine, run_store, nodes, edges)
    except WorkflowEngineError as e:
        logger.warning(f"Workflow engine error during execution: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=create_error_response(e)
        )


@router.get(
    "/nodes",
    summary="List node kinds",
    description="Node kinds available in the palette with their descriptions"
)
async def list_nodes(
    action_registry: ActionRegistry = Depends(get_action_registry)
) -> Dict[str, Any]:
    return {"nodes": action_registry.list_kinds()}


@router.get(
    "/runs",
    response_model=List[RunSummary],
    response_model_by_alias=True,
    summary="List stored runs",
    description="Most recent stored workflow runs first"
)
async def list_runs(
    limit: int = Query(50, ge=1, le=500, description="Maximum number of runs to return"),
    run_store: RunStore = Depends(get_run_store)
) -> List[RunSummary]:
    try:
        return run_store.list_runs(limit=limit)
    except StorageError as e:
        logger.error(f"Error listing runs: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=create_error_response(e)
        )


@router.get(
    "/runs/{run_id}",
    summary="Get a stored run",
    description="Retrieve the full execution report of a stored run"
)
async def get_run(
    run_id: str,
    run_store: RunStore = Depends(get_run_store)
) -> Dict[str, Any]:
    """
    Get the stored report of a run.

    Raises:
        HTTPException: 404 if the run is unknown
    """
    try:
        return run_store.get_run(run_id)
    except StorageError as e:
        if "not found" in e.message.lower():
            logger.warning(f"Run not found: {run_id}")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={
                    "error": "RunNotFound",
                    "message": f"Run with ID '{run_id}' not found",
                    "details": {"run_id": run_id}
                }
            )
        logger.error(f"Error getting run {run_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=create_error_response(e)
        )
