"""Endpoints for registering and firing webhook-triggered workflows."""

import json
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..core.exceptions import GraphValidationError, WebhookError, WorkflowEngineError, create_error_response
from ..core.execution_engine import ExecutionEngine
from ..core.graph import ExecutionGraph
from ..core.logging import get_logger, logging_context
from ..core.scheduler import topological_order
from ..core.webhook_registry import WebhookConfig, WebhookRegistry, verify_signature_or_auth
from ..models.core import RegisterWebhookRequest, WorkflowNode
from ..storage.run_store import RunStore
from .endpoints import (
    execute_and_record,
    get_execution_engine,
    get_optional_run_store,
    get_webhook_registry,
    parse_workflow,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["webhooks"])

TRIGGER_KIND = "trigger"


def _webhook_url(request: Request, workflow_id: str) -> str:
    return str(request.url_for("handle_webhook", workflow_id=workflow_id))


def _describe(config: WebhookConfig, request: Request) -> Dict[str, Any]:
    return {
        "workflowId": config.workflow_id,
        "webhookUrl": _webhook_url(request, config.workflow_id),
        "enabled": config.enabled,
        "hasSecret": config.has_secret,
        "createdAt": config.created_at.isoformat()
    }


def _decode_body(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw.decode("utf-8", errors="replace")


def attach_webhook_data(nodes: List[WorkflowNode], webhook_data: Dict[str, Any]) -> List[WorkflowNode]:
    """Hand the incoming request to the workflow's trigger nodes.

    Workflows without a trigger node get a synthetic one in front.
    """
    trigger_config = {"triggerType": "webhook", "webhookData": webhook_data}
    prepared = []
    has_trigger = False
    for node in nodes:
        if node.kind == TRIGGER_KIND:
            has_trigger = True
            node = node.model_copy(update={"config": {**node.config, **trigger_config}})
        prepared.append(node)

    if not has_trigger:
        prepared.insert(0, WorkflowNode(
            id=f"webhook_trigger_{int(time.time() * 1000)}",
            kind=TRIGGER_KIND,
            config=trigger_config
        ))
    return prepared


@router.post(
    "/webhooks",
    status_code=status.HTTP_201_CREATED,
    summary="Register a webhook",
    description="Store a workflow that runs whenever its webhook URL is called"
)
async def register_webhook(
    body: RegisterWebhookRequest,
    request: Request,
    webhook_registry: WebhookRegistry = Depends(get_webhook_registry)
) -> Dict[str, Any]:
    """
    Register a webhook-triggered workflow.

    Raises:
        HTTPException: 400 if the workflow is malformed or cyclic
    """
    nodes, edges = parse_workflow(body.nodes, body.edges)
    try:
        topological_order(ExecutionGraph.build(nodes, edges))
    except GraphValidationError as e:
        logger.warning(f"Rejected webhook workflow {body.workflow_id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=create_error_response(e)
        )

    config = webhook_registry.register(
        body.workflow_id,
        body.nodes,
        body.edges,
        secret=body.secret,
        enabled=body.enabled
    )
    return _describe(config, request)


@router.get(
    "/webhooks",
    summary="List webhooks",
    description="All registered webhook endpoints"
)
async def list_webhooks(
    request: Request,
    webhook_registry: WebhookRegistry = Depends(get_webhook_registry)
) -> Dict[str, Any]:
    endpoints = [_describe(config, request) for config in webhook_registry.list()]
    return {"endpoints": endpoints, "total": len(endpoints)}


@router.get(
    "/webhooks/{workflow_id}/url",
    summary="Get a webhook URL"
)
async def get_webhook_url(
    workflow_id: str,
    request: Request,
    webhook_registry: WebhookRegistry = Depends(get_webhook_registry)
) -> Dict[str, Any]:
    config = webhook_registry.get(workflow_id)
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "WebhookNotFound",
                "message": "Webhook configuration not found",
                "details": {"workflow_id": workflow_id}
            }
        )
    return _describe(config, request)


@router.delete(
    "/webhooks/{workflow_id}",
    summary="Unregister a webhook"
)
async def delete_webhook(
    workflow_id: str,
    webhook_registry: WebhookRegistry = Depends(get_webhook_registry)
) -> Dict[str, Any]:
    if not webhook_registry.unregister(workflow_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "WebhookNotFound",
                "message": "Webhook configuration not found",
                "details": {"workflow_id": workflow_id}
            }
        )
    return {"message": f"Webhook for workflow '{workflow_id}' removed", "workflowId": workflow_id}


@router.api_route(
    "/webhook/{workflow_id}",
    methods=["POST", "GET", "PUT"],
    name="handle_webhook",
    summary="Fire a webhook",
    description="Run the registered workflow with the incoming request as trigger data"
)
async def handle_webhook(
    workflow_id: str,
    request: Request,
    webhook_registry: WebhookRegistry = Depends(get_webhook_registry),
    execution_engine: ExecutionEngine = Depends(get_execution_engine),
    run_store: Optional[RunStore] = Depends(get_optional_run_store)
) -> Dict[str, Any]:
    """
    Handle an incoming webhook call.

    Raises:
        HTTPException: 404 for unknown or disabled webhooks, 401 when the
            signature or authorization does not match the secret
    """
    with logging_context(workflow_id=workflow_id):
        try:
            config = webhook_registry.get_enabled(workflow_id)
        except WebhookError as e:
            raise HTTPException(status_code=e.status_code, detail=create_error_response(e))

        raw_body = await request.body()
        if config.has_secret and not verify_signature_or_auth(request.headers, raw_body, config.secret):
            logger.warning(f"Rejected webhook call for {workflow_id}: invalid signature or authorization")
            error = WebhookError(
                "Invalid webhook signature or authorization",
                status_code=status.HTTP_401_UNAUTHORIZED,
                workflow_id=workflow_id
            )
            raise HTTPException(status_code=error.status_code, detail=create_error_response(error))

        webhook_data = {
            "method": request.method,
            "url": str(request.url),
            "headers": dict(request.headers),
            "body": _decode_body(raw_body),
            "query": dict(request.query_params),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "ip": request.client.host if request.client else None
        }

        nodes, edges = parse_workflow(config.nodes, config.edges)
        nodes = attach_webhook_data(nodes, webhook_data)
        logger.info(f"Webhook fired for workflow {workflow_id}")

        try:
            result = await execute_and_record(execution_engine, run_store, nodes, edges)
        except WorkflowEngineError as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=create_error_response(e)
            )

        return {
            "success": True,
            "message": "Webhook processed successfully",
            "workflowId": workflow_id,
            "runId": result.get("runId"),
            "result": result
        }
