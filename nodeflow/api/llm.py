"""Endpoints of the built-in text-processing service used by llm nodes."""

from datetime import datetime, timezone
from typing import Any, Dict
from fastapi import APIRouter, Depends, HTTPException, status

from ..core.ai_service import (
    CAPABILITIES,
    SUPPORTED_LANGUAGES,
    SUPPORTED_MODELS,
    AIService,
)
from ..core.logging import get_logger
from ..handlers.llm import LLM_ACTIONS
from ..models.core import LLMProcessRequest
from .endpoints import get_ai_service

logger = get_logger(__name__)

router = APIRouter(prefix="/api/llm", tags=["llm"])

INPUT_PREVIEW_LENGTH = 200


def _preview(text: str) -> str:
    if len(text) > INPUT_PREVIEW_LENGTH:
        return text[:INPUT_PREVIEW_LENGTH] + "..."
    return text


@router.post(
    "/process",
    summary="Process text",
    description="Summarize, reply to, extract from or translate a piece of text"
)
async def process_text(
    request: LLMProcessRequest,
    ai_service: AIService = Depends(get_ai_service)
) -> Dict[str, Any]:
    """
    Run one text-processing action.

    Raises:
        HTTPException: 400 for a missing or unsupported action, missing input or
            an unconfigured service; 500 when the model call fails
    """
    if not request.action or request.input is None or request.input == "":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "InvalidRequest", "message": "Action and input are required"}
        )
    if request.action not in LLM_ACTIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "InvalidRequest", "message": f"Unsupported LLM action: {request.action}"}
        )
    if request.service and not ai_service.is_enabled(request.service):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "ServiceNotConfigured",
                "message": f"AI service '{request.service}' is not configured. Please check your API keys."
            }
        )

    text = request.input if isinstance(request.input, str) else str(request.input)
    response = await ai_service.process(
        request.action,
        text,
        model=request.model,
        target_language=request.target_language,
        custom_prompt=request.custom_prompt,
        service=request.service
    )

    if not response["success"]:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "LLMProcessingError", "message": response.get("error") or "AI processing failed"}
        )

    return {
        "success": True,
        "action": request.action,
        "input": _preview(text),
        "result": response["result"],
        "service": response["service"],
        "model": response["model"],
        "tokens_used": response.get("tokens_used"),
        "processing_time_ms": response["processing_time_ms"],
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/capabilities", summary="List text-processing capabilities")
async def get_capabilities(ai_service: AIService = Depends(get_ai_service)) -> Dict[str, Any]:
    return {
        "success": True,
        "enabled_services": ai_service.enabled_services(),
        "capabilities": CAPABILITIES,
        "supported_models": SUPPORTED_MODELS,
        "supported_languages": SUPPORTED_LANGUAGES,
        "custom_prompts": "A customPrompt replaces the generated prompt for any action"
    }


@router.get("/status", summary="Text-processing service status")
async def get_status(ai_service: AIService = Depends(get_ai_service)) -> Dict[str, Any]:
    return {
        "success": True,
        "services": ai_service.health_check(),
        "enabled_services": ai_service.enabled_services(),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
