"""LLM node handlers.

Requests go to an external text-processing service when one is configured,
otherwise to the built-in AIService.
"""

from typing import Any, Dict, Optional

import httpx

from ..core.action_registry import Handler
from ..core.ai_service import AIService
from ..core.logging import get_logger
from .text import extract_text

logger = get_logger(__name__)

LLM_ACTIONS = ("summarize", "reply", "extract", "translate")
PROCESS_PATH = "/api/llm/process"


class LLMClient:
    """Sends text-processing requests to the LLM service."""

    def __init__(
        self,
        api_url: Optional[str],
        default_model: str = "gpt-3.5-turbo",
        default_service: str = "openai",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        ai_service: Optional[AIService] = None
    ):
        self.api_url = api_url.rstrip("/") if api_url else None
        self.default_model = default_model
        self.default_service = default_service
        self.timeout = timeout
        self.transport = transport
        self.ai_service = ai_service

    def _request_body(self, action: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        upstream = payload.get("input")
        if action == "translate":
            text = upstream if isinstance(upstream, str) else (extract_text(payload) or "")
        else:
            text = extract_text(payload) or (upstream if isinstance(upstream, str) else "")

        body = {
            "action": action,
            "input": text,
            "model": payload.get("model") or self.default_model,
            "service": payload.get("service") or self.default_service
        }
        if action == "reply" and payload.get("customPrompt"):
            body["customPrompt"] = payload["customPrompt"]
        if action == "translate":
            body["targetLanguage"] = payload.get("targetLanguage") or "English"
        return body

    async def process(self, action: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = self._request_body(action, payload)
        if self.api_url:
            return await self._process_remote(action, body)
        if self.ai_service is not None:
            return await self._process_builtin(action, body)
        return {"success": False, "error": "LLM service is not configured"}

    async def _process_remote(self, action: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.api_url}{PROCESS_PATH}", json=body)
            if not response.is_success:
                return {"success": False, "error": f"LLM API error: {response.status_code}"}
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"LLM {action} request failed: {e}")
            return {"success": False, "error": str(e) or type(e).__name__}

        if not isinstance(data, dict):
            return {"success": False, "error": "LLM API returned an unexpected response"}
        return self._result(action, data)

    async def _process_builtin(self, action: str, body: Dict[str, Any]) -> Dict[str, Any]:
        if not body["input"]:
            return {"success": False, "error": "Action and input are required"}

        data = await self.ai_service.process(
            action,
            body["input"],
            model=body["model"],
            target_language=body.get("targetLanguage"),
            custom_prompt=body.get("customPrompt"),
            service=body["service"]
        )
        if not data["success"]:
            return {"success": False, "error": data.get("error") or "AI processing failed"}
        return self._result(action, data)

    @staticmethod
    def _result(action: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "success": True,
            "action": action,
            "result": data.get("result"),
            "service": data.get("service"),
            "model": data.get("model"),
            "processingTime": data.get("processing_time_ms")
        }


def build_llm_handlers(client: LLMClient) -> Dict[str, Handler]:
    handlers: Dict[str, Handler] = {}

    def bind(action: str) -> Handler:
        async def handle(payload: Dict[str, Any]) -> Dict[str, Any]:
            return await client.process(action, payload)
        handle.__name__ = f"llm_{action}"
        return handle

    for action in LLM_ACTIONS:
        handlers[action] = bind(action)

    async def llm_default(payload: Dict[str, Any]) -> Dict[str, Any]:
        action = payload.get("action") or "summarize"
        if action in handlers:
            return await handlers[action](payload)
        return {"success": False, "error": f"Unsupported LLM action: {action}"}

    handlers["default"] = llm_default
    return handlers
