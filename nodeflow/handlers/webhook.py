"""Webhook node handlers issuing outbound HTTP requests."""

import json
from typing import Any, Dict, Optional

import httpx

from ..core.action_registry import Handler
from ..core.logging import get_logger
from .text import replace_placeholders

logger = get_logger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")
BODY_METHODS = ("POST", "PUT", "PATCH")


def parse_headers(headers: Any) -> Dict[str, str]:
    """Headers come from the properties form as a JSON string or a dict."""
    if isinstance(headers, dict):
        return {str(k): str(v) for k, v in headers.items()}
    if not headers or not isinstance(headers, str):
        return {}
    try:
        parsed = json.loads(headers)
    except ValueError:
        logger.warning("Ignoring webhook headers that are not valid JSON")
        return {}
    return {str(k): str(v) for k, v in parsed.items()} if isinstance(parsed, dict) else {}


def _is_json(text: str) -> bool:
    try:
        json.loads(text)
    except ValueError:
        return False
    return True


class WebhookClient:
    """Performs the HTTP call behind every webhook action."""

    def __init__(self, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    async def request(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        upstream = payload.get("input")
        url = payload.get("url")
        if isinstance(upstream, dict):
            url = replace_placeholders(url, upstream)

        if not url:
            return {
                "success": False,
                "error": "URL is required for webhook request",
                "url": payload.get("url"),
                "method": method
            }

        headers = parse_headers(payload.get("headers"))
        body = None
        if method in BODY_METHODS:
            body = payload.get("body") or "{}"
            if not isinstance(body, str):
                body = json.dumps(body, default=str)
            if isinstance(upstream, dict):
                body = replace_placeholders(body, upstream)
            if _is_json(body) and not any(k.lower() == "content-type" for k in headers):
                headers["Content-Type"] = "application/json"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, url, headers=headers, content=body)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Webhook {method} {url} failed: {e}")
            return {"success": False, "error": str(e) or type(e).__name__, "url": url, "method": method}

        content_type = response.headers.get("content-type")
        data: Any = response.text
        if content_type and "application/json" in content_type:
            try:
                data = response.json()
            except ValueError:
                logger.debug(f"Webhook {method} {url} returned malformed JSON")

        result = {
            "success": True,
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "data": data,
            "headers": dict(response.headers),
            "url": url,
            "method": method,
            "contentType": content_type
        }
        if body is not None:
            result["body"] = body
        return result


def build_webhook_handlers(client: WebhookClient) -> Dict[str, Handler]:
    """One handler per HTTP method, plus a default dispatching on ``method``."""
    handlers: Dict[str, Handler] = {}

    def bind(method: str) -> Handler:
        async def handle(payload: Dict[str, Any]) -> Dict[str, Any]:
            return await client.request(method, payload)
        handle.__name__ = f"webhook_{method.lower()}"
        return handle

    for method in HTTP_METHODS:
        handlers[method] = bind(method)

    async def webhook_default(payload: Dict[str, Any]) -> Dict[str, Any]:
        method = str(payload.get("method") or "GET").upper()
        if method in HTTP_METHODS:
            return await handlers[method](payload)
        return {"success": False, "error": f"Unsupported HTTP method: {method}"}

    handlers["default"] = webhook_default
    return handlers
