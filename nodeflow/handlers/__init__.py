"""Built-in node handlers and their registration."""

from typing import Optional

import httpx

from ..config import AppConfig
from ..core.action_registry import ActionRegistry
from ..core.ai_service import AIService
from ..core.logging import get_logger
from .condition import evaluate_condition, missing_condition
from .gmail import MailClient, build_gmail_handlers
from .llm import LLMClient, build_llm_handlers
from .schedule import (
    missing_schedule_type,
    schedule_cron,
    schedule_delay,
    schedule_recurring,
    schedule_specific,
)
from .trigger import trigger_default
from .webhook import WebhookClient, build_webhook_handlers

logger = get_logger(__name__)

KIND_DESCRIPTIONS = {
    "gmail": "Send, read, filter and reply to emails",
    "webhook": "Call an external HTTP endpoint",
    "condition": "Continue only when the conditions hold",
    "schedule": "Compute delays, specific times and recurring runs",
    "llm": "Summarize, reply, extract or translate text with an LLM",
    "trigger": "Start a workflow manually or from an incoming webhook",
}


def register_default_handlers(
    registry: ActionRegistry,
    config: Optional[AppConfig] = None,
    mail_client: Optional[MailClient] = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ai_service: Optional[AIService] = None
) -> ActionRegistry:
    """Register every built-in node kind on the registry.

    Args:
        registry: Registry to populate
        config: Application config supplying service URLs and timeouts
        mail_client: Mailbox used by gmail nodes
        http_transport: Transport override for outbound HTTP (used by tests)
        ai_service: Built-in LLM service used when no external URL is configured
    """
    config = config or AppConfig()

    registry.register("condition", "evaluate", evaluate_condition, "Evaluate conditions against the input")
    registry.register("condition", "default", missing_condition)

    registry.register("schedule", "delay", schedule_delay, "Wait for a fixed delay")
    registry.register("schedule", "specific", schedule_specific, "Run at a specific time")
    registry.register("schedule", "recurring", schedule_recurring, "Run on an interval")
    registry.register("schedule", "cron", schedule_cron, "Run on a cron expression")
    registry.register("schedule", "default", missing_schedule_type)

    webhook_client = WebhookClient(timeout=config.http_timeout, transport=http_transport)
    for action, handler in build_webhook_handlers(webhook_client).items():
        registry.register("webhook", action, handler, f"{action} request")

    llm_client = LLMClient(
        config.llm_api_url,
        default_model=config.llm_default_model,
        default_service=config.llm_default_service,
        timeout=config.http_timeout,
        transport=http_transport,
        ai_service=ai_service
    )
    for action, handler in build_llm_handlers(llm_client).items():
        registry.register("llm", action, handler)

    for action, handler in build_gmail_handlers(mail_client).items():
        registry.register("gmail", action, handler)

    registry.register("trigger", "default", trigger_default, "Pass trigger data downstream")

    for kind, description in KIND_DESCRIPTIONS.items():
        registry.describe_kind(kind, description)

    if mail_client is None:
        logger.info("No mail client configured; gmail nodes will report failures")
    logger.info(f"Registered built-in handlers for {len(KIND_DESCRIPTIONS)} node kinds")
    return registry


__all__ = [
    "KIND_DESCRIPTIONS",
    "LLMClient",
    "MailClient",
    "WebhookClient",
    "register_default_handlers",
]
