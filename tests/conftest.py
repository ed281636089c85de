"""Pytest configuration and fixtures."""

import asyncio
from typing import Any, Dict, List

import pytest

from nodeflow.config import reset_config
from nodeflow.core.action_registry import ActionRegistry
from nodeflow.core.exceptions import HandlerError
from nodeflow.core.execution_engine import ExecutionEngine
from nodeflow.handlers.condition import evaluate_condition


@pytest.fixture(autouse=True)
def clean_config():
    """Keep the global configuration from leaking between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def calls() -> List[Dict[str, Any]]:
    """Payloads received by the recording handlers, in call order."""
    return []


@pytest.fixture
def registry(calls) -> ActionRegistry:
    """Registry with small deterministic handlers for engine tests."""
    registry = ActionRegistry()

    async def echo(payload):
        calls.append(payload)
        return {"success": True, "input": payload["input"], "tag": payload.get("tag")}

    async def const(payload):
        calls.append(payload)
        return payload.get("value", {})

    async def boom(payload):
        calls.append(payload)
        raise HandlerError("boom")

    async def fatal(payload):
        calls.append(payload)
        raise HandlerError("fatal failure", critical=True)

    async def slow(payload):
        await asyncio.sleep(payload.get("delay", 1))
        return {"success": True}

    async def read_mail(payload):
        calls.append(payload)
        return {
            "success": True,
            "emails": [
                {"id": "m1", "subject": "Invoice 42", "from": "billing@example.com"},
                {"id": "m2", "subject": "Lunch?", "from": "friend@example.com"},
            ],
            "count": 2
        }

    registry.register("echo", "default", echo)
    registry.register("const", "default", const)
    registry.register("boom", "default", boom)
    registry.register("fatal", "default", fatal)
    registry.register("slow", "default", slow)
    registry.register("gmail", "read", read_mail)
    registry.register("webhook", "POST", echo)
    registry.register("condition", "evaluate", evaluate_condition)
    return registry


@pytest.fixture
def engine(registry) -> ExecutionEngine:
    return ExecutionEngine(registry)
