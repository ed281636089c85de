"""Trigger node handler."""

from datetime import datetime, timezone
from typing import Any, Dict


async def trigger_default(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Start of a workflow; passes the trigger data on to its successors."""
    result = {
        "success": True,
        "triggerType": payload.get("triggerType") or "manual",
        "triggeredAt": datetime.now(timezone.utc).isoformat()
    }
    if payload.get("webhookData") is not None:
        result["webhookData"] = payload["webhookData"]
    return result
