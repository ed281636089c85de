"""Condition node handlers."""

from datetime import datetime, timezone
from typing import Any, Dict

from ..core.conditions import evaluate_conditions, filter_emails, normalize_combinator
from ..core.logging import get_logger

logger = get_logger(__name__)


async def evaluate_condition(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Evaluate the node's conditions against its upstream input.

    The payload carries ``conditions`` (a list of ``{field, operator, value}``)
    and ``operator`` (the AND/OR combinator). A payload with a single
    ``field``/``operator``/``value`` and no list is treated as one condition.

    When the input holds an ``emails`` list, the emails are filtered one by
    one and the result is true exactly when at least one email matches.
    """
    conditions = payload.get("conditions")
    if conditions is None:
        conditions = [{key: payload.get(key) for key in ("field", "operator", "value")}]
    elif not isinstance(conditions, list):
        conditions = [conditions]

    if not conditions:
        return {"success": False, "error": "No conditions specified"}

    combinator = payload.get("operator", "AND")
    input_data = payload.get("input") or {}

    passed, individual_results = evaluate_conditions(conditions, combinator, input_data)

    filtered_emails = None
    if isinstance(input_data, dict) and isinstance(input_data.get("emails"), list):
        filtered_emails = filter_emails(input_data["emails"], conditions, combinator)
        passed = len(filtered_emails) > 0
        logger.debug(f"Condition matched {len(filtered_emails)} of {len(input_data['emails'])} emails")

    return {
        "success": True,
        "result": passed,
        "conditions": conditions,
        "operator": normalize_combinator(combinator),
        "individualResults": individual_results,
        "filteredEmails": filtered_emails,
        "evaluatedAt": datetime.now(timezone.utc).isoformat()
    }


async def missing_condition(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": False, "error": "No condition specified"}
