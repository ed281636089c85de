"""Predicate evaluation for condition nodes.

A condition is a ``{field, operator, value}`` triple evaluated against the
upstream data of a node. Text operators compare the lower-cased string form
of both sides; ``greater_than``/``less_than`` compare numbers.
"""

import json
import math
from datetime import date, datetime
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .logging import get_logger

logger = get_logger(__name__)

# Result of an operator name that is not recognized
UNKNOWN_OPERATOR_RESULT = True

# Combinator used when the configured one is neither AND nor OR
DEFAULT_COMBINATOR = "AND"

# ``is_empty`` treats numeric zero like a missing value
ZERO_IS_EMPTY = True

# Text form of a missing field in text comparisons
MISSING_VALUE_TEXT = ""

TODAY_KEYWORD = "today"

OPERATORS = (
    "equals",
    "not_equals",
    "contains",
    "not_contains",
    "starts_with",
    "ends_with",
    "greater_than",
    "less_than",
    "is_empty",
    "is_not_empty",
)


def resolve_field(data: Any, path: str) -> Any:
    """
    Resolve a dot-delimited path inside nested dicts and lists.

    A path without dots is first looked up on the first element of an
    ``emails`` list, so mail-read results can be filtered by ``subject`` or
    ``from`` directly.

    Returns:
        The value, or None when any segment is missing
    """
    if data is None or not path:
        return None

    if "." not in path and isinstance(data, dict):
        emails = data.get("emails")
        if isinstance(emails, list) and emails:
            first = emails[0]
            if isinstance(first, dict) and path in first:
                return first[path]

    current = data
    for segment in path.split("."):
        if isinstance(current, dict):
            current = current.get(segment)
        elif isinstance(current, (list, tuple)) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def _to_text(value: Any) -> str:
    if value is None:
        return MISSING_VALUE_TEXT
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def _to_number(value: Any) -> float:
    if value is None:
        return math.nan
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def is_empty(value: Any) -> bool:
    """Truthiness test used by ``is_empty``/``is_not_empty``."""
    if value is None:
        return True
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return ZERO_IS_EMPTY and value == 0
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (dict, list, tuple, set)):
        return len(value) == 0
    return False


def parse_date(value: Any) -> Optional[date]:
    """Parse ISO 8601, RFC 2822 mail dates, epoch milliseconds or date objects."""
    if isinstance(value, datetime):
        return value.astimezone().date() if value.tzinfo else value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000).date()
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        return parse_date(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        return parse_date(parsedate_to_datetime(text))
    except (TypeError, ValueError, IndexError):
        return None


def evaluate(
    field: Optional[str],
    operator: Optional[str],
    value: Any,
    data: Any,
    today: Optional[date] = None
) -> bool:
    """
    Evaluate one condition against ``data``.

    Args:
        field: Dot path of the value to test; an empty field passes
        operator: One of OPERATORS; anything else yields UNKNOWN_OPERATOR_RESULT
        value: Comparison value
        data: Upstream data to read the field from
        today: Reference day for the ``today`` keyword, defaults to the local date

    Returns:
        bool: Whether the condition holds
    """
    if not field:
        return True

    field_value = resolve_field(data, field)

    if (
        str(field).lower() == "date"
        and field_value
        and isinstance(value, str)
        and value.lower() == TODAY_KEYWORD
    ):
        field_day = parse_date(field_value)
        if field_day is not None:
            same_day = field_day == (today or date.today())
            if operator == "equals":
                return same_day
            if operator == "not_equals":
                return not same_day
            return False

    if operator in ("greater_than", "less_than"):
        left, right = _to_number(field_value), _to_number(value)
        return left > right if operator == "greater_than" else left < right
    if operator == "is_empty":
        return is_empty(field_value)
    if operator == "is_not_empty":
        return not is_empty(field_value)

    left, right = _to_text(field_value).lower(), _to_text(value).lower()
    if operator == "equals":
        return left == right
    if operator == "not_equals":
        return left != right
    if operator == "contains":
        return right in left
    if operator == "not_contains":
        return right not in left
    if operator == "starts_with":
        return left.startswith(right)
    if operator == "ends_with":
        return left.endswith(right)

    logger.debug(f"Unknown condition operator '{operator}', returning {UNKNOWN_OPERATOR_RESULT}")
    return UNKNOWN_OPERATOR_RESULT


def normalize_combinator(combinator: Any) -> str:
    """Return "AND" or "OR"; anything unrecognized becomes DEFAULT_COMBINATOR."""
    if isinstance(combinator, str) and combinator.strip().upper() in ("AND", "OR"):
        return combinator.strip().upper()
    return DEFAULT_COMBINATOR


def _combine(flags: Iterable[bool], combinator: str) -> bool:
    return any(flags) if combinator == "OR" else all(flags)


def evaluate_conditions(
    conditions: List[Any],
    combinator: Any,
    data: Any,
    today: Optional[date] = None
) -> Tuple[bool, List[Dict[str, Any]]]:
    """
    Evaluate every condition against ``data`` and reduce with the combinator.

    A condition without a field counts as failed.

    Returns:
        Tuple of the combined result and one detail dict per condition
    """
    combinator = normalize_combinator(combinator)
    details: List[Dict[str, Any]] = []

    for condition in conditions:
        field = condition.get("field") if isinstance(condition, dict) else None
        if not field:
            details.append({
                "success": False,
                "error": "No field specified for condition",
                "condition": condition
            })
            continue

        operator, value = condition.get("operator"), condition.get("value")
        details.append({
            "success": True,
            "result": evaluate(field, operator, value, data, today=today),
            "field": field,
            "operator": operator,
            "value": value,
            "fieldValue": resolve_field(data, field),
            "condition": condition
        })

    passed = _combine((d["success"] and d["result"] for d in details), combinator)
    return passed, details


def filter_emails(
    emails: List[Any],
    conditions: List[Any],
    combinator: Any,
    today: Optional[date] = None
) -> List[Any]:
    """Return the emails that satisfy the condition set on their own."""
    combinator = normalize_combinator(combinator)
    matching = []
    for email in emails:
        flags = []
        for condition in conditions:
            condition = condition if isinstance(condition, dict) else {}
            flags.append(evaluate(
                condition.get("field"),
                condition.get("operator"),
                condition.get("value"),
                email,
                today=today
            ))
        if _combine(flags, combinator):
            matching.append(email)
    return matching
