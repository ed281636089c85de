"""Schedule node handlers.

These compute when something should happen; they do not enqueue jobs.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from croniter import croniter

from ..core.logging import get_logger

logger = get_logger(__name__)

UNIT_SECONDS = {
    "seconds": 1,
    "minutes": 60,
    "hours": 60 * 60,
    "days": 24 * 60 * 60,
}
DEFAULT_UNIT_SECONDS = UNIT_SECONDS["minutes"]
DEFAULT_CRON_EXPRESSION = "0 9 * * *"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def unit_seconds(unit: Optional[str]) -> int:
    """Seconds per unit; unknown units count as minutes."""
    return UNIT_SECONDS.get(str(unit).lower(), DEFAULT_UNIT_SECONDS) if unit else DEFAULT_UNIT_SECONDS


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    # naive values are local wall-clock time
    return parsed if parsed.tzinfo else parsed.astimezone()


async def schedule_delay(payload: Dict[str, Any]) -> Dict[str, Any]:
    try:
        delay = float(payload.get("delay") or 5)
    except (TypeError, ValueError):
        return {"success": False, "error": f"Invalid delay: {payload.get('delay')}"}
    if not math.isfinite(delay):
        return {"success": False, "error": f"Invalid delay: {payload.get('delay')}"}

    unit = payload.get("delayUnit") or "minutes"
    try:
        delay_ms = int(delay * unit_seconds(unit) * 1000)
        scheduled_for = _now() + timedelta(milliseconds=delay_ms)
    except OverflowError:
        return {"success": False, "error": f"Delay out of range: {payload.get('delay')}"}
    logger.info(f"Scheduling delay of {delay:g} {unit}")

    return {
        "success": True,
        "delayed": True,
        "delayMs": delay_ms,
        "delay": delay,
        "unit": unit,
        "scheduledFor": scheduled_for.isoformat()
    }


async def schedule_specific(payload: Dict[str, Any]) -> Dict[str, Any]:
    raw = payload.get("datetime")
    now = _now()
    scheduled = _parse_datetime(raw) if raw else now

    if scheduled is None:
        return {"success": False, "error": f"Invalid datetime: {raw}"}
    if scheduled <= now:
        return {"success": False, "error": "Scheduled time must be in the future"}

    return {
        "success": True,
        "scheduled": True,
        "scheduledFor": scheduled.isoformat(),
        "originalTime": raw
    }


async def schedule_recurring(payload: Dict[str, Any]) -> Dict[str, Any]:
    try:
        interval = float(payload.get("interval") or 1)
    except (TypeError, ValueError):
        return {"success": False, "error": f"Invalid interval: {payload.get('interval')}"}

    unit = payload.get("unit") or "hours"
    try:
        next_run = _now() + timedelta(seconds=interval * unit_seconds(unit))
    except (OverflowError, ValueError):
        return {"success": False, "error": f"Interval out of range: {payload.get('interval')}"}

    return {
        "success": True,
        "recurring": True,
        "interval": interval,
        "unit": unit,
        "nextRun": next_run.isoformat()
    }


async def schedule_cron(payload: Dict[str, Any]) -> Dict[str, Any]:
    expression = payload.get("cron") or DEFAULT_CRON_EXPRESSION

    if not croniter.is_valid(expression):
        return {"success": False, "error": f"Invalid cron expression: {expression}"}

    next_run = croniter(expression, _now()).get_next(datetime)
    logger.info(f"Scheduling with cron: {expression}")

    return {
        "success": True,
        "cron": True,
        "expression": expression,
        "nextRun": next_run.isoformat()
    }


async def missing_schedule_type(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": False, "error": "No schedule type specified"}
