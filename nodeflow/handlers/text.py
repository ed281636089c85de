"""Helpers for turning upstream node data into text and templates."""

import re
from typing import Any, Dict, Optional

from ..core.conditions import resolve_field

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")


def _email_text(data: Dict[str, Any]) -> Optional[str]:
    emails = data.get("emails")
    if isinstance(emails, list) and emails and isinstance(emails[0], dict):
        parts = [emails[0].get("subject"), emails[0].get("snippet")]
        parts = [str(part) for part in parts if part]
        if parts:
            return "\n".join(parts)
    return None


def _result_text(data: Dict[str, Any]) -> Optional[str]:
    if isinstance(data.get("result"), str):
        return data["result"]
    output = data.get("output")
    if isinstance(output, str):
        return output
    if isinstance(output, dict) and isinstance(output.get("result"), str):
        return output["result"]
    return None


def extract_text(payload: Any) -> Optional[str]:
    """Pick human readable text out of a handler payload.

    Looks at the upstream ``input`` first (raw string, LLM result, first
    email), then at the payload itself.
    """
    if not payload:
        return None
    if isinstance(payload, str):
        return payload
    if not isinstance(payload, dict):
        return None

    candidate = payload.get("input")
    if isinstance(candidate, str):
        return candidate
    if isinstance(candidate, dict):
        text = _result_text(candidate) or _email_text(candidate)
        if text:
            return text

    return _email_text(payload) or _result_text(payload)


def replace_placeholders(template: Any, data: Any) -> Any:
    """Substitute ``{{path}}`` tokens with values resolved from ``data``.

    Tokens that resolve to nothing are left in place. Non-string templates
    are returned unchanged.
    """
    if not isinstance(template, str):
        return template

    def substitute(match: "re.Match[str]") -> str:
        value = resolve_field(data, match.group(1).strip())
        return match.group(0) if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(substitute, template)
