"""Gmail node handlers.

Mail access goes through a MailClient so deployments can plug in their own
Gmail API integration. Without a client every mail action reports failure.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..core.action_registry import Handler
from ..core.logging import get_logger
from .text import extract_text

logger = get_logger(__name__)

BODY_PREVIEW_LENGTH = 80
DEFAULT_READ_LIMIT = 10
DEFAULT_FILTER_LIMIT = 50
DEFAULT_SCHEDULE_DELAY = timedelta(seconds=60)


class MailClient(ABC):
    """Interface for the mailbox behind gmail nodes."""

    @abstractmethod
    async def send_email(
        self,
        to: Optional[str],
        subject: Optional[str],
        message: str,
        in_reply_to: Optional[str] = None
    ) -> Dict[str, Any]:
        """Send a message and return the provider response (with an ``id``)."""

    @abstractmethod
    async def read_emails(self, **filters: Any) -> List[Dict[str, Any]]:
        """Return emails matching the given filters."""


def _message_body(payload: Dict[str, Any]) -> str:
    body = payload.get("message")
    if body is None or body == "":
        body = extract_text(payload)
    return body or ""


def build_gmail_handlers(client: Optional[MailClient]) -> Dict[str, Handler]:
    """Build the gmail handler table around a mail client."""

    def unavailable() -> Dict[str, Any]:
        return {"success": False, "error": "Mail client is not configured"}

    async def send(payload: Dict[str, Any]) -> Dict[str, Any]:
        if client is None:
            return unavailable()
        body = _message_body(payload)
        try:
            sent = await client.send_email(payload.get("to"), payload.get("subject"), body)
        except Exception as e:
            logger.warning(f"Sending email failed: {e}")
            return {"success": False, "error": str(e)}
        return {
            "success": True,
            "messageId": (sent or {}).get("id"),
            "sentAt": datetime.now(timezone.utc).isoformat(),
            "to": payload.get("to"),
            "subject": payload.get("subject"),
            "usedBodyPreview": body[:BODY_PREVIEW_LENGTH]
        }

    async def read(payload: Dict[str, Any]) -> Dict[str, Any]:
        if client is None:
            return unavailable()
        filters = {key: payload.get(key) for key in ("from", "to", "subject", "hasAttachment")}
        try:
            emails = await client.read_emails(
                **filters,
                maxResults=payload.get("maxResults") or DEFAULT_READ_LIMIT
            )
        except Exception as e:
            logger.warning(f"Reading emails failed: {e}")
            return {"success": False, "error": str(e)}
        return {
            "success": True,
            "emails": emails,
            "count": len(emails or []),
            "filters": filters
        }

    async def filter_emails(payload: Dict[str, Any]) -> Dict[str, Any]:
        if client is None:
            return unavailable()
        try:
            emails = await client.read_emails(
                **{"from": payload.get("from")},
                query=payload.get("query"),
                maxResults=payload.get("maxResults") or DEFAULT_FILTER_LIMIT
            )
        except Exception as e:
            logger.warning(f"Filtering emails failed: {e}")
            return {"success": False, "error": str(e)}
        emails = emails or []
        return {
            "success": True,
            "emails": emails,
            "count": len(emails),
            "originalCount": len(emails)
        }

    async def reply(payload: Dict[str, Any]) -> Dict[str, Any]:
        if client is None:
            return unavailable()
        body = _message_body(payload)
        subject = payload.get("subject") or f"Re: {payload.get('originalSubject') or 'Email'}"
        try:
            sent = await client.send_email(
                payload.get("to"),
                subject,
                body,
                in_reply_to=payload.get("inReplyTo")
            )
        except Exception as e:
            logger.warning(f"Replying to email failed: {e}")
            return {"success": False, "error": str(e)}
        return {
            "success": True,
            "messageId": (sent or {}).get("id"),
            "repliedTo": payload.get("inReplyTo"),
            "sentAt": datetime.now(timezone.utc).isoformat(),
            "usedBodyPreview": body[:BODY_PREVIEW_LENGTH]
        }

    async def schedule(payload: Dict[str, Any]) -> Dict[str, Any]:
        raw = payload.get("scheduleTime")
        scheduled = None
        if isinstance(raw, str) and raw.strip():
            try:
                scheduled = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
            except ValueError:
                return {"success": False, "error": f"Invalid schedule time: {raw}"}
        if scheduled is None:
            scheduled = datetime.now(timezone.utc) + DEFAULT_SCHEDULE_DELAY
        return {
            "success": True,
            "scheduled": True,
            "scheduledFor": scheduled.isoformat(),
            "to": payload.get("to"),
            "subject": payload.get("subject"),
            "message": payload.get("message")
        }

    async def gmail_default(payload: Dict[str, Any]) -> Dict[str, Any]:
        return {"success": False, "error": "No action specified for Gmail node"}

    return {
        "send": send,
        "read": read,
        "filter": filter_emails,
        "reply": reply,
        "schedule": schedule,
        "default": gmail_default
    }
