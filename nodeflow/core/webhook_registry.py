"""Registered webhook-triggered workflows and request verification."""

import base64
import binascii
import hashlib
import hmac
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Mapping, Optional

from .exceptions import WebhookError
from .logging import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADERS = ("x-webhook-signature", "x-hub-signature")
SIGNATURE_PREFIX = "sha256="


@dataclass
class WebhookConfig:
    """A workflow that runs when its webhook URL is called."""
    workflow_id: str
    nodes: List[Dict[str, Any]]
    edges: List[Dict[str, Any]]
    secret: Optional[str] = None
    enabled: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_secret(self) -> bool:
        return bool(self.secret)


class WebhookRegistry:
    """In-memory store of webhook configurations keyed by workflow ID."""

    def __init__(self):
        self._configs: Dict[str, WebhookConfig] = {}
        self._lock = Lock()

    def register(
        self,
        workflow_id: str,
        nodes: List[Dict[str, Any]],
        edges: List[Dict[str, Any]],
        secret: Optional[str] = None,
        enabled: bool = True
    ) -> WebhookConfig:
        """Register (or replace) the workflow behind a webhook."""
        if not workflow_id or not workflow_id.strip():
            raise WebhookError("Workflow ID cannot be empty")

        config = WebhookConfig(
            workflow_id=workflow_id.strip(),
            nodes=list(nodes),
            edges=list(edges),
            secret=secret or None,
            enabled=enabled
        )
        with self._lock:
            replaced = config.workflow_id in self._configs
            self._configs[config.workflow_id] = config

        logger.info(f"{'Replaced' if replaced else 'Registered'} webhook for workflow {config.workflow_id}")
        return config

    def unregister(self, workflow_id: str) -> bool:
        with self._lock:
            removed = self._configs.pop(workflow_id, None) is not None
        if removed:
            logger.info(f"Unregistered webhook for workflow {workflow_id}")
        return removed

    def get(self, workflow_id: str) -> Optional[WebhookConfig]:
        return self._configs.get(workflow_id)

    def get_enabled(self, workflow_id: str) -> WebhookConfig:
        """Return the config for an incoming call.

        Raises:
            WebhookError: 404 when the webhook is unknown or disabled
        """
        config = self._configs.get(workflow_id)
        if config is None or not config.enabled:
            raise WebhookError("Webhook not found or disabled", status_code=404, workflow_id=workflow_id)
        return config

    def list(self) -> List[WebhookConfig]:
        with self._lock:
            return list(self._configs.values())

    def clear(self) -> None:
        with self._lock:
            self._configs.clear()


def compute_signature(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _basic_auth_token(value: str) -> Optional[str]:
    try:
        decoded = base64.b64decode(value.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    # username:password carries the secret as the password
    return decoded.split(":", 1)[1] if ":" in decoded else decoded


def verify_signature_or_auth(headers: Mapping[str, str], body: bytes, secret: str) -> bool:
    """
    Check an incoming webhook request against the configured secret.

    Accepts an HMAC-SHA256 signature of the raw body in ``X-Webhook-Signature``
    or ``X-Hub-Signature`` (``sha256=<hex>`` or bare hex), or an
    ``Authorization`` header holding the secret as a Basic password, a Bearer
    token, or the raw header value.
    """
    lowered = {key.lower(): value for key, value in headers.items()}

    signature = next((lowered[name] for name in SIGNATURE_HEADERS if lowered.get(name)), None)
    if signature:
        expected = compute_signature(body, secret)
        provided = signature[len(SIGNATURE_PREFIX):] if signature.startswith(SIGNATURE_PREFIX) else signature
        if hmac.compare_digest(provided.encode(), expected.encode()):
            return True

    authorization = lowered.get("authorization")
    if authorization:
        if authorization.startswith("Basic "):
            token = _basic_auth_token(authorization[6:])
            if token is not None and hmac.compare_digest(token.encode(), secret.encode()):
                return True
        if authorization.startswith("Bearer "):
            if hmac.compare_digest(authorization[7:].strip().encode(), secret.encode()):
                return True
        if hmac.compare_digest(authorization.encode(), secret.encode()):
            return True

    return False
