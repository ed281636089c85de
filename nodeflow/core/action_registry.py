"""Action Registry mapping (node kind, action) pairs to async handlers."""

import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..models.core import DEFAULT_ACTION
from .exceptions import ActionRegistryError, UnknownHandlerError
from .logging import get_logger

logger = get_logger(__name__)

# A handler receives the node config merged with ``{"input": upstream}``
# and returns a result dict carrying at least ``success``.
Handler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


class ActionRegistry:
    """Registry of the handlers that perform each node's effect."""

    def __init__(self):
        self._handlers: Dict[Tuple[str, str], Handler] = {}
        self._descriptions: Dict[Tuple[str, str], str] = {}
        self._kind_descriptions: Dict[str, str] = {}

    @staticmethod
    def _key(kind: str, action: str) -> Tuple[str, str]:
        if not kind or not kind.strip():
            raise ActionRegistryError("Node kind cannot be empty")
        if not action or not action.strip():
            raise ActionRegistryError("Action name cannot be empty", kind=kind)
        return kind.strip(), action.strip()

    def register(
        self,
        kind: str,
        action: str,
        handler: Handler,
        description: str = "",
        replace: bool = False
    ) -> None:
        """Register an async handler for a (kind, action) pair.

        Args:
            kind: Node kind, e.g. "gmail"
            action: Action name, or "default" for the kind's fallback
            handler: Coroutine function taking the handler payload
            description: Optional description of the action
            replace: Allow overwriting an existing registration

        Raises:
            ActionRegistryError: If the handler is not a coroutine function or the pair is taken
        """
        key = self._key(kind, action)

        if not inspect.iscoroutinefunction(handler):
            raise ActionRegistryError(
                f"Handler for '{key[0]}.{key[1]}' must be an async function",
                kind=key[0],
                action=key[1]
            )

        if len(inspect.signature(handler).parameters) == 0:
            raise ActionRegistryError(
                f"Handler for '{key[0]}.{key[1]}' must accept a payload argument",
                kind=key[0],
                action=key[1]
            )

        if key in self._handlers and not replace:
            raise ActionRegistryError(
                f"Handler '{key[0]}.{key[1]}' is already registered",
                kind=key[0],
                action=key[1]
            )

        self._handlers[key] = handler
        self._descriptions[key] = description.strip() if description else ""
        logger.debug(f"Registered handler '{key[0]}.{key[1]}' from {handler.__module__}.{handler.__qualname__}")

    def describe_kind(self, kind: str, description: str) -> None:
        """Set the human readable description shown in the node palette."""
        self._kind_descriptions[kind] = description

    def resolve(self, kind: str, action: Optional[str] = None) -> Handler:
        """Find the handler for a node.

        Lookup is the exact pair first, then ``(kind, "default")``.

        Raises:
            UnknownHandlerError: If neither is registered
        """
        action = action or DEFAULT_ACTION
        handler = self._handlers.get((kind, action)) or self._handlers.get((kind, DEFAULT_ACTION))
        if handler is None:
            raise UnknownHandlerError(kind, action)
        return handler

    def has_handler(self, kind: str, action: Optional[str] = None) -> bool:
        try:
            self.resolve(kind, action)
        except UnknownHandlerError:
            return False
        return True

    def unregister(self, kind: str, action: str) -> bool:
        """Remove a handler. Returns False if it was not registered."""
        key = self._key(kind, action)
        if key not in self._handlers:
            return False
        del self._handlers[key]
        self._descriptions.pop(key, None)
        logger.info(f"Unregistered handler '{key[0]}.{key[1]}'")
        return True

    def list_kinds(self) -> List[Dict[str, str]]:
        """Registered node kinds with their palette descriptions."""
        kinds = dict.fromkeys(kind for kind, _ in self._handlers)
        return [
            {"type": kind, "description": self._kind_descriptions.get(kind, "")}
            for kind in kinds
        ]

    def list_actions(self, kind: str) -> Dict[str, str]:
        """Actions registered for a kind, mapped to their descriptions."""
        return {
            action: self._descriptions.get((k, action), "")
            for k, action in self._handlers
            if k == kind
        }
