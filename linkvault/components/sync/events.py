"""
Command bus shared between the store and whatever drives it.

Handlers are plain callables registered per command name and run
synchronously, in registration order, on ``dispatch``. A handler that
raises stops the dispatch and the error reaches the dispatcher.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

# Ask the presentation layer to open its "create container" form
OPEN_CREATE_CONTAINER = "open_create_container"
# Published by the store after a container was persisted
CONTAINER_CREATED = "container_created"
CONTAINER_DELETED = "container_deleted"

Handler = Callable[..., Any]


class CommandBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, command: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler``; the returned callable unregisters it."""
        self._handlers[command].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(command, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def dispatch(self, command: str, **payload: Any) -> int:
        """Run every handler for ``command``; returns how many ran."""
        handlers = list(self._handlers.get(command, ()))
        if not handlers:
            logger.debug("No handler for command %s", command)
        for handler in handlers:
            handler(**payload)
        return len(handlers)

    def has_handlers(self, command: str) -> bool:
        return bool(self._handlers.get(command))
