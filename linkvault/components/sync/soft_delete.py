"""
Deferred link deletion with an undo window.

Each pending delete is a ``call_later`` timer keyed by
``(container_id, link_id)``. Cancelling the timer before it fires is the
undo; once it fires, the commit coroutine is handed to ``spawn`` and can no
longer be cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

logger = logging.getLogger(__name__)

DeleteKey = tuple[str, str]


class SoftDeleteScheduler:
    def __init__(
        self,
        grace_seconds: float,
        on_expire: Callable[[str, str], Awaitable[None]],
        spawn: Callable[[Coroutine[Any, Any, None]], Any],
    ) -> None:
        self.grace_seconds = grace_seconds
        self._on_expire = on_expire
        self._spawn = spawn
        self._handles: dict[DeleteKey, asyncio.TimerHandle] = {}

    @property
    def scheduled(self) -> list[DeleteKey]:
        return list(self._handles)

    def is_scheduled(self, key: DeleteKey) -> bool:
        return key in self._handles

    def schedule(self, key: DeleteKey) -> None:
        """Start (or restart) the grace window for ``key``. Needs a running loop."""
        self.cancel(key)
        loop = asyncio.get_running_loop()
        self._handles[key] = loop.call_later(self.grace_seconds, self._fire, key)
        logger.debug("Delete of %s/%s scheduled in %.1fs", key[0], key[1], self.grace_seconds)

    def cancel(self, key: DeleteKey) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_container(self, container_id: str) -> list[DeleteKey]:
        keys = [key for key in self._handles if key[0] == container_id]
        for key in keys:
            self.cancel(key)
        return keys

    def _fire(self, key: DeleteKey) -> None:
        if self._handles.pop(key, None) is None:
            return
        self._spawn(self._on_expire(*key))

    async def flush(self) -> None:
        """Commit every pending delete now instead of waiting for its timer."""
        keys = list(self._handles)
        for key in keys:
            self._handles.pop(key).cancel()
        for container_id, link_id in keys:
            await self._on_expire(container_id, link_id)
