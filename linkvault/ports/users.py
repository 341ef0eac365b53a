from typing import Protocol

from linkvault.domain.entities import UserProfile


class UserDirectoryPort(Protocol):
    async def get_display_name(self, user_id: str) -> str:
        """Best effort; may raise, callers degrade to a placeholder."""
        ...

    async def get_by_id(self, user_id: str) -> UserProfile | None: ...
