from __future__ import annotations

from typing import Any, Protocol


class Notifier(Protocol):
    """Outbound real-time delivery. Best effort: absent recipients are not an error."""

    async def to_room(
        self,
        conversation_id: int,
        event: str,
        data: dict[str, Any],
        *,
        exclude_connection: str | None = None,
    ) -> None: ...

    async def to_user(self, user_id: int, event: str, data: dict[str, Any]) -> None: ...

    async def to_all(
        self,
        event: str,
        data: dict[str, Any],
        *,
        exclude_connection: str | None = None,
    ) -> None: ...
