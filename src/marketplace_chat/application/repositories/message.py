from __future__ import annotations

from datetime import datetime
from typing import Protocol

from marketplace_chat.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_for_conversation(self, conversation_id: int) -> list[Message]:
        """All messages ordered by (created_at, id) ascending."""
        ...

    async def get_latest(self, conversation_id: int) -> Message | None: ...

    async def count_unread(self, conversation_id: int, reader_id: int) -> int:
        """Unread messages in the conversation not authored by ``reader_id``."""
        ...


class MessageWriter(Protocol):
    async def add(
        self,
        *,
        conversation_id: int,
        sender_id: int,
        content: str,
        image: str | None,
        created_at: datetime,
    ) -> Message: ...

    async def mark_read_from_peer(self, conversation_id: int, reader_id: int) -> int:
        """Flip unread messages not sent by ``reader_id``. Returns the count."""
        ...

    async def delete_for_conversation(self, conversation_id: int) -> int: ...
