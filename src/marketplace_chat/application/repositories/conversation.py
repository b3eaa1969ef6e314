from __future__ import annotations

from datetime import datetime
from typing import Protocol

from marketplace_chat.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: int) -> Conversation | None: ...

    async def find_between(self, user_a: int, user_b: int) -> Conversation | None:
        """Find the conversation for an unordered pair of users."""
        ...

    async def list_for_user(self, user_id: int) -> list[Conversation]:
        """Conversations the user participates in, most recently updated first."""
        ...

    async def list_peer_ids(self, user_id: int) -> list[int]: ...


class ConversationWriter(Protocol):
    async def create_if_not_exists(
        self, user1_id: int, user2_id: int, now: datetime
    ) -> tuple[Conversation | None, bool]:
        """Insert the pair. Return (conversation, created); (None, False) on conflict."""
        ...

    async def touch(self, conversation_id: int, ts: datetime) -> None: ...

    async def delete(self, conversation_id: int) -> bool: ...
