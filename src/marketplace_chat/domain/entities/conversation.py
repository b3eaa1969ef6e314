from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from marketplace_chat.domain.value_objects.ids import ConversationId, UserId


@dataclass(frozen=True, slots=True)
class Conversation:
    id: ConversationId
    user1_id: UserId
    user2_id: UserId
    created_at: datetime
    updated_at: datetime

    @property
    def participants(self) -> frozenset[int]:
        return frozenset((self.user1_id, self.user2_id))

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def other_participant(self, user_id: int) -> UserId:
        """Return the participant that is not ``user_id``."""
        if user_id == self.user1_id:
            return self.user2_id
        if user_id == self.user2_id:
            return self.user1_id
        raise ValueError(f"user {user_id} is not a participant of conversation {self.id}")
