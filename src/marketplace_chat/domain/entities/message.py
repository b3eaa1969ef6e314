from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from marketplace_chat.domain.value_objects.ids import ConversationId, MessageId, UserId


@dataclass(frozen=True, slots=True)
class Message:
    id: MessageId
    conversation_id: ConversationId
    sender_id: UserId
    content: str
    image: str | None
    is_read: bool
    created_at: datetime
