"""Transport representation of a message.

Both the WebSocket gateway and the REST layer emit the exact same payload,
built here, so a client receiving a message by two paths sees identical
fields and can drop the duplicate.
"""
from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from typing import Any

from marketplace_chat.domain.entities.message import Message


def new_dedup_token() -> int:
    """Millisecond clock plus a random offset; never persisted."""
    return int(time.time() * 1000) + secrets.randbelow(1000)


def message_payload(message: Message, unique_timestamp: int) -> dict[str, Any]:
    return {
        "id": message.id,
        "uniqueTimestamp": unique_timestamp,
        "conversationId": message.conversation_id,
        "senderId": message.sender_id,
        "content": message.content,
        "image": message.image,
        "isRead": message.is_read,
        "createdAt": message.created_at.isoformat(),
    }


@dataclass(frozen=True, slots=True)
class OutboundMessage:
    message: Message
    unique_timestamp: int

    @classmethod
    def stamp(cls, message: Message) -> OutboundMessage:
        return cls(message=message, unique_timestamp=new_dedup_token())

    def to_payload(self) -> dict[str, Any]:
        return message_payload(self.message, self.unique_timestamp)
