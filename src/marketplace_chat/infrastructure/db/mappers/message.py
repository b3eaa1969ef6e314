from __future__ import annotations

from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.value_objects.ids import ConversationId, MessageId, UserId
from marketplace_chat.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=MessageId(model.message_id),
        conversation_id=ConversationId(model.conversation_id),
        sender_id=UserId(model.sender_id),
        content=model.content,
        image=model.image,
        is_read=model.is_read,
        created_at=model.created_at,
    )
