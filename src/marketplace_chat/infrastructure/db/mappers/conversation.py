from __future__ import annotations

from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.domain.value_objects.ids import ConversationId, UserId
from marketplace_chat.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(
        id=ConversationId(model.conversation_id),
        user1_id=UserId(model.user1_id),
        user2_id=UserId(model.user2_id),
        created_at=model.created_at,
        updated_at=model.updated_at,
    )
