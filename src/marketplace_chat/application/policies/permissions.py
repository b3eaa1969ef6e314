from __future__ import annotations

from marketplace_chat.application.exceptions import NotFoundError
from marketplace_chat.domain.entities.conversation import Conversation

CONVERSATION_NOT_FOUND = "Conversation not found or you are not a participant"


def assert_participant(conversation: Conversation | None, user_id: int) -> Conversation:
    """Raise if the conversation doesn't exist or the user is not one of its two members.

    Both cases produce the same error so callers can't discover conversations
    they have no access to.
    """
    if conversation is None or not conversation.has_participant(user_id):
        raise NotFoundError(CONVERSATION_NOT_FOUND)
    return conversation
