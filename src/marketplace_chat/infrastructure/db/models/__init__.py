"""Import all models so Base.metadata knows every table."""
from marketplace_chat.infrastructure.db.models.conversation import ConversationModel
from marketplace_chat.infrastructure.db.models.message import MessageModel
from marketplace_chat.infrastructure.db.models.user import UserModel

__all__ = [
    "ConversationModel",
    "MessageModel",
    "UserModel",
]
