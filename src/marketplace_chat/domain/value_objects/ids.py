from __future__ import annotations

from typing import NewType

ConversationId = NewType("ConversationId", int)
MessageId = NewType("MessageId", int)
UserId = NewType("UserId", int)
