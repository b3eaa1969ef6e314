from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from marketplace_chat.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from marketplace_chat.application.repositories.message import MessageReader, MessageWriter
from marketplace_chat.application.repositories.user import UserReader

# Wraps only the store calls of an operation, never the fan-out that follows.
StoreScope = Callable[[], AbstractAsyncContextManager[Any]]


class UnitOfWork(Protocol):
    conversations: ConversationReader
    conversations_w: ConversationWriter
    messages: MessageReader
    messages_w: MessageWriter
    users: UserReader

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...
