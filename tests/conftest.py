"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import itertools
import json
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.entities.user import UserProfile

_ids = itertools.count(1000)


def make_conversation(
    user1_id: int = 1,
    user2_id: int = 2,
    *,
    conversation_id: int | None = None,
) -> Conversation:
    now = datetime.now(timezone.utc)
    return Conversation(
        id=conversation_id or next(_ids),
        user1_id=user1_id,
        user2_id=user2_id,
        created_at=now,
        updated_at=now,
    )


def make_message(
    conversation_id: int,
    sender_id: int,
    *,
    content: str = "hello",
    is_read: bool = False,
    created_at: datetime | None = None,
) -> Message:
    return Message(
        id=next(_ids),
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        image=None,
        is_read=is_read,
        created_at=created_at or datetime.now(timezone.utc),
    )


@dataclass
class FakeConversationReader:
    _store: dict[int, Conversation] = field(default_factory=dict)

    async def get_by_id(self, conversation_id: int) -> Conversation | None:
        return self._store.get(conversation_id)

    async def find_between(self, user_a: int, user_b: int) -> Conversation | None:
        pair = {user_a, user_b}
        for c in self._store.values():
            if set(c.participants) == pair:
                return c
        return None

    async def list_for_user(self, user_id: int) -> list[Conversation]:
        convs = [c for c in self._store.values() if c.has_participant(user_id)]
        return sorted(convs, key=lambda c: (c.updated_at, c.id), reverse=True)

    async def list_peer_ids(self, user_id: int) -> list[int]:
        return [c.other_participant(user_id) for c in await self.list_for_user(user_id)]


@dataclass
class FakeConversationWriter:
    _reader: FakeConversationReader
    # Simulates losing the insert race: the next create returns a conflict.
    conflict_with: Conversation | None = None

    async def create_if_not_exists(
        self, user1_id: int, user2_id: int, now: datetime
    ) -> tuple[Conversation | None, bool]:
        if self.conflict_with is not None:
            self._reader._store[self.conflict_with.id] = self.conflict_with
            self.conflict_with = None
            return None, False
        if await self._reader.find_between(user1_id, user2_id) is not None:
            return None, False
        conv = Conversation(
            id=next(_ids), user1_id=user1_id, user2_id=user2_id, created_at=now, updated_at=now,
        )
        self._reader._store[conv.id] = conv
        return conv, True

    async def touch(self, conversation_id: int, ts: datetime) -> None:
        conv = self._reader._store.get(conversation_id)
        if conv is not None:
            self._reader._store[conversation_id] = replace(conv, updated_at=ts)

    async def delete(self, conversation_id: int) -> bool:
        return self._reader._store.pop(conversation_id, None) is not None


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)

    async def list_for_conversation(self, conversation_id: int) -> list[Message]:
        msgs = [m for m in self._messages if m.conversation_id == conversation_id]
        return sorted(msgs, key=lambda m: (m.created_at, m.id))

    async def get_latest(self, conversation_id: int) -> Message | None:
        msgs = await self.list_for_conversation(conversation_id)
        return msgs[-1] if msgs else None

    async def count_unread(self, conversation_id: int, reader_id: int) -> int:
        return sum(
            1 for m in self._messages
            if m.conversation_id == conversation_id and m.sender_id != reader_id and not m.is_read
        )


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader

    async def add(
        self,
        *,
        conversation_id: int,
        sender_id: int,
        content: str,
        image: str | None,
        created_at: datetime,
    ) -> Message:
        msg = Message(
            id=next(_ids),
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            image=image,
            is_read=False,
            created_at=created_at,
        )
        self._reader._messages.append(msg)
        return msg

    async def mark_read_from_peer(self, conversation_id: int, reader_id: int) -> int:
        updated = 0
        for i, m in enumerate(self._reader._messages):
            if m.conversation_id == conversation_id and m.sender_id != reader_id and not m.is_read:
                self._reader._messages[i] = replace(m, is_read=True)
                updated += 1
        return updated

    async def delete_for_conversation(self, conversation_id: int) -> int:
        before = len(self._reader._messages)
        self._reader._messages[:] = [
            m for m in self._reader._messages if m.conversation_id != conversation_id
        ]
        return before - len(self._reader._messages)


@dataclass
class FakeUserReader:
    _profiles: dict[int, UserProfile] = field(default_factory=dict)

    def add(self, user_id: int, full_name: str | None = None, photo: str | None = None) -> UserProfile:
        profile = UserProfile(id=user_id, full_name=full_name, email=None, photo=photo)
        self._profiles[user_id] = profile
        return profile

    async def get_profile(self, user_id: int) -> UserProfile | None:
        return self._profiles.get(user_id)

    async def get_profiles(self, user_ids: Iterable[int]) -> dict[int, UserProfile]:
        return {uid: self._profiles[uid] for uid in user_ids if uid in self._profiles}


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    conversations: FakeConversationReader = field(default_factory=FakeConversationReader)
    conversations_w: FakeConversationWriter | None = None
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    users: FakeUserReader = field(default_factory=FakeUserReader)
    _committed: bool = False

    def __post_init__(self) -> None:
        if self.conversations_w is None:
            self.conversations_w = FakeConversationWriter(self.conversations)
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)

    def add_conversation(self, conversation: Conversation) -> Conversation:
        self.conversations._store[conversation.id] = conversation
        return conversation

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True

    async def rollback(self) -> None:
        pass


def make_uow_factory(uow: FakeUoW) -> Callable[[], Any]:
    """Stand-in for ``open_uow`` that always yields the same in-memory UoW."""

    @asynccontextmanager
    async def factory() -> AsyncIterator[FakeUoW]:
        yield uow

    return factory


@dataclass
class FakeNotifier:
    calls: list[tuple[str, Any, str, dict[str, Any]]] = field(default_factory=list)

    async def to_room(
        self,
        conversation_id: int,
        event: str,
        data: dict[str, Any],
        *,
        exclude_connection: str | None = None,
    ) -> None:
        self.calls.append(("room", conversation_id, event, data))

    async def to_user(self, user_id: int, event: str, data: dict[str, Any]) -> None:
        self.calls.append(("user", user_id, event, data))

    async def to_all(
        self,
        event: str,
        data: dict[str, Any],
        *,
        exclude_connection: str | None = None,
    ) -> None:
        self.calls.append(("all", exclude_connection, event, data))

    def events(self, event: str) -> list[tuple[str, Any, str, dict[str, Any]]]:
        return [c for c in self.calls if c[2] == event]


@dataclass
class SlowNotifier(FakeNotifier):
    """Records like FakeNotifier but stalls on every push, like a slow socket or Redis."""
    delay: float = 0.2

    async def to_room(
        self,
        conversation_id: int,
        event: str,
        data: dict[str, Any],
        *,
        exclude_connection: str | None = None,
    ) -> None:
        await asyncio.sleep(self.delay)
        await super().to_room(conversation_id, event, data, exclude_connection=exclude_connection)

    async def to_user(self, user_id: int, event: str, data: dict[str, Any]) -> None:
        await asyncio.sleep(self.delay)
        await super().to_user(user_id, event, data)


class FakeWebSocket:
    """Records frames a connection writes."""

    def __init__(self, *, broken: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.accepted = False
        self.broken = broken

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, raw: str) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(raw))

    def events(self, event: str) -> list[dict[str, Any]]:
        return [f["data"] for f in self.sent if f["type"] == event]


class FakeVerifier:
    """Accepts tokens of the form ``user-<id>``."""

    async def verify(self, token: str) -> Principal:
        prefix, _, raw = token.partition("-")
        if prefix != "user" or not raw.isdigit():
            raise ValueError("bad token")
        return Principal(user_id=int(raw))


@pytest.fixture
def uow() -> FakeUoW:
    return FakeUoW()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


def minutes_ago(n: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(minutes=n)
