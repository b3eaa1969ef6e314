from __future__ import annotations

import pytest

from marketplace_chat.application.exceptions import (
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from marketplace_chat.services import conversation_service, message_service
from tests.conftest import FakeUoW, make_conversation, make_message, minutes_ago


@pytest.fixture
def users(uow):
    uow.users.add(1, "Alice Freelancer", photo="alice.png")
    uow.users.add(2, "Bob Client")
    uow.users.add(3, None)
    return uow.users


@pytest.mark.asyncio
async def test_create_conversation(uow, users):
    conv, created = await conversation_service.get_or_create_conversation(1, 2, uow)

    assert created is True
    assert conv.participants == {1, 2}
    assert uow._committed is True


@pytest.mark.asyncio
async def test_create_is_idempotent_in_both_orders(uow, users):
    first, created_first = await conversation_service.get_or_create_conversation(1, 2, uow)
    uow._committed = False

    again, created_again = await conversation_service.get_or_create_conversation(1, 2, uow)
    reversed_, created_reversed = await conversation_service.get_or_create_conversation(2, 1, uow)

    assert created_first is True
    assert created_again is created_reversed is False
    assert first.id == again.id == reversed_.id
    assert len(uow.conversations._store) == 1
    assert uow._committed is False


@pytest.mark.asyncio
async def test_create_converges_after_losing_race(uow, users):
    winner = make_conversation(2, 1)
    uow.conversations_w.conflict_with = winner

    conv, created = await conversation_service.get_or_create_conversation(1, 2, uow)

    assert created is False
    assert conv.id == winner.id


@pytest.mark.asyncio
async def test_create_with_self_rejected(uow, users):
    with pytest.raises(ValidationError):
        await conversation_service.get_or_create_conversation(1, 1, uow)


@pytest.mark.asyncio
async def test_create_with_unknown_user_rejected(uow, users):
    with pytest.raises(NotFoundError):
        await conversation_service.get_or_create_conversation(1, 42, uow)


@pytest.mark.asyncio
async def test_create_conflict_without_row_is_retryable(users):
    uow = FakeUoW(users=users)

    async def always_conflict(user1_id, user2_id, now):
        return None, False

    uow.conversations_w.create_if_not_exists = always_conflict

    with pytest.raises(StoreUnavailableError):
        await conversation_service.get_or_create_conversation(1, 2, uow)


@pytest.mark.asyncio
async def test_list_conversations_summaries(uow, users):
    conv = uow.add_conversation(make_conversation(1, 2))
    uow.messages._messages.extend([
        make_message(conv.id, 2, content="are you free?", created_at=minutes_ago(3)),
        make_message(conv.id, 2, content="ping", created_at=minutes_ago(2)),
        make_message(conv.id, 1, content="yes", created_at=minutes_ago(1), is_read=False),
    ])

    [summary] = await conversation_service.list_user_conversations(
        1, uow, is_online=lambda uid: uid == 2,
    )

    assert summary.conversation_id == conv.id
    assert summary.peer.id == 2
    assert summary.peer.name == "Bob Client"
    assert summary.peer.first_name == "Bob"
    assert summary.peer.is_online is True
    assert summary.last_message == "yes"
    assert summary.last_message_sender_id == 1
    assert summary.is_last_message_from_current_user is True
    # Only the peer's messages count as unread for user 1.
    assert summary.unread_count == 2


@pytest.mark.asyncio
async def test_list_conversations_without_messages(uow, users):
    conv = uow.add_conversation(make_conversation(3, 1))

    [summary] = await conversation_service.list_user_conversations(1, uow)

    assert summary.last_message is None
    assert summary.last_message_time == conv.created_at
    assert summary.is_last_message_from_current_user is False
    assert summary.peer.name == "Unknown User"
    assert summary.peer.first_name == "User"
    assert summary.peer.is_online is False


@pytest.mark.asyncio
async def test_image_only_message_preview(uow, users, notifier):
    conv = uow.add_conversation(make_conversation(1, 2))
    await message_service.send_message(conv.id, 2, "", "data:image/png;base64,AAAA", uow, notifier)

    [summary] = await conversation_service.list_user_conversations(1, uow)

    assert summary.last_message == conversation_service.IMAGE_PREVIEW


@pytest.mark.asyncio
async def test_history_requires_participant(uow, users):
    conv = uow.add_conversation(make_conversation(1, 2))

    with pytest.raises(NotFoundError):
        await conversation_service.get_conversation_history(conv.id, 3, uow)


@pytest.mark.asyncio
async def test_history_is_ascending_with_peer(uow, users):
    conv = uow.add_conversation(make_conversation(1, 2))
    second = make_message(conv.id, 1, content="b", created_at=minutes_ago(1))
    first = make_message(conv.id, 2, content="a", created_at=minutes_ago(2))
    uow.messages._messages.extend([second, first])

    history = await conversation_service.get_conversation_history(conv.id, 2, uow)

    assert history.peer.id == 1
    assert history.peer.photo == "alice.png"
    assert [m.message.content for m in history.messages] == ["a", "b"]


@pytest.mark.asyncio
async def test_delete_cascades_messages(uow, users):
    conv = uow.add_conversation(make_conversation(1, 2))
    other = uow.add_conversation(make_conversation(1, 3))
    uow.messages._messages.extend(make_message(conv.id, 1) for _ in range(5))
    uow.messages._messages.append(make_message(other.id, 3))

    removed = await conversation_service.delete_conversation(conv.id, 2, uow)

    assert removed == 5
    assert uow._committed is True
    assert await uow.conversations.get_by_id(conv.id) is None
    assert await uow.messages.list_for_conversation(conv.id) == []
    assert len(await uow.messages.list_for_conversation(other.id)) == 1
    with pytest.raises(NotFoundError):
        await conversation_service.get_conversation_history(conv.id, 1, uow)


@pytest.mark.asyncio
async def test_delete_by_non_participant_rejected(uow, users):
    conv = uow.add_conversation(make_conversation(1, 2))
    uow.messages._messages.append(make_message(conv.id, 1))

    with pytest.raises(NotFoundError):
        await conversation_service.delete_conversation(conv.id, 3, uow)

    assert len(uow.messages._messages) == 1
    assert uow._committed is False


@pytest.mark.asyncio
async def test_list_peer_ids(uow):
    uow.add_conversation(make_conversation(1, 2))
    uow.add_conversation(make_conversation(3, 1))
    uow.add_conversation(make_conversation(2, 3))

    assert sorted(await conversation_service.list_peer_ids(1, uow)) == [2, 3]
