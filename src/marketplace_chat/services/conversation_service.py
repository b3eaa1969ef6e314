from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from marketplace_chat.application.dto.conversation import (
    ConversationHistoryDTO,
    ConversationSummaryDTO,
    PeerDTO,
)
from marketplace_chat.application.dto.message import OutboundMessage
from marketplace_chat.application.exceptions import (
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from marketplace_chat.application.policies.permissions import assert_participant
from marketplace_chat.application.uow import UnitOfWork
from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.entities.user import UserProfile

logger = logging.getLogger(__name__)

OnlineCheck = Callable[[int], bool]

IMAGE_PREVIEW = "[image]"


def _offline(_user_id: int) -> bool:
    return False


def _peer(peer_id: int, profile: UserProfile | None, is_online: OnlineCheck) -> PeerDTO:
    if profile is None:
        profile = UserProfile(id=peer_id, full_name=None, email=None, photo=None)
    return PeerDTO(
        id=peer_id,
        name=profile.display_name,
        first_name=profile.first_name,
        photo=profile.photo,
        is_online=is_online(peer_id),
    )


def _preview(message: Message | None) -> str | None:
    if message is None:
        return None
    if not message.content and message.image:
        return IMAGE_PREVIEW
    return message.content


async def list_user_conversations(
    user_id: int,
    uow: UnitOfWork,
    is_online: OnlineCheck = _offline,
) -> list[ConversationSummaryDTO]:
    conversations = await uow.conversations.list_for_user(user_id)
    if not conversations:
        return []

    peer_ids = [c.other_participant(user_id) for c in conversations]
    profiles = await uow.users.get_profiles(set(peer_ids))

    summaries: list[ConversationSummaryDTO] = []
    for conversation, peer_id in zip(conversations, peer_ids):
        latest = await uow.messages.get_latest(conversation.id)
        unread = await uow.messages.count_unread(conversation.id, user_id)
        summaries.append(
            ConversationSummaryDTO(
                conversation_id=conversation.id,
                peer=_peer(peer_id, profiles.get(peer_id), is_online),
                last_message=_preview(latest),
                last_message_time=latest.created_at if latest else conversation.created_at,
                last_message_sender_id=latest.sender_id if latest else None,
                is_last_message_from_current_user=(
                    latest is not None and latest.sender_id == user_id
                ),
                unread_count=unread,
            )
        )
    return summaries


async def get_conversation_history(
    conversation_id: int,
    user_id: int,
    uow: UnitOfWork,
    is_online: OnlineCheck = _offline,
) -> ConversationHistoryDTO:
    conversation = assert_participant(
        await uow.conversations.get_by_id(conversation_id), user_id,
    )
    peer_id = conversation.other_participant(user_id)
    profile = await uow.users.get_profile(peer_id)
    messages = await uow.messages.list_for_conversation(conversation.id)
    return ConversationHistoryDTO(
        conversation_id=conversation.id,
        peer=_peer(peer_id, profile, is_online),
        messages=[OutboundMessage.stamp(m) for m in messages],
    )


async def get_or_create_conversation(
    user_id: int,
    target_user_id: int,
    uow: UnitOfWork,
) -> tuple[Conversation, bool]:
    """Return the conversation for the unordered pair, creating it if missing.

    Returns (conversation, created).
    """
    if target_user_id == user_id:
        raise ValidationError("Cannot start a conversation with yourself")

    if await uow.users.get_profile(target_user_id) is None:
        raise NotFoundError(f"User with ID {target_user_id} not found")

    existing = await uow.conversations.find_between(user_id, target_user_id)
    if existing is not None:
        return existing, False

    conversation, created = await uow.conversations_w.create_if_not_exists(
        user_id, target_user_id, datetime.now(timezone.utc),
    )
    if conversation is None:
        # Lost a race against a concurrent create for the same pair.
        conversation = await uow.conversations.find_between(user_id, target_user_id)
        if conversation is None:
            raise StoreUnavailableError("Conversation changed concurrently, please retry")
        return conversation, False

    await uow.commit()
    logger.info(
        "Conversation %s created between users %s and %s",
        conversation.id, user_id, target_user_id,
    )
    return conversation, created


async def delete_conversation(
    conversation_id: int,
    user_id: int,
    uow: UnitOfWork,
) -> int:
    """Delete the conversation and its messages in one transaction.

    Returns the number of deleted messages. Nothing is committed unless both
    deletes succeed.
    """
    conversation = assert_participant(
        await uow.conversations.get_by_id(conversation_id), user_id,
    )
    removed = await uow.messages_w.delete_for_conversation(conversation.id)
    await uow.conversations_w.delete(conversation.id)
    await uow.commit()
    logger.info(
        "Conversation %s deleted by user %s (%d messages)", conversation.id, user_id, removed,
    )
    return removed


async def list_peer_ids(user_id: int, uow: UnitOfWork) -> list[int]:
    return await uow.conversations.list_peer_ids(user_id)
