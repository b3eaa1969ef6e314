from __future__ import annotations

import logging
from contextlib import nullcontext

from marketplace_chat.application.policies.permissions import assert_participant
from marketplace_chat.application.ports.notifier import Notifier
from marketplace_chat.application.uow import StoreScope, UnitOfWork
from marketplace_chat.domain.value_objects.enums import ServerEvent

logger = logging.getLogger(__name__)


async def mark_read(
    conversation_id: int,
    user_id: int,
    uow: UnitOfWork,
    notifier: Notifier,
    *,
    store_scope: StoreScope = nullcontext,
) -> int:
    """Mark the peer's unread messages as read and tell the peer.

    Messages authored by ``user_id`` are never touched, and ``is_read`` only
    ever moves from false to true. The peer is notified after the commit,
    outside ``store_scope``.
    """
    async with store_scope():
        conversation = assert_participant(
            await uow.conversations.get_by_id(conversation_id), user_id,
        )
        updated = await uow.messages_w.mark_read_from_peer(conversation.id, user_id)
        await uow.commit()

    logger.debug(
        "User %s read %d message(s) in conversation %s", user_id, updated, conversation.id,
    )
    await notifier.to_user(
        conversation.other_participant(user_id),
        ServerEvent.MESSAGES_READ,
        {"conversationId": conversation.id},
    )
    return updated
