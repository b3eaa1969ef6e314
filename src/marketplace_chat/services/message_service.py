from __future__ import annotations

import logging
from contextlib import nullcontext
from datetime import datetime, timezone

from marketplace_chat.application.dto.message import OutboundMessage
from marketplace_chat.application.exceptions import ValidationError
from marketplace_chat.application.policies.permissions import assert_participant
from marketplace_chat.application.ports.notifier import Notifier
from marketplace_chat.application.uow import StoreScope, UnitOfWork
from marketplace_chat.config import settings
from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.value_objects.enums import ServerEvent

logger = logging.getLogger(__name__)


def clean_content(content: str | None, image: str | None) -> str:
    """Trim the text body; it may only be empty when an image is attached."""
    text = content.strip() if isinstance(content, str) else ""
    if not text and not image:
        raise ValidationError("Message content is required")
    if len(text) > settings.MAX_MESSAGE_LENGTH:
        raise ValidationError(
            f"Message content exceeds {settings.MAX_MESSAGE_LENGTH} characters"
        )
    return text


async def send_message(
    conversation_id: int,
    sender_id: int,
    content: str | None,
    image: str | None,
    uow: UnitOfWork,
    notifier: Notifier,
    *,
    store_scope: StoreScope = nullcontext,
) -> OutboundMessage:
    """Persist a message and fan it out.

    This is the only write path for messages; the WebSocket gateway and the
    REST endpoints both call it. The insert is committed before anything is
    pushed, so a store failure never produces a delivery. ``store_scope``
    bounds the store calls only: once the commit succeeds, delivery always
    runs and the caller gets the stored message back.
    """
    text = clean_content(content, image)

    async with store_scope():
        conversation = assert_participant(
            await uow.conversations.get_by_id(conversation_id), sender_id,
        )

        now = datetime.now(timezone.utc)
        message = await uow.messages_w.add(
            conversation_id=conversation.id,
            sender_id=sender_id,
            content=text,
            image=image,
            created_at=now,
        )
        await uow.conversations_w.touch(conversation.id, now)
        await uow.commit()

    outbound = OutboundMessage.stamp(message)
    await deliver(conversation, outbound, notifier)

    logger.info(
        "Message %s stored in conversation %s from user %s",
        message.id, conversation.id, sender_id,
    )
    return outbound


async def deliver(
    conversation: Conversation,
    outbound: OutboundMessage,
    notifier: Notifier,
) -> None:
    payload = outbound.to_payload()
    await notifier.to_room(conversation.id, ServerEvent.NEW_MESSAGE, payload)

    # The peer may be on the conversation list rather than inside this room.
    recipient_id = conversation.other_participant(outbound.message.sender_id)
    await notifier.to_user(
        recipient_id,
        ServerEvent.MESSAGE_NOTIFICATION,
        {"conversationId": conversation.id, "message": payload},
    )


async def list_messages(
    conversation_id: int,
    user_id: int,
    uow: UnitOfWork,
) -> list[Message]:
    assert_participant(await uow.conversations.get_by_id(conversation_id), user_id)
    return await uow.messages.list_for_conversation(conversation_id)
