"""Seed development data: creates the tables, two users and a conversation between them."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy.dialects.postgresql import insert as pg_insert

from marketplace_chat.config import settings
from marketplace_chat.infrastructure.db.base import Base
from marketplace_chat.infrastructure.db.models import UserModel
from marketplace_chat.infrastructure.db.session import AsyncSessionLocal, engine
from marketplace_chat.infrastructure.db.uow import SqlAlchemyUoW
from marketplace_chat.logging_config import setup_logging
from marketplace_chat.services import conversation_service

logger = logging.getLogger(__name__)

USERS = [
    (1, "Alice Freelancer", "alice@campus.test"),
    (2, "Bob Client", "bob@campus.test"),
]

MESSAGES = [
    (2, "Hi! Is the logo design offer still open?"),
    (1, "Yes, it is. What do you have in mind?"),
    (2, "Something minimal for a student society."),
]


def dev_token(user_id: int) -> str:
    """HS256 token accepted by the gateway, for local testing only."""
    return jwt.encode(
        {"userId": user_id, "exp": datetime.now(timezone.utc) + timedelta(days=1)},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


async def seed() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        uow = SqlAlchemyUoW(session)
        await session.execute(
            pg_insert(UserModel)
            .values([{"user_id": uid, "full_name": name, "email": email} for uid, name, email in USERS])
            .on_conflict_do_nothing(index_elements=[UserModel.user_id])
        )
        await uow.commit()

        conversation, created = await conversation_service.get_or_create_conversation(1, 2, uow)
        if created:
            for sender_id, content in MESSAGES:
                await uow.messages_w.add(
                    conversation_id=conversation.id,
                    sender_id=sender_id,
                    content=content,
                    image=None,
                    created_at=datetime.now(timezone.utc),
                )
            await uow.commit()
        logger.info(
            "Conversation %s between users 1 and 2 (%s)",
            conversation.id, "created" if created else "already existed",
        )

    for uid, _name, _email in USERS:
        logger.info("User %s token: %s", uid, dev_token(uid))
    await engine.dispose()


def main() -> None:
    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
