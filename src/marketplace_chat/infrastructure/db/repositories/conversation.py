from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, delete, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.infrastructure.db.mappers import conversation as mapper
from marketplace_chat.infrastructure.db.models.conversation import ConversationModel


def _involves(user_id: int):
    return or_(
        ConversationModel.user1_id == user_id,
        ConversationModel.user2_id == user_id,
    )


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, conversation_id: int) -> Conversation | None:
        result = await self._session.get(ConversationModel, conversation_id)
        return mapper.model_to_entity(result) if result else None

    async def find_between(self, user_a: int, user_b: int) -> Conversation | None:
        stmt = (
            select(ConversationModel)
            .where(
                or_(
                    (ConversationModel.user1_id == user_a) & (ConversationModel.user2_id == user_b),
                    (ConversationModel.user1_id == user_b) & (ConversationModel.user2_id == user_a),
                )
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def list_for_user(self, user_id: int) -> list[Conversation]:
        stmt = (
            select(ConversationModel)
            .where(_involves(user_id))
            .order_by(
                ConversationModel.updated_at.desc(),
                ConversationModel.conversation_id.desc(),
            )
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def list_peer_ids(self, user_id: int) -> list[int]:
        peer = case(
            (ConversationModel.user1_id == user_id, ConversationModel.user2_id),
            else_=ConversationModel.user1_id,
        )
        stmt = select(peer).where(_involves(user_id)).distinct()
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_if_not_exists(
        self,
        user1_id: int,
        user2_id: int,
        now: datetime,
    ) -> tuple[Conversation | None, bool]:
        stmt = (
            pg_insert(ConversationModel)
            .values(user1_id=user1_id, user2_id=user2_id, created_at=now, updated_at=now)
            # uq_conversations_pair covers both orderings of the pair
            .on_conflict_do_nothing()
            .returning(ConversationModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            return None, False
        return mapper.model_to_entity(row), True

    async def touch(self, conversation_id: int, ts: datetime) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.conversation_id == conversation_id)
            .values(updated_at=ts)
        )
        await self._session.execute(stmt)

    async def delete(self, conversation_id: int) -> bool:
        stmt = delete(ConversationModel).where(
            ConversationModel.conversation_id == conversation_id
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0
