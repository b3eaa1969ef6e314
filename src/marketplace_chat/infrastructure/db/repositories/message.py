from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_chat.domain.entities.message import Message
from marketplace_chat.infrastructure.db.mappers import message as mapper
from marketplace_chat.infrastructure.db.models.message import MessageModel


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_conversation(self, conversation_id: int) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.created_at.asc(), MessageModel.message_id.asc())
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def get_latest(self, conversation_id: int) -> Message | None:
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.created_at.desc(), MessageModel.message_id.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def count_unread(self, conversation_id: int, reader_id: int) -> int:
        stmt = select(func.count()).select_from(MessageModel).where(
            MessageModel.conversation_id == conversation_id,
            MessageModel.sender_id != reader_id,
            MessageModel.is_read.is_(False),
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        conversation_id: int,
        sender_id: int,
        content: str,
        image: str | None,
        created_at: datetime,
    ) -> Message:
        model = MessageModel(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            image=image,
            is_read=False,
            created_at=created_at,
        )
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    async def mark_read_from_peer(self, conversation_id: int, reader_id: int) -> int:
        # Only ever sets true; there is no path back to unread.
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.conversation_id == conversation_id,
                MessageModel.sender_id != reader_id,
                MessageModel.is_read.is_(False),
            )
            .values(is_read=True)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def delete_for_conversation(self, conversation_id: int) -> int:
        stmt = delete(MessageModel).where(MessageModel.conversation_id == conversation_id)
        result = await self._session.execute(stmt)
        return result.rowcount
