from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_chat.domain.entities.user import UserProfile
from marketplace_chat.infrastructure.db.mappers import user as mapper
from marketplace_chat.infrastructure.db.models.user import UserModel


class UserReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_profile(self, user_id: int) -> UserProfile | None:
        result = await self._session.get(UserModel, user_id)
        return mapper.model_to_entity(result) if result else None

    async def get_profiles(self, user_ids: Iterable[int]) -> dict[int, UserProfile]:
        ids = list(user_ids)
        if not ids:
            return {}
        stmt = select(UserModel).where(UserModel.user_id.in_(ids))
        result = await self._session.execute(stmt)
        return {m.user_id: mapper.model_to_entity(m) for m in result.scalars().all()}
