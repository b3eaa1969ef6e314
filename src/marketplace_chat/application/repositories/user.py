from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from marketplace_chat.domain.entities.user import UserProfile


class UserReader(Protocol):
    async def get_profile(self, user_id: int) -> UserProfile | None: ...

    async def get_profiles(self, user_ids: Iterable[int]) -> dict[int, UserProfile]: ...
