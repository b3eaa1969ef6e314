from __future__ import annotations

from dataclasses import dataclass

from marketplace_chat.domain.value_objects.ids import UserId

UNKNOWN_USER_NAME = "Unknown User"


@dataclass(frozen=True, slots=True)
class UserProfile:
    """Read-only view of a marketplace account, owned by the accounts service."""

    id: UserId
    full_name: str | None
    email: str | None
    photo: str | None

    @property
    def display_name(self) -> str:
        return self.full_name or UNKNOWN_USER_NAME

    @property
    def first_name(self) -> str:
        if not self.full_name:
            return "User"
        return self.full_name.split(" ")[0]
