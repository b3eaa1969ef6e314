from __future__ import annotations

from marketplace_chat.domain.entities.user import UserProfile
from marketplace_chat.domain.value_objects.ids import UserId
from marketplace_chat.infrastructure.db.models.user import UserModel


def model_to_entity(model: UserModel) -> UserProfile:
    return UserProfile(
        id=UserId(model.user_id),
        full_name=model.full_name,
        email=model.email,
        photo=model.photo,
    )
