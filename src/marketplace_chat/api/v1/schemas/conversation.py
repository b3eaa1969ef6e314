from __future__ import annotations

from datetime import datetime

from pydantic import PositiveInt, model_validator

from marketplace_chat.api.v1.schemas.common import CamelModel, StatusResponse
from marketplace_chat.api.v1.schemas.message import MessageResponse
from marketplace_chat.application.dto.conversation import (
    ConversationHistoryDTO,
    ConversationSummaryDTO,
    PeerDTO,
)


class CreateConversationRequest(CamelModel):
    """Target user, as ``otherUserId`` or (older clients) ``userId``."""

    other_user_id: PositiveInt | None = None
    user_id: PositiveInt | None = None

    @model_validator(mode="after")
    def _require_target(self) -> CreateConversationRequest:
        if self.other_user_id is None and self.user_id is None:
            raise ValueError("Target user ID is required")
        return self

    @property
    def target_user_id(self) -> int:
        return self.other_user_id if self.other_user_id is not None else self.user_id  # type: ignore[return-value]


class CreateConversationResponse(CamelModel):
    conversation_id: int
    created: bool
    message: str


class PeerResponse(CamelModel):
    id: int
    name: str
    first_name: str
    photo: str | None
    is_online: bool


class ConversationSummaryResponse(CamelModel):
    conversation_id: int
    other_user_id: int
    other_user_name: str
    other_user_first_name: str
    other_user_photo: str | None
    other_user_is_online: bool
    last_message: str | None
    last_message_time: datetime
    last_message_sender_id: int | None
    is_last_message_from_current_user: bool
    unread_count: int

    @classmethod
    def from_dto(cls, dto: ConversationSummaryDTO) -> ConversationSummaryResponse:
        peer: PeerDTO = dto.peer
        return cls(
            conversation_id=dto.conversation_id,
            other_user_id=peer.id,
            other_user_name=peer.name,
            other_user_first_name=peer.first_name,
            other_user_photo=peer.photo,
            other_user_is_online=peer.is_online,
            last_message=dto.last_message,
            last_message_time=dto.last_message_time,
            last_message_sender_id=dto.last_message_sender_id,
            is_last_message_from_current_user=dto.is_last_message_from_current_user,
            unread_count=dto.unread_count,
        )


class ConversationHistoryResponse(CamelModel):
    conversation_id: int
    other_user: PeerResponse
    messages: list[MessageResponse]

    @classmethod
    def from_dto(cls, dto: ConversationHistoryDTO) -> ConversationHistoryResponse:
        return cls(
            conversation_id=dto.conversation_id,
            other_user=PeerResponse.model_validate(dto.peer),
            messages=[MessageResponse.from_outbound(m) for m in dto.messages],
        )


class DeleteConversationResponse(StatusResponse):
    deleted_messages: int
