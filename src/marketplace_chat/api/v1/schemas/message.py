from __future__ import annotations

from marketplace_chat.api.v1.schemas.common import CamelModel, StatusResponse
from marketplace_chat.application.dto.message import OutboundMessage


class SendMessageRequest(CamelModel):
    # Emptiness and length are checked by the shared send path.
    content: str | None = None


class MessageResponse(CamelModel):
    id: int
    unique_timestamp: int
    conversation_id: int
    sender_id: int
    content: str
    image: str | None
    is_read: bool
    # Kept as the gateway renders it so both transports emit identical payloads.
    created_at: str

    @classmethod
    def from_outbound(cls, outbound: OutboundMessage) -> MessageResponse:
        return cls.model_validate(outbound.to_payload())


class MarkReadResponse(StatusResponse):
    updated: int
