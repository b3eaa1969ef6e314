"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, PositiveInt
from pydantic.alias_generators import to_camel


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # authenticate | join_conversation | send_message | mark_as_read | typing | ...
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # new_message | message_sent | user_status | error | pong | ...
    data: dict[str, Any] = {}


def encode(event: str, data: dict[str, Any]) -> str:
    return WsOutbound(type=event, data=data).model_dump_json()


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AuthenticatePayload(_Payload):
    token: str | None = None
    user_id: int | None = None


class ConversationPayload(_Payload):
    conversation_id: PositiveInt


class SendMessagePayload(ConversationPayload):
    content: str | None = None
    # Echoed back on the matching message_sent / error.
    request_id: str | None = None
