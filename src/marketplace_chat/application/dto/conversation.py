from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from marketplace_chat.application.dto.message import OutboundMessage


@dataclass(frozen=True, slots=True)
class PeerDTO:
    id: int
    name: str
    first_name: str
    photo: str | None
    is_online: bool


@dataclass(frozen=True, slots=True)
class ConversationSummaryDTO:
    conversation_id: int
    peer: PeerDTO
    last_message: str | None
    last_message_time: datetime
    last_message_sender_id: int | None
    is_last_message_from_current_user: bool
    unread_count: int


@dataclass(frozen=True, slots=True)
class ConversationHistoryDTO:
    conversation_id: int
    peer: PeerDTO
    messages: list[OutboundMessage]
