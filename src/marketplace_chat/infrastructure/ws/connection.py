from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

from marketplace_chat.infrastructure.ws.protocol import encode

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Connection:
    """One live WebSocket. Identity and rooms are tracked by the SessionManager."""

    websocket: WebSocket
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    async def send(self, event: str, data: dict[str, Any]) -> bool:
        return await self.send_raw(encode(event, data))

    async def send_raw(self, raw: str) -> bool:
        """Write a pre-encoded frame. A dead socket is reported, not raised."""
        try:
            await self.websocket.send_text(raw)
        except Exception:
            logger.debug("WS send failed on %s", self.id, exc_info=True)
            return False
        return True
