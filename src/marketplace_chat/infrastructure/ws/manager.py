"""In-process WebSocket connection manager."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from fastapi import WebSocket

from marketplace_chat.infrastructure.ws.connection import Connection
from marketplace_chat.infrastructure.ws.presence import PresenceRegistry
from marketplace_chat.infrastructure.ws.protocol import encode
from marketplace_chat.infrastructure.ws.sessions import SessionManager

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Owns every live connection in this process, plus session and presence state.

    Also the local ``Notifier``: deliveries go straight to this process' sockets.
    """

    def __init__(
        self,
        sessions: SessionManager | None = None,
        presence: PresenceRegistry | None = None,
    ) -> None:
        self._connections: dict[str, Connection] = {}
        self.sessions = sessions or SessionManager()
        self.presence = presence or PresenceRegistry()

    async def connect(self, ws: WebSocket) -> Connection:
        await ws.accept()
        return self.register(Connection(ws))

    def register(self, conn: Connection) -> Connection:
        self._connections[conn.id] = conn
        self.sessions.open(conn.id)
        logger.debug("WS connected: %s (total=%d)", conn.id, len(self._connections))
        return conn

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def user_of(self, conn: Connection) -> int | None:
        return self.sessions.user_of(conn.id)

    def bind_user(self, conn: Connection, user_id: int) -> bool:
        """Attach an identity. Returns True if the user just came online."""
        self.sessions.identify(conn.id, user_id)
        return self.presence.set_online(user_id, conn.id)

    def join(self, conn: Connection, conversation_id: int) -> bool:
        return self.sessions.join(conn.id, conversation_id)

    def leave(self, conn: Connection, conversation_id: int) -> bool:
        return self.sessions.leave(conn.id, conversation_id)

    def disconnect(self, conn: Connection) -> tuple[int | None, bool]:
        """Forget the connection. Returns (user_id, went_offline)."""
        self._connections.pop(conn.id, None)
        session = self.sessions.close(conn.id)
        logger.debug("WS disconnected: %s", conn.id)
        if session is None or session.user_id is None:
            return None, False
        return session.user_id, self.presence.clear_if_current(session.user_id, conn.id)

    async def to_room(
        self,
        conversation_id: int,
        event: str,
        data: dict[str, Any],
        *,
        exclude_connection: str | None = None,
    ) -> None:
        """Send to every connection joined to the conversation's room."""
        members = self.sessions.members_of(conversation_id)
        await self._send_many(
            (cid for cid in members if cid != exclude_connection), event, data,
        )

    async def to_user(self, user_id: int, event: str, data: dict[str, Any]) -> None:
        """Send to each of the user's connections; a no-op when they are offline."""
        connection_ids = self.presence.get(user_id)
        if not connection_ids:
            return
        await self._send_many(connection_ids, event, data)

    async def to_all(
        self,
        event: str,
        data: dict[str, Any],
        *,
        exclude_connection: str | None = None,
    ) -> None:
        await self._send_many(
            (cid for cid in list(self._connections) if cid != exclude_connection), event, data,
        )

    async def _send_many(
        self,
        connection_ids: Iterable[str],
        event: str,
        data: dict[str, Any],
    ) -> None:
        raw = encode(event, data)
        failed = 0
        for connection_id in connection_ids:
            conn = self._connections.get(connection_id)
            if conn is None:
                continue
            if not await conn.send_raw(raw):
                failed += 1
        if failed:
            # The read loop of a dead socket cleans it up on its own.
            logger.debug("%s: %d delivery(ies) failed", event, failed)
