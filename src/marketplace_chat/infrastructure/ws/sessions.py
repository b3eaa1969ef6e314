from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Session:
    connection_id: str
    user_id: int | None = None
    rooms: set[int] = field(default_factory=set)


class SessionManager:
    """Per-connection identity and conversation-room membership.

    Pure in-memory bookkeeping, rebuilt from nothing on restart: clients
    reconnect and rejoin. All mutation happens on the event loop thread.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._rooms: dict[int, set[str]] = {}

    def open(self, connection_id: str) -> Session:
        return self._sessions.setdefault(connection_id, Session(connection_id))

    def identify(self, connection_id: str, user_id: int) -> None:
        self.open(connection_id).user_id = user_id

    def user_of(self, connection_id: str) -> int | None:
        session = self._sessions.get(connection_id)
        return session.user_id if session else None

    def join(self, connection_id: str, conversation_id: int) -> bool:
        """Add the connection to the room. Returns False if it was already there."""
        session = self.open(connection_id)
        if conversation_id in session.rooms:
            return False
        session.rooms.add(conversation_id)
        self._rooms.setdefault(conversation_id, set()).add(connection_id)
        return True

    def leave(self, connection_id: str, conversation_id: int) -> bool:
        session = self._sessions.get(connection_id)
        if session is None or conversation_id not in session.rooms:
            return False
        session.rooms.discard(conversation_id)
        self._discard_member(conversation_id, connection_id)
        return True

    def close(self, connection_id: str) -> Session | None:
        """Forget the connection and leave every room it joined."""
        session = self._sessions.pop(connection_id, None)
        if session is None:
            return None
        for conversation_id in session.rooms:
            self._discard_member(conversation_id, connection_id)
        return session

    def members_of(self, conversation_id: int) -> frozenset[str]:
        return frozenset(self._rooms.get(conversation_id, ()))

    def rooms_of(self, connection_id: str) -> frozenset[int]:
        session = self._sessions.get(connection_id)
        return frozenset(session.rooms) if session else frozenset()

    def _discard_member(self, conversation_id: int, connection_id: str) -> None:
        members = self._rooms.get(conversation_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._rooms[conversation_id]
