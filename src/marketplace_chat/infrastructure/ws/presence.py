from __future__ import annotations


class PresenceRegistry:
    """Which users are reachable, and through which connections.

    A user may hold several connections (tabs, devices). They are online while
    at least one is registered. Owned by a single event loop, so no locking.
    """

    def __init__(self) -> None:
        self._by_user: dict[int, set[str]] = {}

    def set_online(self, user_id: int, connection_id: str) -> bool:
        """Register a connection. Returns True if the user was offline before."""
        connections = self._by_user.setdefault(user_id, set())
        was_offline = not connections
        connections.add(connection_id)
        return was_offline

    def clear_if_current(self, user_id: int, connection_id: str) -> bool:
        """Drop ``connection_id`` for the user. Returns True if that made them offline.

        A disconnect for a connection that is no longer registered (for example
        after the user reconnected) leaves the newer entries untouched.
        """
        connections = self._by_user.get(user_id)
        if not connections or connection_id not in connections:
            return False
        connections.discard(connection_id)
        if connections:
            return False
        del self._by_user[user_id]
        return True

    def get(self, user_id: int) -> frozenset[str]:
        return frozenset(self._by_user.get(user_id, ()))

    def is_online(self, user_id: int) -> bool:
        return bool(self._by_user.get(user_id))
