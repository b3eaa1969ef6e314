from __future__ import annotations

from enum import StrEnum


class ClientEvent(StrEnum):
    """Events a client may emit on the real-time channel."""

    AUTHENTICATE = "authenticate"
    JOIN_CONVERSATION = "join_conversation"
    LEAVE_CONVERSATION = "leave_conversation"
    SEND_MESSAGE = "send_message"
    MARK_AS_READ = "mark_as_read"
    TYPING = "typing"
    STOP_TYPING = "stop_typing"
    PING = "ping"


class ServerEvent(StrEnum):
    """Events pushed by the server."""

    NEW_MESSAGE = "new_message"
    MESSAGE_NOTIFICATION = "message_notification"
    MESSAGE_SENT = "message_sent"
    MESSAGES_READ = "messages_read"
    USER_TYPING = "user_typing"
    USER_STOP_TYPING = "user_stop_typing"
    USER_STATUS = "user_status"
    ERROR = "error"
    PONG = "pong"


class PresenceScope(StrEnum):
    GLOBAL = "global"
    PEERS = "peers"


class FanoutBackend(StrEnum):
    LOCAL = "local"
    REDIS = "redis"
