"""Real-time gateway: one dispatcher shared by every connection.

Each connection's read loop feeds raw frames into :meth:`Gateway.dispatch`,
which validates the envelope, looks up the handler for the event type and
turns any failure into an ``error`` event on that same connection.
"""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, TypeVar

from fastapi import WebSocket
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from marketplace_chat.application.exceptions import (
    AppError,
    StoreUnavailableError,
    UnauthenticatedError,
    ValidationError,
)
from marketplace_chat.application.policies.permissions import assert_participant
from marketplace_chat.application.ports.auth import TokenVerifier
from marketplace_chat.application.ports.notifier import Notifier
from marketplace_chat.application.uow import UnitOfWork
from marketplace_chat.domain.value_objects.enums import ClientEvent, PresenceScope, ServerEvent
from marketplace_chat.infrastructure.db.guard import store_boundary
from marketplace_chat.infrastructure.ws.connection import Connection
from marketplace_chat.infrastructure.ws.manager import ConnectionManager
from marketplace_chat.infrastructure.ws.protocol import (
    AuthenticatePayload,
    ConversationPayload,
    SendMessagePayload,
    WsInbound,
)
from marketplace_chat.services import conversation_service, message_service, read_state_service

logger = logging.getLogger(__name__)

UowFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]
Handler = Callable[[Connection, dict[str, Any]], Awaitable[None]]
P = TypeVar("P", bound=BaseModel)


def _parse(model: type[P], data: dict[str, Any]) -> P:
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in e["loc"]) for e in exc.errors())
        raise ValidationError(f"Invalid event data: {fields}") from exc


class Gateway:
    def __init__(
        self,
        manager: ConnectionManager,
        notifier: Notifier,
        verifier: TokenVerifier,
        uow_factory: UowFactory,
        *,
        presence_scope: PresenceScope = PresenceScope.GLOBAL,
        expose_error_details: bool = False,
        store_timeout: float | None = None,
    ) -> None:
        self._manager = manager
        self._notifier = notifier
        self._verifier = verifier
        self._uow_factory = uow_factory
        self._presence_scope = presence_scope
        self._expose_error_details = expose_error_details
        self._store_timeout = store_timeout
        self._handlers: dict[str, Handler] = {
            ClientEvent.AUTHENTICATE: self._on_authenticate,
            ClientEvent.JOIN_CONVERSATION: self._on_join,
            ClientEvent.LEAVE_CONVERSATION: self._on_leave,
            ClientEvent.SEND_MESSAGE: self._on_send_message,
            ClientEvent.MARK_AS_READ: self._on_mark_as_read,
            ClientEvent.TYPING: self._on_typing,
            ClientEvent.STOP_TYPING: self._on_stop_typing,
            ClientEvent.PING: self._on_ping,
        }

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    # -- lifecycle ---------------------------------------------------------

    async def on_connect(self, websocket: WebSocket) -> Connection:
        """Accept an anonymous connection; it has no identity until authenticated."""
        return await self._manager.connect(websocket)

    async def on_disconnect(self, conn: Connection) -> None:
        user_id, went_offline = self._manager.disconnect(conn)
        if user_id is None:
            return
        logger.info("User %s disconnected (%s)", user_id, conn.id)
        if went_offline:
            await self._announce_status(user_id, is_online=False)

    async def authenticate(self, conn: Connection, user_id: int) -> None:
        current = self._manager.user_of(conn)
        if current is not None and current != user_id:
            raise ValidationError("Connection is already authenticated as another user")
        came_online = self._manager.bind_user(conn, user_id)
        logger.info("User %s authenticated on %s", user_id, conn.id)
        # Further tabs of an already-online user change nothing others can see.
        if came_online:
            await self._announce_status(user_id, is_online=True, exclude_connection=conn.id)

    # -- dispatch ----------------------------------------------------------

    async def dispatch(self, conn: Connection, raw: str) -> None:
        try:
            envelope = WsInbound.model_validate_json(raw)
        except PydanticValidationError:
            await self._send_error(conn, "invalid_payload", "Malformed event")
            return
        await self.handle(conn, envelope.type, envelope.data)

    async def handle(self, conn: Connection, event: str, data: dict[str, Any]) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            await self._send_error(conn, "unknown_type", f"Unknown event type: {event}")
            return

        request_id = data.get("requestId") if isinstance(data.get("requestId"), str) else None
        try:
            await handler(conn, data)
        except AppError as exc:
            await self._send_app_error(conn, exc, request_id)
        except Exception as exc:
            logger.exception("Unhandled error in %s handler for %s", event, conn.id)
            await self._send_error(
                conn,
                "internal_error",
                "Something went wrong",
                details=str(exc) if self._expose_error_details else None,
                request_id=request_id,
            )

    # -- handlers ----------------------------------------------------------

    async def _on_authenticate(self, conn: Connection, data: dict[str, Any]) -> None:
        payload = _parse(AuthenticatePayload, data)
        if not payload.token:
            raise UnauthenticatedError("Authentication token is required")
        try:
            principal = await self._verifier.verify(payload.token)
        except Exception as exc:
            logger.debug("WS auth failed on %s", conn.id, exc_info=True)
            raise UnauthenticatedError("Authentication failed") from exc
        if payload.user_id is not None and payload.user_id != principal.user_id:
            raise UnauthenticatedError("Token does not belong to this user")
        await self.authenticate(conn, principal.user_id)

    async def _on_join(self, conn: Connection, data: dict[str, Any]) -> None:
        user_id = self._require_user(conn)
        payload = _parse(ConversationPayload, data)
        if payload.conversation_id in self._manager.sessions.rooms_of(conn.id):
            return
        # Room broadcasts carry message bodies, so only participants may listen.
        async with self._unit_of_work() as uow:
            assert_participant(await uow.conversations.get_by_id(payload.conversation_id), user_id)
        self._manager.join(conn, payload.conversation_id)
        logger.debug("User %s joined conversation %s", user_id, payload.conversation_id)

    async def _on_leave(self, conn: Connection, data: dict[str, Any]) -> None:
        payload = _parse(ConversationPayload, data)
        self._manager.leave(conn, payload.conversation_id)

    async def _on_send_message(self, conn: Connection, data: dict[str, Any]) -> None:
        user_id = self._require_user(conn)
        payload = _parse(SendMessagePayload, data)
        async with self._uow_factory() as uow:
            outbound = await message_service.send_message(
                payload.conversation_id, user_id, payload.content, None, uow, self._notifier,
                store_scope=self._store_scope,
            )
        ack = outbound.to_payload()
        if payload.request_id:
            ack["requestId"] = payload.request_id
        await conn.send(ServerEvent.MESSAGE_SENT, ack)

    async def _on_mark_as_read(self, conn: Connection, data: dict[str, Any]) -> None:
        user_id = self._require_user(conn)
        payload = _parse(ConversationPayload, data)
        async with self._uow_factory() as uow:
            await read_state_service.mark_read(
                payload.conversation_id, user_id, uow, self._notifier,
                store_scope=self._store_scope,
            )

    async def _on_typing(self, conn: Connection, data: dict[str, Any]) -> None:
        await self._relay_typing(conn, data, ServerEvent.USER_TYPING)

    async def _on_stop_typing(self, conn: Connection, data: dict[str, Any]) -> None:
        await self._relay_typing(conn, data, ServerEvent.USER_STOP_TYPING)

    async def _on_ping(self, conn: Connection, data: dict[str, Any]) -> None:
        await conn.send(ServerEvent.PONG, {})

    # -- helpers -----------------------------------------------------------

    async def _relay_typing(self, conn: Connection, data: dict[str, Any], event: ServerEvent) -> None:
        user_id = self._require_user(conn)
        payload = _parse(ConversationPayload, data)
        await self._notifier.to_room(
            payload.conversation_id,
            event,
            {"conversationId": payload.conversation_id, "userId": user_id},
            exclude_connection=conn.id,
        )

    def _require_user(self, conn: Connection) -> int:
        user_id = self._manager.user_of(conn)
        if user_id is None:
            raise UnauthenticatedError("Not authenticated")
        return user_id

    def _store_scope(self) -> AbstractAsyncContextManager[None]:
        return store_boundary(self._store_timeout)

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[UnitOfWork]:
        async with self._store_scope(), self._uow_factory() as uow:
            yield uow

    async def _announce_status(
        self,
        user_id: int,
        *,
        is_online: bool,
        exclude_connection: str | None = None,
    ) -> None:
        data = {"userId": user_id, "isOnline": is_online}
        if self._presence_scope is PresenceScope.GLOBAL:
            await self._notifier.to_all(
                ServerEvent.USER_STATUS, data, exclude_connection=exclude_connection,
            )
            return

        try:
            async with self._unit_of_work() as uow:
                peer_ids = await conversation_service.list_peer_ids(user_id, uow)
        except StoreUnavailableError:
            logger.warning("Skipping presence update for user %s: store unavailable", user_id)
            return
        for peer_id in peer_ids:
            await self._notifier.to_user(peer_id, ServerEvent.USER_STATUS, data)

    async def _send_app_error(
        self,
        conn: Connection,
        exc: AppError,
        request_id: str | None,
    ) -> None:
        details = None
        if isinstance(exc, StoreUnavailableError) and self._expose_error_details:
            details = exc.cause
        await self._send_error(
            conn,
            exc.code,
            exc.detail,
            details=details,
            request_id=request_id,
            retryable=isinstance(exc, StoreUnavailableError),
        )

    async def _send_error(
        self,
        conn: Connection,
        code: str,
        message: str,
        *,
        details: str | None = None,
        request_id: str | None = None,
        retryable: bool = False,
    ) -> None:
        data: dict[str, Any] = {"code": code, "message": message}
        if details:
            data["details"] = details
        if request_id:
            data["requestId"] = request_id
        if retryable:
            data["retryable"] = True
        await conn.send(ServerEvent.ERROR, data)
