"""Async Python client for the chat gateway, with REST fallback.

Usage::

    async with ChatClient("http://localhost:8000", token) as chat:
        chat.on("new_message", print)
        await chat.join(42)
        await chat.send_message(42, "hello")
"""
from __future__ import annotations

import asyncio
import inspect
import json
import logging
import uuid
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Any, Self

import aiohttp

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[None] | None]

API_PREFIX = "/api/messages/conversations"
DEDUP_CACHE_SIZE = 1024

# Frames carrying a message payload that may arrive by more than one path.
_MESSAGE_EVENTS = frozenset({"new_message", "message_sent"})


class ChatClientError(Exception):
    pass


class SendTimeoutError(ChatClientError):
    """No acknowledgement arrived in time. The message may still have been stored."""


class SendFailedError(ChatClientError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


class ApiError(ChatClientError):
    def __init__(self, status: int, code: str, detail: str) -> None:
        super().__init__(f"{status} {code}: {detail}")
        self.status = status
        self.code = code
        self.detail = detail


class ChatClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        ack_timeout: float = 5.0,
        reconnect_delay: float = 1.0,
        max_reconnect_attempts: int = 5,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._ack_timeout = ack_timeout
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_attempts = max_reconnect_attempts
        self._session = session
        self._owns_session = session is None

        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None
        self._closing = False
        self._handlers: dict[str, list[Handler]] = {}
        self._pending: dict[str, asyncio.Future[dict[str, Any]]] = {}
        self._rooms: set[int] = set()
        self._seen: OrderedDict[tuple[int, int], None] = OrderedDict()

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    # -- connection --------------------------------------------------------

    async def connect(self) -> None:
        self._closing = False
        await self._open()
        self._reader = asyncio.create_task(self._read_forever(), name="chat-client-reader")

    async def close(self) -> None:
        self._closing = True
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _open(self) -> None:
        ws_url = self._base_url.replace("http", "ws", 1) + "/ws/chat"
        self._ws = await self._http().ws_connect(ws_url, params={"token": self._token})
        for conversation_id in sorted(self._rooms):
            await self._emit("join_conversation", {"conversationId": conversation_id})
        logger.info("Chat socket connected (%d room(s) rejoined)", len(self._rooms))

    async def _read_forever(self) -> None:
        while not self._closing:
            ws = self._ws
            if ws is not None:
                async for msg in ws:
                    if msg.type == aiohttp.WSMsgType.TEXT:
                        await self._handle_frame(json.loads(msg.data))
                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        break
            if self._closing:
                return
            await self._notify("disconnect", {})
            await self._reconnect()

    async def _reconnect(self) -> None:
        for attempt in range(1, self._max_reconnect_attempts + 1):
            await asyncio.sleep(self._reconnect_delay * attempt)
            try:
                await self._open()
            except (aiohttp.ClientError, OSError):
                logger.warning("Reconnect attempt %d failed", attempt)
                continue
            await self._notify("connect", {})
            return
        self._closing = True
        logger.error("Giving up after %d reconnect attempts", self._max_reconnect_attempts)

    # -- events ------------------------------------------------------------

    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        """Register a handler; returns a function that unregisters it."""
        self._handlers.setdefault(event, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    async def _handle_frame(self, frame: dict[str, Any]) -> None:
        event = frame.get("type", "")
        data = frame.get("data") or {}

        request_id = data.get("requestId")
        if request_id and request_id in self._pending:
            future = self._pending.pop(request_id)
            if not future.done():
                if event == "error":
                    future.set_exception(
                        SendFailedError(data.get("code", "error"), data.get("message", ""))
                    )
                else:
                    future.set_result(data)

        if event in _MESSAGE_EVENTS:
            if event == "message_sent":
                await self._notify(event, data)
            if self._remember(data):
                await self._notify("new_message", data)
            return
        await self._notify(event, data)

    def _remember(self, message: dict[str, Any]) -> bool:
        """Record a message delivery. False if it was already seen."""
        key = (message.get("id"), message.get("uniqueTimestamp"))
        if None in key:
            return True
        if key in self._seen:
            return False
        self._seen[key] = None  # type: ignore[index]
        if len(self._seen) > DEDUP_CACHE_SIZE:
            self._seen.popitem(last=False)
        return True

    async def _notify(self, event: str, data: dict[str, Any]) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                result = handler(data)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Error in %s handler", event)

    async def _emit(self, event: str, data: dict[str, Any]) -> None:
        if not self.connected:
            raise ChatClientError("Socket is not connected")
        await self._ws.send_str(json.dumps({"type": event, "data": data}))  # type: ignore[union-attr]

    # -- operations --------------------------------------------------------

    async def join(self, conversation_id: int) -> None:
        self._rooms.add(conversation_id)
        if self.connected:
            await self._emit("join_conversation", {"conversationId": conversation_id})

    async def leave(self, conversation_id: int) -> None:
        self._rooms.discard(conversation_id)
        if self.connected:
            await self._emit("leave_conversation", {"conversationId": conversation_id})

    async def send_message(self, conversation_id: int, content: str) -> dict[str, Any]:
        """Send over the socket and wait for the acknowledgement.

        Falls back to REST when the socket is down. Returns the stored message.
        """
        if not self.connected:
            message = await self._rest("POST", f"/{conversation_id}/send", json={"content": content})
            if self._remember(message):
                await self._notify("new_message", message)
            return message

        request_id = uuid.uuid4().hex
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._emit(
                "send_message",
                {"conversationId": conversation_id, "content": content, "requestId": request_id},
            )
            return await asyncio.wait_for(future, self._ack_timeout)
        except asyncio.TimeoutError as exc:
            raise SendTimeoutError(
                f"No acknowledgement for message to conversation {conversation_id}"
            ) from exc
        finally:
            self._pending.pop(request_id, None)

    async def mark_as_read(self, conversation_id: int) -> None:
        if self.connected:
            await self._emit("mark_as_read", {"conversationId": conversation_id})
        else:
            await self._rest("PUT", f"/{conversation_id}/read")

    async def typing(self, conversation_id: int) -> None:
        if self.connected:
            await self._emit("typing", {"conversationId": conversation_id})

    async def stop_typing(self, conversation_id: int) -> None:
        if self.connected:
            await self._emit("stop_typing", {"conversationId": conversation_id})

    async def list_conversations(self) -> list[dict[str, Any]]:
        return await self._rest("GET", "")

    async def get_conversation(self, conversation_id: int) -> dict[str, Any]:
        return await self._rest("GET", f"/{conversation_id}")

    async def create_conversation(self, other_user_id: int) -> dict[str, Any]:
        return await self._rest("POST", "", json={"otherUserId": other_user_id})

    async def delete_conversation(self, conversation_id: int) -> dict[str, Any]:
        return await self._rest("DELETE", f"/{conversation_id}")

    # -- http --------------------------------------------------------------

    def _http(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _rest(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = {"Authorization": f"Bearer {self._token}"}
        url = f"{self._base_url}{API_PREFIX}{path}"
        async with self._http().request(method, url, headers=headers, **kwargs) as response:
            body = await response.json(content_type=None)
            if response.status >= 400:
                error = body if isinstance(body, dict) else {}
                raise ApiError(
                    response.status,
                    str(error.get("code", "error")),
                    str(error.get("detail") or response.reason),
                )
            return body
