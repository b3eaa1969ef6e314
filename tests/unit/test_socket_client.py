from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from marketplace_chat.client.socket_client import (
    ChatClient,
    ChatClientError,
    SendFailedError,
    SendTimeoutError,
)


class FakeClientWebSocket:
    """Stands in for aiohttp's ClientWebSocketResponse; ``reply`` builds the server's answer."""

    def __init__(self, client: ChatClient, reply: Any = None) -> None:
        self.client = client
        self.reply = reply
        self.sent: list[dict[str, Any]] = []
        self.closed = False

    async def send_str(self, raw: str) -> None:
        frame = json.loads(raw)
        self.sent.append(frame)
        if self.reply is not None:
            response = self.reply(frame)
            if response is not None:
                asyncio.ensure_future(self.client._handle_frame(response))


def message(message_id: int = 1, token: int = 111, **extra: Any) -> dict[str, Any]:
    return {
        "id": message_id,
        "uniqueTimestamp": token,
        "conversationId": 7,
        "senderId": 1,
        "content": "hi",
        "image": None,
        "isRead": False,
        "createdAt": "2024-01-01T00:00:00+00:00",
        **extra,
    }


@pytest.fixture
def client():
    return ChatClient("http://chat.test", "token", ack_timeout=0.2)


@pytest.mark.asyncio
async def test_duplicate_deliveries_rendered_once(client):
    rendered: list[dict[str, Any]] = []
    client.on("new_message", rendered.append)

    await client._handle_frame({"type": "new_message", "data": message()})
    await client._handle_frame({"type": "message_sent", "data": message()})
    await client._handle_frame({"type": "new_message", "data": message()})

    assert len(rendered) == 1


@pytest.mark.asyncio
async def test_same_id_with_new_token_is_not_a_duplicate(client):
    rendered: list[dict[str, Any]] = []
    client.on("new_message", rendered.append)

    await client._handle_frame({"type": "new_message", "data": message(token=1)})
    await client._handle_frame({"type": "new_message", "data": message(token=2)})

    assert len(rendered) == 2


@pytest.mark.asyncio
async def test_handlers_can_be_async_and_unsubscribed(client):
    seen: list[dict[str, Any]] = []

    async def handler(data: dict[str, Any]) -> None:
        seen.append(data)

    unsubscribe = client.on("user_status", handler)
    await client._handle_frame({"type": "user_status", "data": {"userId": 2, "isOnline": True}})
    unsubscribe()
    await client._handle_frame({"type": "user_status", "data": {"userId": 2, "isOnline": False}})

    assert seen == [{"userId": 2, "isOnline": True}]


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_others(client):
    seen: list[str] = []

    def broken(_data: dict[str, Any]) -> None:
        raise RuntimeError("boom")

    client.on("messages_read", broken)
    client.on("messages_read", lambda data: seen.append("ok"))

    await client._handle_frame({"type": "messages_read", "data": {"conversationId": 7}})

    assert seen == ["ok"]


@pytest.mark.asyncio
async def test_send_message_resolves_on_ack(client):
    def ack(frame: dict[str, Any]) -> dict[str, Any]:
        return {
            "type": "message_sent",
            "data": message(requestId=frame["data"]["requestId"]),
        }

    client._ws = FakeClientWebSocket(client, reply=ack)

    result = await client.send_message(7, "hi")

    [sent] = client._ws.sent
    assert sent["type"] == "send_message"
    assert sent["data"]["conversationId"] == 7
    assert result["id"] == 1
    assert client._pending == {}


@pytest.mark.asyncio
async def test_send_message_raises_on_error_event(client):
    def reject(frame: dict[str, Any]) -> dict[str, Any]:
        return {
            "type": "error",
            "data": {
                "code": "not_found",
                "message": "Conversation not found or you are not a participant",
                "requestId": frame["data"]["requestId"],
            },
        }

    client._ws = FakeClientWebSocket(client, reply=reject)

    with pytest.raises(SendFailedError) as exc_info:
        await client.send_message(7, "hi")

    assert exc_info.value.code == "not_found"


@pytest.mark.asyncio
async def test_send_message_times_out_without_ack(client):
    client._ws = FakeClientWebSocket(client)

    with pytest.raises(SendTimeoutError):
        await client.send_message(7, "hi")

    assert client._pending == {}


@pytest.mark.asyncio
async def test_rooms_are_remembered_for_rejoin(client):
    client._ws = FakeClientWebSocket(client)

    await client.join(7)
    await client.join(8)
    await client.leave(8)

    assert client._rooms == {7}
    assert [f["type"] for f in client._ws.sent] == [
        "join_conversation", "join_conversation", "leave_conversation",
    ]


@pytest.mark.asyncio
async def test_emit_requires_connection(client):
    with pytest.raises(ChatClientError):
        await client._emit("typing", {"conversationId": 7})
