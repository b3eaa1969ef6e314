from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from marketplace_chat.config import settings
from marketplace_chat.domain.value_objects.enums import ClientEvent, ServerEvent
from marketplace_chat.infrastructure.ws.connection import Connection
from marketplace_chat.infrastructure.ws.gateway import Gateway

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    token: str | None = Query(None),
) -> None:
    gateway: Gateway = websocket.app.state.gateway
    conn = await gateway.on_connect(websocket)

    if token:
        # Same path as an explicit authenticate event, errors included.
        await gateway.handle(conn, ClientEvent.AUTHENTICATE, {"token": token})

    heartbeat_task = asyncio.create_task(
        _heartbeat(conn), name=f"ws-heartbeat-{conn.id}",
    )
    try:
        await _read_loop(websocket, gateway, conn)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error on %s", conn.id)
    finally:
        heartbeat_task.cancel()
        await asyncio.wait({heartbeat_task})
        await gateway.on_disconnect(conn)


async def _heartbeat(conn: Connection) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    while True:
        await asyncio.sleep(interval)
        if not await conn.send(ServerEvent.PONG, {}):
            return


async def _read_loop(ws: WebSocket, gateway: Gateway, conn: Connection) -> None:
    while True:
        raw = await ws.receive_text()
        await gateway.dispatch(conn, raw)
