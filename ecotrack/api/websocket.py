"""
WebSocket endpoint for the live bin channel.

Clients connect, receive one ``trashbin`` frame per existing bin, and then
both send mutation requests and receive every change broadcast by the hub.

Message Types (from client):
- trashbin: create a bin at latitude/longitude
- deletebin: remove bin by id
- editbin: move the bin found at oldLatitude/oldLongitude
- updatebinstatus: set status (empty, half, full) of bin by id
- location: informational client position

Message Types (to client):
- trashbin, deletebin, editbin, binstatus
"""

import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from ..realtime import BroadcastHub, ClientConnection

logger = logging.getLogger("ecotrack.api.websocket")

router = APIRouter(tags=["realtime"])


class WebSocketTransport:
    """Adapts a Starlette WebSocket to the connection transport interface."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def send_text(self, data: str) -> None:
        await self.websocket.send_text(data)

    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        if self.websocket.application_state == WebSocketState.CONNECTED:
            await self.websocket.close(code=code, reason=reason)


@router.websocket("/")
@router.websocket("/ws")
async def bins_websocket(websocket: WebSocket):
    """Live bin channel. Messages from one client are handled in arrival order."""
    hub: BroadcastHub = websocket.app.state.hub
    realtime = websocket.app.state.settings.realtime

    await websocket.accept()
    connection = ClientConnection(
        WebSocketTransport(websocket),
        queue_size=realtime.send_queue_size,
        send_timeout=realtime.send_timeout,
    )
    await hub.connect(connection)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue

            await hub.handle_message(connection, raw)

    except WebSocketDisconnect:
        pass

    except Exception as e:
        logger.exception("WebSocket error for %s: %s", connection.connection_id, e)

    finally:
        await hub.disconnect(connection)
