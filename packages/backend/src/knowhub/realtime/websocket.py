"""WebSocket endpoint — realtime event delivery to frontend clients.

Learn: Each browser tab connects to /ws?token=JWT. The handler:
1. Authenticates via JWT query param (required outside development)
2. Registers the connection with the ConnectionManager
3. Waits for a joinTeam frame before the connection receives anything
4. Always unregisters on the way out, however the socket died

Client frames:
    {"event": "joinTeam", "data": "<teamId>"}   no acknowledgment
    {"event": "ping"}                           → {"event": "pong"}

Server frames mirror the broker channel names:
    {"event": "document:new", "data": {...}}
"""

import json

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from knowhub.auth.dependencies import identity_from_token
from knowhub.auth.jwt import TokenError
from knowhub.config import settings
from knowhub.events.types import JOIN_TEAM, PING, PONG
from knowhub.realtime.connections import ConnectionManager, WebSocketConnection

logger = structlog.get_logger()
router = APIRouter()


@router.websocket("/ws")
async def team_websocket(websocket: WebSocket):
    """Long-lived connection carrying one team's realtime events."""
    # ── Authentication ──────────────────────────────────────
    token = websocket.query_params.get("token")
    identity = None

    if not token and settings.environment != "development":
        await websocket.close(code=4001, reason="Authentication required")
        return

    if token:
        try:
            identity = identity_from_token(token)
        except TokenError:
            await websocket.close(code=4001, reason="Invalid or expired token")
            return

    # ── Connection accepted ─────────────────────────────────
    await websocket.accept()

    manager: ConnectionManager = websocket.app.state.manager
    conn = WebSocketConnection(websocket, identity)
    manager.connect(conn)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if text is None:
                # Binary frames are not part of the protocol
                continue
            try:
                msg = json.loads(text)
            except json.JSONDecodeError:
                continue
            if not isinstance(msg, dict):
                continue

            event = msg.get("event")
            if event == JOIN_TEAM:
                await manager.join(conn, msg.get("data"))
            elif event == PING:
                await websocket.send_json({"event": PONG})
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(conn)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
