"""
civiclink/api/presence.py

Purpose: Connection tracking endpoints

- WebSocket endpoint that registers the socket for the session's lifetime
- REST hooks for an external socket gateway reporting connect/disconnect
"""

import uuid

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from civiclink.api.deps import require_admin
from civiclink.core.exceptions import AuthenticationError
from civiclink.core.logging import get_logger
from civiclink.schemas.user import ConnectEvent, DisconnectEvent, PLATFORMS
from civiclink.services import presence_service
from civiclink.services.identity_provider import get_identity_provider

logger = get_logger(__name__)
router = APIRouter()


@router.post("/presence/connect", dependencies=[Depends(require_admin)])
async def connect_event(event: ConnectEvent):
    connected = await presence_service.connect(event.user, event.socket_id, event.platform)
    return {"connected": connected}


@router.post("/presence/disconnect", dependencies=[Depends(require_admin)])
async def disconnect_event(event: DisconnectEvent):
    disconnected = await presence_service.disconnect(event.socket_id)
    return {"disconnected": disconnected}


@router.websocket("/ws/presence")
async def presence_socket(
    websocket: WebSocket,
    token: str = Query(...),
    platform: str = Query("web"),
):
    """
    Keeps the caller marked online while the socket stays open.
    Clients may send "ping" to receive "pong".
    """
    if platform not in PLATFORMS:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        firebase_id = await get_identity_provider().verify_id_token(token)
    except AuthenticationError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    socket_id = uuid.uuid4().hex
    await presence_service.connect(firebase_id, socket_id, platform)
    await websocket.send_json({"socket_id": socket_id})

    try:
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.debug(f"WebSocket {socket_id} closed by client")
    finally:
        await presence_service.disconnect(socket_id)
