"""
Realtime endpoints.

- WS /ws?token=<jwt>: authenticated realtime connection
- GET /presence: online users
- GET /presence/{userId}: online status for one user

Frames on the socket are JSON objects tagged by ``type``; see
``collabhub.realtime.protocol`` for the full vocabulary.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, WebSocket, WebSocketDisconnect

from collabhub.core.auth import authenticate_token, get_current_user
from collabhub.realtime import RealtimeHub
from collabhub.realtime.protocol import UserSummary

log = structlog.get_logger()

router = APIRouter()


class WebSocketChannel:
    """Adapts a FastAPI WebSocket to the registry's channel handle."""

    def __init__(self, websocket: WebSocket):
        self._websocket = websocket
        self._id = uuid.uuid4().hex

    @property
    def id(self) -> str:
        return self._id

    async def send(self, payload: str) -> None:
        await self._websocket.send_text(payload)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        await self._websocket.close(code=code, reason=reason)


def get_hub(request: Request) -> RealtimeHub:
    return request.app.state.hub


# --- WebSocket Endpoint ---


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
):
    """
    Authenticated realtime connection.

    The session is registered only after the token resolves to an active
    user. Frames are handled one at a time, so a sender's messages are
    relayed in the order they were sent.
    """
    hub: RealtimeHub = websocket.app.state.hub

    try:
        user = await authenticate_token(token, hub.users)
    except HTTPException as exc:
        log.info("ws.authentication_failed", reason=exc.detail)
        await websocket.close(code=4001, reason="authentication_failed")
        return

    await websocket.accept()
    channel = WebSocketChannel(websocket)
    session = await hub.connect(user, channel)
    log.info("ws.connected", user_id=user.id, channel_id=channel.id)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
            # Binary frames go through the same parser and get INVALID_FRAME when unreadable.
            data = message.get("text")
            if data is None:
                data = message.get("bytes") or b""
            await hub.handle_frame(session, data)
    except WebSocketDisconnect as exc:
        log.info("ws.disconnected", user_id=user.id, channel_id=channel.id, code=exc.code)
    except Exception:
        log.exception("ws.connection_error", user_id=user.id, channel_id=channel.id)
    finally:
        await hub.disconnect(user.id, channel)


# --- Presence ---


@router.get("/presence")
async def list_presence(
    _user: UserSummary = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_hub),
):
    """Snapshot of every user with a live realtime connection."""
    return {"data": [session.to_dict() for session in hub.connected_users()]}


@router.get("/presence/{user_id}")
async def get_presence(
    user_id: str,
    _user: UserSummary = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_hub),
):
    return {"userId": user_id, "online": hub.is_online(user_id)}
