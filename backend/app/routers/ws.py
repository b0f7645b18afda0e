import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi import HTTPException

import app.database as _db
from app.services.auth_service import resolve_user_from_token
from app.services.websocket_manager import TooManyConnections, websocket_manager

logger = logging.getLogger("tipfeed.ws")

router = APIRouter()


def _token_from_ws(ws: WebSocket) -> Optional[str]:
    return ws.cookies.get("access_token") or ws.query_params.get("token")


def _event_types_from_ws(ws: WebSocket) -> list[str]:
    """``?event_types=a&event_types=b`` or ``?event_types=a,b``; empty means every event."""
    return [
        part.strip()
        for raw in ws.query_params.getlist("event_types")
        for part in raw.split(",")
        if part.strip()
    ]


async def _resolve_ws_user(token: Optional[str]) -> Optional[dict]:
    """Identify the viewer if a valid token is present; the feed itself is public."""
    if not token:
        return None
    try:
        return await resolve_user_from_token(token, _db.db)
    except HTTPException:
        return None


@router.websocket("/ws/tips")
async def websocket_tips(ws: WebSocket):
    """Push ``tips.changed`` invalidation events; clients re-fetch on receipt."""
    user = await _resolve_ws_user(_token_from_ws(ws))
    user_id = str(user["_id"]) if user else None

    if websocket_manager.is_full:
        await ws.close(code=4002, reason="Too many connections")
        return
    try:
        connection_id = await websocket_manager.connect(
            ws, user_id=user_id, event_types=_event_types_from_ws(ws),
        )
    except TooManyConnections:
        await ws.close(code=4002, reason="Too many connections")
        return

    try:
        while True:
            data = await ws.receive_text()
            if data == "ping":
                await ws.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        await websocket_manager.disconnect(connection_id)
