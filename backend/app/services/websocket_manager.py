"""
backend/app/services/websocket_manager.py

Purpose:
    Process-local WebSocket connection manager for the tip change feed.
    Events are plain invalidation signals ("tips.changed"); clients re-fetch
    the feed when they receive one.

Dependencies:
    - fastapi.WebSocket
    - app.config
    - app.utils
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fastapi import WebSocket

from app.config import settings
from app.utils import utcnow

logger = logging.getLogger("tipfeed.websocket_manager")

TIPS_CHANGED = "tips.changed"
_MAX_ERRORS = 200


class TooManyConnections(RuntimeError):
    pass


@dataclass
class ManagedConnection:
    connection_id: str
    user_id: str | None
    websocket: WebSocket
    connected_at: datetime
    event_types: set[str] = field(default_factory=set)


class WebSocketManager:
    def __init__(self, *, max_connections: int, heartbeat_seconds: int) -> None:
        self._max_connections = max(1, int(max_connections))
        self._heartbeat_seconds = max(1, int(heartbeat_seconds))
        self._connections: dict[str, ManagedConnection] = {}
        self._lock = asyncio.Lock()
        self._heartbeat_task: asyncio.Task | None = None
        self._running = False
        self._broadcast_total = 0
        self._send_failures = 0
        self._dropped_connections = 0
        self._last_errors: list[dict[str, Any]] = []

    @property
    def is_full(self) -> bool:
        return len(self._connections) >= self._max_connections

    async def start(self) -> None:
        async with self._lock:
            if self._running:
                return
            self._running = True
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(), name="ws_heartbeat")
            logger.info("WebSocket manager started")

    async def stop(self) -> None:
        async with self._lock:
            if not self._running:
                return
            self._running = False
            if self._heartbeat_task is not None:
                self._heartbeat_task.cancel()
                try:
                    await self._heartbeat_task
                except asyncio.CancelledError:
                    pass
                self._heartbeat_task = None
            self._connections.clear()
            logger.info("WebSocket manager stopped")

    async def connect(
        self,
        websocket: WebSocket,
        *,
        user_id: str | None = None,
        event_types: list[str] | None = None,
    ) -> str:
        async with self._lock:
            if len(self._connections) >= self._max_connections:
                raise TooManyConnections("max_connections_exceeded")
            await websocket.accept()
            connection_id = str(uuid.uuid4())
            self._connections[connection_id] = ManagedConnection(
                connection_id=connection_id,
                user_id=user_id,
                websocket=websocket,
                connected_at=utcnow(),
                event_types={str(t) for t in (event_types or []) if str(t).strip()},
            )
        logger.debug("WS client connected (%d total)", len(self._connections))
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        async with self._lock:
            self._connections.pop(connection_id, None)

    async def broadcast(self, *, event_type: str, data: dict[str, Any]) -> int:
        """Send an event to every interested connection; drop the ones that fail."""
        message = {"type": event_type, "data": data}

        async with self._lock:
            connections = list(self._connections.values())

        delivered = 0
        dead_ids: list[str] = []
        for conn in connections:
            if conn.event_types and event_type not in conn.event_types:
                continue
            try:
                await conn.websocket.send_json(message)
                delivered += 1
            except Exception as exc:
                dead_ids.append(conn.connection_id)
                self._send_failures += 1
                self._append_error({
                    "ts": utcnow().isoformat(),
                    "connection_id": conn.connection_id,
                    "event_type": event_type,
                    "error": str(exc),
                })

        for conn_id in dead_ids:
            await self.disconnect(conn_id)
            self._dropped_connections += 1

        self._broadcast_total += 1
        return delivered

    async def publish_tip_change(self, tip_id: str, op: str) -> int:
        """Invalidate client tip lists. Never fails the calling write."""
        try:
            return await self.broadcast(event_type=TIPS_CHANGED, data={"tip_id": tip_id, "op": op})
        except Exception:
            logger.exception("Tip change broadcast failed: tip=%s op=%s", tip_id, op)
            return 0

    def stats(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "active_connections": len(self._connections),
            "max_connections": self._max_connections,
            "heartbeat_seconds": self._heartbeat_seconds,
            "broadcast_total": self._broadcast_total,
            "send_failures": self._send_failures,
            "dropped_connections": self._dropped_connections,
            "last_errors": list(self._last_errors),
        }

    async def _heartbeat_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._heartbeat_seconds)
            async with self._lock:
                connections = list(self._connections.values())
            dead_ids: list[str] = []
            for conn in connections:
                try:
                    await conn.websocket.send_json({"type": "ping", "data": {"ts": utcnow().isoformat()}})
                except Exception:
                    dead_ids.append(conn.connection_id)
            for conn_id in dead_ids:
                await self.disconnect(conn_id)
                self._dropped_connections += 1

    def _append_error(self, error: dict[str, Any]) -> None:
        self._last_errors.append(error)
        if len(self._last_errors) > _MAX_ERRORS:
            self._last_errors = self._last_errors[-_MAX_ERRORS:]


websocket_manager = WebSocketManager(
    max_connections=settings.WS_MAX_CONNECTIONS,
    heartbeat_seconds=settings.WS_HEARTBEAT_SECONDS,
)
