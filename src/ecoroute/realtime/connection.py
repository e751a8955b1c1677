"""WebSocket-backed connection handle used by the gateway."""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

from fastapi import WebSocket


class WebSocketConnection:
    """Frames gateway events as ``{"event": ..., "data": ...}`` JSON messages.

    Sends are serialized so events reach the client in emission order.
    """

    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self.id = connection_id or uuid.uuid4().hex
        self.websocket = websocket
        self._send_lock = asyncio.Lock()

    async def send(self, event: str, data: Any) -> None:
        async with self._send_lock:
            await self.websocket.send_json({"event": event, "data": data})

    def __repr__(self) -> str:
        return f"WebSocketConnection(id={self.id!r})"
