"""Client side of the real-time channel.

``RealtimeSession`` keeps one authenticated connection per logged-in user
and mirrors server pushes into local state (online users, notifications and
per-room messages) that a UI can render. It reconnects a bounded number of
times after an unexpected drop and reports ``reconnecting`` meanwhile. A
handshake the server refuses (bad or expired token) is not retried.

Usage:
    session = RealtimeSession("ws://localhost:8000/api/v1/ws")
    await session.start(user, token)
    await session.join_room("general")
    await session.send_message("general", "hello")
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Mapping
from typing import Any
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

logger = logging.getLogger(__name__)

STATUS_IDLE = "idle"
STATUS_CONNECTING = "connecting"
STATUS_CONNECTED = "connected"
STATUS_RECONNECTING = "reconnecting"
STATUS_DISCONNECTED = "disconnected"

DEFAULT_RECONNECT_ATTEMPTS = 5
DEFAULT_RECONNECT_DELAY = 1.0
DEFAULT_OPEN_TIMEOUT = 10.0
# Handshake statuses meaning the credential was refused
REJECTED_HANDSHAKE_STATUSES = (401, 403)


def _key(record: Mapping[str, Any]) -> Any:
    return record.get("id", record.get("_id"))


class RealtimeSession:
    """Bridges server-pushed events into client-local state."""

    def __init__(
        self,
        url: str,
        *,
        reconnect_attempts: int = DEFAULT_RECONNECT_ATTEMPTS,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        open_timeout: float = DEFAULT_OPEN_TIMEOUT,
        on_update: Callable[[str], None] | None = None,
    ) -> None:
        self.url = url
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.open_timeout = open_timeout
        self.on_update = on_update

        self.status = STATUS_IDLE
        self.user: Mapping[str, Any] | None = None
        self.online_users: list[dict[str, Any]] = []
        self.notifications: list[dict[str, Any]] = []
        self.messages: dict[str, list[dict[str, Any]]] = {}
        self.typing: dict[Any, dict[str, Any]] = {}
        self.last_error: str | None = None

        self._token: str | None = None
        self._ws: Any = None
        self._task: asyncio.Task[None] | None = None
        self._intentional_close = False

    # State

    @property
    def is_connected(self) -> bool:
        return self.status == STATUS_CONNECTED and self._ws is not None

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.get("read"))

    def _set_status(self, status: str) -> None:
        if status != self.status:
            logger.debug("Real-time session status %s -> %s", self.status, status)
            self.status = status
            self._changed("status")

    def _changed(self, what: str) -> None:
        if self.on_update is not None:
            self.on_update(what)

    def handle_event(self, event: str, data: Any) -> None:
        """Apply one server event to local state."""
        if event == "online-users":
            self.online_users = list(data or [])
            self._changed("online-users")
        elif event == "notification":
            if not isinstance(data, dict):
                return
            key = _key(data)
            if key is not None and any(_key(n) == key for n in self.notifications):
                return
            self.notifications.insert(0, dict(data))
            self._changed("notifications")
        elif event == "new-message":
            if not isinstance(data, dict):
                return
            room_messages = self.messages.setdefault(data.get("room", ""), [])
            key = _key(data)
            if key is not None and any(_key(m) == key for m in room_messages):
                return
            room_messages.append(dict(data))
            self._changed("messages")
        elif event == "message-history":
            if not isinstance(data, dict):
                return
            history = data.get("messages", data.get("history")) or []
            self.messages[data.get("room", "")] = list(history)
            self._changed("messages")
        elif event == "message-error":
            self.last_error = (data or {}).get("error") if isinstance(data, dict) else str(data)
            self._changed("error")
        elif event == "user-typing":
            if isinstance(data, dict):
                if data.get("isTyping"):
                    self.typing[data.get("userId")] = data
                else:
                    self.typing.pop(data.get("userId"), None)
                self._changed("typing")

    # Connection lifecycle

    def _connect_uri(self) -> str:
        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}{urlencode({'token': self._token or ''})}"

    async def start(self, user: Mapping[str, Any] | None, token: str | None) -> bool:
        """Open the session. Without both a user and a token nothing happens."""
        if not user or not token:
            return False
        if self._task is not None and not self._task.done():
            await self.stop()

        self.user = user
        self._token = token
        self._intentional_close = False
        self._task = asyncio.create_task(self._run())
        return True

    async def stop(self) -> None:
        """Close the session on logout or credential loss; no reconnection follows."""
        self._intentional_close = True
        if self._ws is not None:
            await self._ws.close()
        if self._task is not None:
            await self._task
            self._task = None
        self._set_status(STATUS_DISCONNECTED)

    async def _run(self) -> None:
        failures = 0
        self._set_status(STATUS_CONNECTING)
        while not self._intentional_close:
            try:
                async with websockets.connect(self._connect_uri(), open_timeout=self.open_timeout) as ws:
                    self._ws = ws
                    failures = 0
                    self._set_status(STATUS_CONNECTED)
                    async for raw in ws:
                        await self._dispatch(raw)
            except InvalidStatus as e:
                if e.response.status_code in REJECTED_HANDSHAKE_STATUSES:
                    logger.error("Real-time handshake rejected: %s", e)
                    self.last_error = str(e)
                    self._set_status(STATUS_DISCONNECTED)
                    return
                logger.warning("Real-time connection lost: %s", e)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.warning("Real-time connection lost: %s", e)
            finally:
                self._ws = None

            if self._intentional_close:
                break
            failures += 1
            if failures > self.reconnect_attempts:
                logger.error("Giving up after %d reconnection attempt(s)", self.reconnect_attempts)
                self._set_status(STATUS_DISCONNECTED)
                return
            self._set_status(STATUS_RECONNECTING)
            await asyncio.sleep(self.reconnect_delay)

    async def _dispatch(self, raw: str | bytes) -> None:
        try:
            frame = json.loads(raw)
        except ValueError:
            logger.debug("Ignoring malformed frame")
            return
        if not isinstance(frame, dict):
            return
        event, data = frame.get("event"), frame.get("data")
        if event == "ping":
            await self._emit("pong", data)
            return
        self.handle_event(event, data)

    async def _emit(self, event: str, data: Any) -> bool:
        if not self.is_connected:
            logger.warning("Socket not connected; dropping %s", event)
            return False
        try:
            await self._ws.send(json.dumps({"event": event, "data": data}))
        except ConnectionClosed:
            return False
        return True

    # Operations exposed to the UI

    async def send_message(self, room: str, message: str, recipient: int | None = None) -> bool:
        payload: dict[str, Any] = {"room": room, "message": message}
        if recipient is not None:
            payload["recipient"] = recipient
        self.last_error = None
        return await self._emit("send-message", payload)

    async def join_room(self, room: str) -> bool:
        return await self._emit("join-room", room)

    async def leave_room(self, room: str) -> bool:
        return await self._emit("leave-room", room)

    async def set_typing(self, room: str, is_typing: bool) -> bool:
        return await self._emit("typing", {"room": room, "isTyping": is_typing})

    async def send_notification(self, title: str, message: str, kind: str = "info") -> bool:
        """Ask the server to broadcast a notification; ignored unless the user is an admin."""
        return await self._emit(
            "broadcast-notification",
            {"title": title, "message": message, "type": kind},
        )

    async def mark_notification_read(self, notification_id: Any) -> None:
        """Flip the local read flag now and tell the server without waiting."""
        changed = False
        for notification in self.notifications:
            if _key(notification) == notification_id and not notification.get("read"):
                notification["read"] = True
                changed = True
        if changed:
            self._changed("notifications")
        # Transient broadcasts carry string ids and have no persisted row.
        if isinstance(notification_id, int):
            await self._emit("mark-notification-read", notification_id)

    def clear_notifications(self) -> None:
        self.notifications = []
        self._changed("notifications")
