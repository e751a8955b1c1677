"""Presence and real-time gateway.

This module provides the RealtimeGateway class that sits between live client
connections and the persisted stores. It handles:

- Admission of connections presenting a bearer token
- Presence tracking and ``online-users`` snapshots
- Room membership, history replay and typing relays
- Chat message persistence and fan-out (room broadcast or private push)
- Notification pushes and admin broadcasts backed by the job queue

Handlers never raise into the transport: failures are answered on the
originating connection or logged, and never affect other connections.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ecoroute.core.errors import AdmissionError, MessageValidationError
from ecoroute.core.security import decode_access_token
from ecoroute.core.settings import settings
from ecoroute.db.session import SessionLocal
from ecoroute.db.time import utcnow
from ecoroute.models import User
from ecoroute.realtime.presence import ConnectedUser, Connection, PresenceRegistry
from ecoroute.schemas.chat import ChatMessageResponse, JoinRoomPayload, SendMessagePayload, TypingPayload
from ecoroute.schemas.notification import BroadcastPayload
from ecoroute.schemas.user import OnlineUser
from ecoroute.services import message_service, notification_service
from ecoroute.services.queue_service import QueueService, get_queue_service

# Configure logger for this module
logger = logging.getLogger(__name__)

T = TypeVar("T")

# Server -> client events
EVENT_ONLINE_USERS = "online-users"
EVENT_MESSAGE_HISTORY = "message-history"
EVENT_NEW_MESSAGE = "new-message"
EVENT_MESSAGE_SENT = "message-sent"
EVENT_MESSAGE_ERROR = "message-error"
EVENT_NOTIFICATION = "notification"
EVENT_USER_TYPING = "user-typing"

SEND_FAILED = "Error sending message"


class RealtimeGateway:
    """Routes events between authenticated connections and the stores."""

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        queue_service: QueueService | None = None,
        registry: PresenceRegistry | None = None,
        history_limit: int | None = None,
    ) -> None:
        self._session_factory = session_factory or SessionLocal
        self._queue_service = queue_service
        self.registry = registry or PresenceRegistry()
        self.history_limit = history_limit or settings.chat_history_limit
        self._handlers: dict[str, Callable[[Connection, Any], Awaitable[None]]] = {
            "join-room": self.join_room,
            "leave-room": self.leave_room,
            "send-message": self.send_message,
            "mark-read": self.mark_read,
            "typing": self.typing,
            "broadcast-notification": self.broadcast_notification,
            "mark-notification-read": self.mark_notification_read,
        }

    @property
    def queue_service(self) -> QueueService:
        if self._queue_service is None:
            self._queue_service = get_queue_service()
        return self._queue_service

    async def _db(self, fn: Callable[..., T], *args: Any) -> T:
        """Run ``fn(db, *args)`` in a worker thread with a fresh session."""

        def _call() -> T:
            with self._session_factory() as db:
                return fn(db, *args)

        return await asyncio.to_thread(_call)

    async def _emit(self, connection: Connection, event: str, data: Any) -> bool:
        try:
            await connection.send(event, data)
        except Exception as e:  # noqa: BLE001 - a dead peer must not break fan-out
            logger.warning("Could not emit %s to connection %s: %s", event, connection.id, e)
            return False
        return True

    async def _emit_many(self, connections: list[Connection], event: str, data: Any) -> int:
        delivered = 0
        for connection in connections:
            if await self._emit(connection, event, data):
                delivered += 1
        return delivered

    # Admission and lifecycle

    async def admit(self, token: str | None) -> ConnectedUser:
        """Verify a handshake credential and resolve it to an active user.

        Raises:
            AdmissionError: If the token is invalid or expired, or the user is
                unknown or inactive.
        """
        user_id = decode_access_token(token)

        def _lookup(db: Session, uid: int) -> ConnectedUser | None:
            user = db.get(User, uid)
            if user is None or not user.is_active:
                return None
            return ConnectedUser(id=user.id, name=user.name, role=user.role)

        principal = await self._db(_lookup, user_id)
        if principal is None:
            raise AdmissionError("User not found or inactive")
        return principal

    async def connect(self, connection: Connection, user: ConnectedUser) -> None:
        """Register an admitted connection and announce the new presence set."""
        self.registry.register(connection, user)
        logger.info("Connection %s admitted for user %s (%s)", connection.id, user.id, user.name)
        await self.broadcast_online_users()

    async def disconnect(self, connection: Connection) -> None:
        """Drop a connection from presence and announce the new presence set."""
        user = self.registry.principal(connection)
        self.registry.unregister(connection)
        logger.info(
            "Connection %s closed (user %s)",
            connection.id,
            user.id if user is not None else "unknown",
        )
        await self.broadcast_online_users()

    def online_users(self) -> list[dict[str, Any]]:
        return [
            OnlineUser(user_id=user.id, name=user.name, role=user.role).model_dump(by_alias=True)
            for user in self.registry.online_users()
        ]

    async def broadcast_online_users(self) -> None:
        await self._emit_many(self.registry.all_connections(), EVENT_ONLINE_USERS, self.online_users())

    def is_user_online(self, user_id: int) -> bool:
        return self.registry.is_online(user_id)

    def online_count(self) -> int:
        return self.registry.online_count()

    async def handle(self, connection: Connection, event: str, data: Any) -> None:
        """Dispatch one client event. Events from unregistered connections are dropped."""
        if self.registry.principal(connection) is None:
            logger.warning("Dropping %s from unadmitted connection %s", event, connection.id)
            return
        handler = self._handlers.get(event)
        if handler is None:
            logger.debug("Ignoring unknown event %r from %s", event, connection.id)
            return
        await handler(connection, data)

    # Rooms

    async def join_room(self, connection: Connection, data: Any) -> None:
        """Subscribe to a room and reply with its recent history, newest first."""
        try:
            if isinstance(data, str):
                request = JoinRoomPayload(room=data)
            else:
                request = JoinRoomPayload.model_validate(data)
        except ValidationError:
            logger.debug("Invalid join-room payload from %s: %r", connection.id, data)
            return

        room = request.room.strip()
        if not room:
            return
        self.registry.join(connection, room)
        user = self.registry.principal(connection)
        logger.info("%s joined room %s", user.name if user else connection.id, room)

        limit = min(request.limit or self.history_limit, self.history_limit)
        try:
            messages = await self.room_history(
                room,
                limit=limit,
                before=request.before,
                viewer_id=user.id if user else None,
            )
        except SQLAlchemyError as e:
            logger.error("Could not load history of room %s: %s", room, e)
            messages = []
        await self._emit(connection, EVENT_MESSAGE_HISTORY, {"room": room, "messages": messages})

    async def room_history(
        self,
        room: str,
        limit: int | None = None,
        before: datetime | None = None,
        viewer_id: int | None = None,
    ) -> list[dict[str, Any]]:
        def _load(db: Session) -> list[dict[str, Any]]:
            rows = message_service.get_room_history(
                db, room, limit or self.history_limit, before, viewer_id=viewer_id
            )
            return [ChatMessageResponse.model_validate(row).to_wire() for row in rows]

        return await self._db(_load)

    async def leave_room(self, connection: Connection, data: Any) -> None:
        room = data.get("room") if isinstance(data, dict) else data
        if not isinstance(room, str):
            return
        self.registry.leave(connection, room.strip())
        user = self.registry.principal(connection)
        logger.info("%s left room %s", user.name if user else connection.id, room)

    async def typing(self, connection: Connection, data: Any) -> None:
        """Relay a typing indicator to everyone else in the room. Nothing is stored."""
        try:
            payload = TypingPayload.model_validate(data)
        except ValidationError:
            return
        user = self.registry.principal(connection)
        if user is None:
            return
        others = [c for c in self.registry.connections_in_room(payload.room) if c.id != connection.id]
        await self._emit_many(
            others,
            EVENT_USER_TYPING,
            {"userId": user.id, "name": user.name, "isTyping": payload.is_typing},
        )

    # Messages

    async def send_message(self, connection: Connection, data: Any) -> None:
        """Persist a chat message, then fan it out.

        Private messages go only to the recipient's live connection (if any)
        and always queue a notification for the recipient. Room messages go to
        every connection joined to the room. Nothing is fanned out unless the
        message was stored.
        """
        sender = self.registry.principal(connection)
        if sender is None:
            return
        try:
            payload = SendMessagePayload.model_validate(data)
        except ValidationError:
            await self._emit(connection, EVENT_MESSAGE_ERROR, {"error": "Invalid message payload"})
            return

        def _persist(db: Session) -> dict[str, Any]:
            author = db.get(User, sender.id)
            if author is None:
                raise MessageValidationError("Sender no longer exists")
            message = message_service.create_message(
                db,
                author,
                payload.message,
                room=payload.room,
                recipient_id=payload.recipient,
            )
            return ChatMessageResponse.model_validate(message).to_wire()

        try:
            record = await self._db(_persist)
        except MessageValidationError as e:
            await self._emit(connection, EVENT_MESSAGE_ERROR, {"error": str(e)})
            return
        except SQLAlchemyError as e:
            logger.error("Error persisting message from user %s: %s", sender.id, e)
            await self._emit(connection, EVENT_MESSAGE_ERROR, {"error": SEND_FAILED})
            return

        if payload.recipient is not None:
            await self._deliver_private(sender, payload.recipient, record)
        else:
            await self._emit_many(
                self.registry.connections_in_room(record["room"]),
                EVENT_NEW_MESSAGE,
                record,
            )

        await self._emit(connection, EVENT_MESSAGE_SENT, {"success": True, "message": record})

    async def _deliver_private(
        self,
        sender: ConnectedUser,
        recipient_id: int,
        record: dict[str, Any],
    ) -> None:
        target = self.registry.connection_for(recipient_id)
        if target is not None and await self._emit(target, EVENT_NEW_MESSAGE, record):
            try:
                await self._db(message_service.mark_delivered, record["id"])
            except SQLAlchemyError as e:
                logger.warning("Could not mark message %s delivered: %s", record["id"], e)

        notification = notification_service.message_notification(
            recipient_id,
            sender.name,
            record["content"],
            {"senderId": sender.id, "room": record["room"], "messageId": record["id"]},
        )
        try:
            await asyncio.to_thread(self.queue_service.enqueue_notification, notification)
        except SQLAlchemyError as e:
            logger.error("Could not queue message notification for user %s: %s", recipient_id, e)

    async def mark_read(self, connection: Connection, data: Any) -> None:
        """Persist a read receipt. Idempotent; the sender is not notified."""
        user = self.registry.principal(connection)
        message_id = data.get("messageId") if isinstance(data, dict) else data
        if user is None or not isinstance(message_id, int):
            return

        def _mark(db: Session) -> None:
            message = message_service.get_message(db, message_id)
            if message is None or message.sender_id == user.id:
                return
            if message.recipient_id is not None and message.recipient_id != user.id:
                return
            message_service.mark_read(db, message_id)

        try:
            await self._db(_mark)
        except SQLAlchemyError as e:
            logger.error("Error marking message %s as read: %s", message_id, e)

    # Notifications

    async def notify_user(self, user_id: int, notification: dict[str, Any]) -> bool:
        """Push a notification to ``user_id`` if online; return whether it was sent."""
        target = self.registry.connection_for(user_id)
        if target is None:
            return False
        return await self._emit(target, EVENT_NOTIFICATION, notification)

    async def notify_all(self, notification: dict[str, Any]) -> int:
        return await self._emit_many(self.registry.all_connections(), EVENT_NOTIFICATION, notification)

    async def broadcast_notification(self, connection: Connection, data: Any) -> None:
        """Admin-only fan-out to everyone online; a no-op for other roles.

        A persisted copy is queued for each user online at the time of the
        broadcast. Offline users get nothing.
        """
        user = self.registry.principal(connection)
        if user is None or not user.is_admin:
            return
        try:
            payload = BroadcastPayload.model_validate(data)
        except ValidationError:
            logger.debug("Invalid broadcast payload from %s: %r", connection.id, data)
            return

        broadcast_id = uuid.uuid4().hex
        await self.notify_all(
            {
                "id": broadcast_id,
                "type": payload.type,
                "title": payload.title,
                "message": payload.message,
                "timestamp": utcnow().isoformat(),
            }
        )

        for user_id in self.registry.online_user_ids():
            try:
                await asyncio.to_thread(
                    self.queue_service.create_notification,
                    user_id,
                    "system",
                    payload.title,
                    payload.message,
                    {"kind": payload.type, "broadcastId": broadcast_id},
                    push=False,
                )
            except SQLAlchemyError as e:
                logger.error("Could not queue broadcast notification for user %s: %s", user_id, e)

    async def mark_notification_read(self, connection: Connection, data: Any) -> None:
        """Persist a notification read flag sent by the client's optimistic update."""
        user = self.registry.principal(connection)
        notification_id = data.get("notificationId") if isinstance(data, dict) else data
        if user is None or not isinstance(notification_id, int):
            return
        try:
            await self._db(notification_service.mark_read, user.id, notification_id)
        except SQLAlchemyError as e:
            logger.error("Error marking notification %s as read: %s", notification_id, e)


_gateway: RealtimeGateway | None = None


def get_gateway() -> RealtimeGateway:
    """Return the process-wide gateway."""
    global _gateway
    if _gateway is None:
        _gateway = RealtimeGateway()
    return _gateway
