"""Persistence helpers for chat messages."""
from __future__ import annotations

from datetime import datetime
from typing import Sequence

from sqlalchemy import desc, or_
from sqlalchemy.orm import Session

from ecoroute.core.errors import MessageValidationError
from ecoroute.db.time import utcnow
from ecoroute.models import ChatMessage, User
from ecoroute.models.chat_message import (
    DEFAULT_ROOM,
    MESSAGE_STATUS_DELIVERED,
    MESSAGE_STATUS_READ,
    MESSAGE_STATUSES,
)

ROOM_MAX_LENGTH = 100
DEFAULT_HISTORY_LIMIT = 50

__all__ = [
    "create_message",
    "get_message",
    "get_room_history",
    "advance_status",
    "mark_delivered",
    "mark_read",
]


def create_message(
    db: Session,
    sender: User,
    content: str | None,
    room: str | None = None,
    recipient_id: int | None = None,
) -> ChatMessage:
    """Persist a chat message in a single commit.

    The sender's display name is copied onto the message so later renames do
    not rewrite history.

    Raises:
        MessageValidationError: If the content is empty or the room name is invalid.
    """
    text = (content or "").strip()
    if not text:
        raise MessageValidationError("Message content is required")

    room_name = (room or DEFAULT_ROOM).strip()
    if not room_name or len(room_name) > ROOM_MAX_LENGTH:
        raise MessageValidationError("Invalid room name")

    message = ChatMessage(
        content=text,
        room=room_name,
        sender_id=sender.id,
        sender_name=sender.name,
        recipient_id=recipient_id,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def get_message(db: Session, message_id: int) -> ChatMessage | None:
    """Return a single message by primary key."""
    return db.query(ChatMessage).filter(ChatMessage.id == message_id).first()


def get_room_history(
    db: Session,
    room: str,
    limit: int = DEFAULT_HISTORY_LIMIT,
    before: datetime | None = None,
    viewer_id: int | None = None,
) -> Sequence[ChatMessage]:
    """Return the most recent messages of a room visible to a viewer, newest first.

    Private messages are included only when the viewer sent or received them.

    Args:
        db: Database session
        room: Room name
        limit: Maximum number of messages returned
        before: Optional exclusive upper bound on ``created_at`` for paging back
        viewer_id: User reading the history; ``None`` sees public messages only

    Returns:
        At most ``limit`` messages ordered by descending creation time
    """
    query = db.query(ChatMessage).filter(ChatMessage.room == room)
    if viewer_id is None:
        query = query.filter(ChatMessage.recipient_id.is_(None))
    else:
        query = query.filter(
            or_(
                ChatMessage.recipient_id.is_(None),
                ChatMessage.recipient_id == viewer_id,
                ChatMessage.sender_id == viewer_id,
            )
        )
    if before is not None:
        query = query.filter(ChatMessage.created_at < before)

    return (
        query.order_by(desc(ChatMessage.created_at), desc(ChatMessage.id))
        .limit(max(1, limit))
        .all()
    )


def advance_status(db: Session, message_id: int, status: str) -> ChatMessage | None:
    """Move a message forward to ``status``; earlier or equal targets are no-ops.

    ``read_at`` is stamped only on the transition into ``read``.
    """
    if status not in MESSAGE_STATUSES:
        raise ValueError(f"Unknown message status: {status}")

    message = get_message(db, message_id)
    if message is None:
        return None

    if MESSAGE_STATUSES.index(status) <= MESSAGE_STATUSES.index(message.status):
        return message

    message.status = status
    if status == MESSAGE_STATUS_READ and message.read_at is None:
        message.read_at = utcnow()
    db.commit()
    db.refresh(message)
    return message


def mark_delivered(db: Session, message_id: int) -> ChatMessage | None:
    """Record that a message reached its recipient's live connection."""
    return advance_status(db, message_id, MESSAGE_STATUS_DELIVERED)


def mark_read(db: Session, message_id: int) -> ChatMessage | None:
    """Mark a message as read. Repeated calls leave ``read_at`` untouched."""
    return advance_status(db, message_id, MESSAGE_STATUS_READ)
