# src/ecoroute/models/chat_message.py
"""Models describing chat messages exchanged in rooms or privately."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ecoroute.db.session import Base
from ecoroute.db.time import utcnow

MESSAGE_STATUS_SENT = "sent"
MESSAGE_STATUS_DELIVERED = "delivered"
MESSAGE_STATUS_READ = "read"
# Ordered; a message only ever moves to the right.
MESSAGE_STATUSES = (MESSAGE_STATUS_SENT, MESSAGE_STATUS_DELIVERED, MESSAGE_STATUS_READ)

DEFAULT_ROOM = "general"


class ChatMessage(Base):
    """Chat message scoped to a room, optionally addressed to one recipient."""

    __tablename__ = "chat_messages"
    __table_args__ = (
        Index("ix_chat_messages_room_created", "room", "created_at"),
        Index("ix_chat_messages_sender_created", "sender_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    room: Mapped[str] = mapped_column(String(100), nullable=False, default=DEFAULT_ROOM)

    sender_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    # Display name frozen at send time; later renames do not touch history.
    sender_name: Mapped[str] = mapped_column(Text, nullable=False)
    recipient_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id"),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=MESSAGE_STATUS_SENT)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    @property
    def is_private(self) -> bool:
        """Return True for messages addressed to a single recipient."""
        return self.recipient_id is not None
