# src/ecoroute/models/notification.py
"""Persisted, user-directed notifications."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ecoroute.db.session import Base
from ecoroute.db.time import utcnow

NOTIFICATION_TYPES = (
    "welcome",
    "collection",
    "route",
    "point",
    "message",
    "achievement",
    "alert",
    "reminder",
    "system",
)
NOTIFICATION_COLORS = ("primary", "success", "warning", "danger", "info")
NOTIFICATION_PRIORITIES = ("low", "medium", "high", "urgent")

TITLE_MAX_LENGTH = 200
MESSAGE_MAX_LENGTH = 500


class Notification(Base):
    """Notification describing an event for one user.

    Independent of whether it was ever delivered live. Rows past
    ``expires_at`` are ignored by every read path and purged periodically.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_read_created", "user_id", "read", "created_at"),
        Index("ix_notifications_user_type_created", "user_id", "type", "created_at"),
        Index("ix_notifications_expires_at", "expires_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="system")
    title: Mapped[str] = mapped_column(String(TITLE_MAX_LENGTH), nullable=False)
    message: Mapped[str] = mapped_column(String(MESSAGE_MAX_LENGTH), nullable=False)
    # Deep-link payload for the UI; attribute name avoids DeclarativeBase.metadata.
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    link: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str] = mapped_column(String(50), nullable=False, default="fas fa-bell")
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="primary")

    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
