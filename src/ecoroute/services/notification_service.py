"""Notification persistence and the canned notifications raised by domain events."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Sequence

from sqlalchemy import desc, func
from sqlalchemy.orm import Query, Session

from ecoroute.core.settings import settings
from ecoroute.db.time import as_utc, utcnow
from ecoroute.models import Notification
from ecoroute.schemas.notification import NotificationCreate

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 50
RECENT_WINDOW = timedelta(hours=1)

__all__ = [
    "create_notification",
    "welcome_notification",
    "collection_notification",
    "route_notification",
    "message_notification",
    "alert_notification",
    "preview",
    "list_notifications",
    "unread_count",
    "get_notification",
    "mark_read",
    "mark_unread",
    "mark_all_read",
    "soft_delete",
    "purge_expired",
    "time_ago",
    "is_recent",
]


def preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    """Truncate ``text`` to ``length`` characters, appending ``...`` when cut."""
    if len(text) > length:
        return f"{text[:length]}..."
    return text


def create_notification(db: Session, data: NotificationCreate) -> Notification:
    """Persist a notification. Every notification source goes through here."""
    created_at = utcnow()
    expires_at = data.expires_at or created_at + timedelta(days=settings.notification_ttl_days)
    notification = Notification(
        user_id=data.user_id,
        type=data.type,
        title=data.title,
        message=data.message,
        data=dict(data.data),
        link=data.link,
        icon=data.icon,
        color=data.color,
        priority=data.priority,
        read=False,
        created_at=created_at,
        updated_at=created_at,
        expires_at=expires_at,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    logger.debug("Notification %s (%s) stored for user %s", notification.id, data.type, data.user_id)
    return notification


def welcome_notification(user_id: int) -> NotificationCreate:
    return NotificationCreate(
        user_id=user_id,
        type="welcome",
        title="Welcome to EcoRoute! 🌱",
        message=(
            "Your account was created successfully. Explore every feature and "
            "start making a difference!"
        ),
        icon="fas fa-hand-peace",
        color="success",
        priority="high",
        link="/dashboard",
        data={"userId": user_id},
    )


def collection_notification(user_id: int, point_name: str, volume: float) -> NotificationCreate:
    return NotificationCreate(
        user_id=user_id,
        type="collection",
        title="New collection registered 📦",
        message=f'Collection of {volume}kg registered at point "{point_name}"',
        icon="fas fa-truck",
        color="primary",
        priority="medium",
        link="/dashboard/points",
        data={"pointName": point_name, "volume": volume},
    )


def route_notification(user_id: int, route_name: str) -> NotificationCreate:
    return NotificationCreate(
        user_id=user_id,
        type="route",
        title="Route planned 🗺️",
        message=f'The route "{route_name}" was created and is ready to run.',
        icon="fas fa-map-marked-alt",
        color="success",
        priority="medium",
        link="/dashboard/routes",
        data={"routeName": route_name},
    )


def message_notification(
    user_id: int,
    sender_name: str,
    content: str,
    data: dict[str, Any] | None = None,
) -> NotificationCreate:
    """Summarize an incoming private message as ``"<sender>: <preview>"``."""
    return NotificationCreate(
        user_id=user_id,
        type="message",
        title="New message 💬",
        message=f"{sender_name}: {preview(content)}",
        icon="fas fa-envelope",
        color="info",
        priority="medium",
        link="/dashboard/chat",
        data={"senderName": sender_name, **(data or {})},
    )


def alert_notification(user_id: int, alert_message: str) -> NotificationCreate:
    return NotificationCreate(
        user_id=user_id,
        type="alert",
        title="⚠️ Important alert",
        message=alert_message,
        icon="fas fa-exclamation-triangle",
        color="danger",
        priority="urgent",
        link="/dashboard",
    )


def _active(db: Session, user_id: int, now: datetime | None) -> Query[Notification]:
    moment = now or utcnow()
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_deleted.is_(False),
        Notification.expires_at > moment,
    )


def list_notifications(
    db: Session,
    user_id: int,
    unread_only: bool = False,
    limit: int = 20,
    offset: int = 0,
    now: datetime | None = None,
) -> Sequence[Notification]:
    """Return a user's active notifications, newest first.

    Soft-deleted and expired notifications are never returned.
    """
    query = _active(db, user_id, now)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return (
        query.order_by(desc(Notification.created_at), desc(Notification.id))
        .offset(offset)
        .limit(limit)
        .all()
    )


def unread_count(db: Session, user_id: int, now: datetime | None = None) -> int:
    """Count a user's active unread notifications."""
    return _active(db, user_id, now).filter(Notification.read.is_(False)).count()


def get_notification(
    db: Session,
    user_id: int,
    notification_id: int,
    now: datetime | None = None,
) -> Notification | None:
    """Return one active notification owned by ``user_id``."""
    return _active(db, user_id, now).filter(Notification.id == notification_id).first()


def mark_read(db: Session, user_id: int, notification_id: int) -> Notification | None:
    """Mark a notification read. ``read_at`` is set once and never moved."""
    notification = get_notification(db, user_id, notification_id)
    if notification is None or notification.read:
        return notification

    notification.read = True
    if notification.read_at is None:
        notification.read_at = utcnow()
    db.commit()
    db.refresh(notification)
    return notification


def mark_unread(db: Session, user_id: int, notification_id: int) -> Notification | None:
    """Flip a notification back to unread. The first ``read_at`` stamp is kept."""
    notification = get_notification(db, user_id, notification_id)
    if notification is None or not notification.read:
        return notification

    notification.read = False
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: int) -> int:
    """Mark every active unread notification of a user as read."""
    moment = utcnow()
    updated = (
        _active(db, user_id, moment)
        .filter(Notification.read.is_(False))
        .update(
            {
                Notification.read: True,
                Notification.read_at: func.coalesce(Notification.read_at, moment),
                Notification.updated_at: moment,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return int(updated)


def soft_delete(db: Session, user_id: int, notification_id: int) -> bool:
    notification = get_notification(db, user_id, notification_id)
    if notification is None:
        return False
    notification.is_deleted = True
    db.commit()
    return True


def purge_expired(db: Session, now: datetime | None = None) -> int:
    """Hard-delete expired notifications and return how many were removed."""
    removed = (
        db.query(Notification)
        .filter(Notification.expires_at <= (now or utcnow()))
        .delete(synchronize_session=False)
    )
    db.commit()
    if removed:
        logger.info("Purged %d expired notifications", removed)
    return int(removed)


def time_ago(created_at: datetime, now: datetime | None = None) -> str:
    """Render a coarse relative age such as ``"5 minutes ago"``."""
    seconds = int(((now or utcnow()) - as_utc(created_at)).total_seconds())
    if seconds < 60:
        return f"{seconds} seconds ago"
    if seconds < 3600:
        return f"{seconds // 60} minutes ago"
    if seconds < 86400:
        return f"{seconds // 3600} hours ago"
    return f"{seconds // 86400} days ago"


def is_recent(created_at: datetime, now: datetime | None = None) -> bool:
    """Return True for notifications younger than one hour."""
    return (now or utcnow()) - as_utc(created_at) < RECENT_WINDOW
