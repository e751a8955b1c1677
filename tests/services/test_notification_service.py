"""Tests for notification persistence and lifecycle."""

from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from ecoroute.db.time import as_utc, utcnow
from ecoroute.schemas.notification import NotificationCreate
from ecoroute.services import notification_service


def _create(db, user, **overrides):
    fields = {"user_id": user.id, "type": "system", "title": "Heads up", "message": "Something happened"}
    fields.update(overrides)
    return notification_service.create_notification(db, NotificationCreate(**fields))


def test_create_notification_defaults(db_session, alice) -> None:
    before = utcnow()
    notification = _create(db_session, alice)

    assert notification.id is not None
    assert notification.read is False
    assert notification.read_at is None
    assert notification.is_deleted is False
    assert notification.priority == "medium"
    assert notification.icon == "fas fa-bell"
    assert notification.color == "primary"
    expires = as_utc(notification.expires_at)
    assert before + timedelta(days=30) <= expires <= utcnow() + timedelta(days=30)


def test_notification_create_validates_lengths() -> None:
    with pytest.raises(ValidationError):
        NotificationCreate(user_id=1, title="t" * 201, message="ok")
    with pytest.raises(ValidationError):
        NotificationCreate(user_id=1, title="ok", message="m" * 501)
    with pytest.raises(ValidationError):
        NotificationCreate(user_id=1, type="party", title="ok", message="ok")


def test_message_notification_truncates_long_content() -> None:
    content = "x" * 60

    data = notification_service.message_notification(7, "Alice", content)

    assert data.type == "message"
    assert data.message == f"Alice: {'x' * 50}..."
    assert data.data["senderName"] == "Alice"


def test_message_notification_keeps_short_content() -> None:
    data = notification_service.message_notification(7, "Alice", "hello")

    assert data.message == "Alice: hello"


def test_factories_produce_valid_notifications(db_session, alice) -> None:
    for data in (
        notification_service.welcome_notification(alice.id),
        notification_service.collection_notification(alice.id, "Central Point", 12.5),
        notification_service.route_notification(alice.id, "Morning run"),
        notification_service.alert_notification(alice.id, "Truck delayed"),
    ):
        notification_service.create_notification(db_session, data)

    notifications = notification_service.list_notifications(db_session, alice.id)
    assert {n.type for n in notifications} == {"welcome", "collection", "route", "alert"}
    collection = next(n for n in notifications if n.type == "collection")
    assert "12.5kg" in collection.message
    assert '"Central Point"' in collection.message


def test_list_is_newest_first_and_scoped_to_user(db_session, alice, bob) -> None:
    first = _create(db_session, alice, title="first")
    second = _create(db_session, alice, title="second")
    _create(db_session, bob, title="not yours")

    notifications = notification_service.list_notifications(db_session, alice.id)

    assert [n.id for n in notifications] == [second.id, first.id]


def test_expired_notifications_are_invisible(db_session, alice) -> None:
    _create(db_session, alice)
    later = utcnow() + timedelta(days=31)

    assert notification_service.list_notifications(db_session, alice.id, now=later) == []
    assert notification_service.unread_count(db_session, alice.id, now=later) == 0


def test_explicit_past_expiry_is_hidden(db_session, alice) -> None:
    _create(db_session, alice, expires_at=utcnow() - timedelta(minutes=1))

    assert notification_service.list_notifications(db_session, alice.id) == []


def test_unread_only_filter(db_session, alice) -> None:
    read = _create(db_session, alice, title="read")
    unread = _create(db_session, alice, title="unread")
    notification_service.mark_read(db_session, alice.id, read.id)

    notifications = notification_service.list_notifications(db_session, alice.id, unread_only=True)

    assert [n.id for n in notifications] == [unread.id]
    assert notification_service.unread_count(db_session, alice.id) == 1


def test_mark_read_is_idempotent(db_session, alice) -> None:
    notification = _create(db_session, alice)

    first = notification_service.mark_read(db_session, alice.id, notification.id)
    first_read_at = first.read_at
    second = notification_service.mark_read(db_session, alice.id, notification.id)

    assert first.read is True
    assert first_read_at is not None
    assert second.read_at == first_read_at


def test_mark_read_ignores_other_users(db_session, alice, bob) -> None:
    notification = _create(db_session, alice)

    assert notification_service.mark_read(db_session, bob.id, notification.id) is None
    assert notification_service.unread_count(db_session, alice.id) == 1


def test_mark_unread_keeps_read_at(db_session, alice) -> None:
    notification = _create(db_session, alice)
    first_read_at = notification_service.mark_read(db_session, alice.id, notification.id).read_at

    result = notification_service.mark_unread(db_session, alice.id, notification.id)

    assert result.read is False
    assert result.read_at == first_read_at

    again = notification_service.mark_read(db_session, alice.id, notification.id)
    assert again.read is True
    assert again.read_at == first_read_at


def test_mark_all_read_keeps_earlier_read_at(db_session, alice) -> None:
    notification = _create(db_session, alice)
    first_read_at = notification_service.mark_read(db_session, alice.id, notification.id).read_at
    notification_service.mark_unread(db_session, alice.id, notification.id)

    assert notification_service.mark_all_read(db_session, alice.id) == 1

    db_session.refresh(notification)
    assert notification.read is True
    assert notification.read_at == first_read_at


def test_mark_all_read(db_session, alice, bob) -> None:
    _create(db_session, alice)
    _create(db_session, alice)
    _create(db_session, bob)

    assert notification_service.mark_all_read(db_session, alice.id) == 2
    assert notification_service.unread_count(db_session, alice.id) == 0
    assert notification_service.unread_count(db_session, bob.id) == 1


def test_soft_delete_hides_notification(db_session, alice, bob) -> None:
    notification = _create(db_session, alice)

    assert notification_service.soft_delete(db_session, bob.id, notification.id) is False
    assert notification_service.soft_delete(db_session, alice.id, notification.id) is True
    assert notification_service.list_notifications(db_session, alice.id) == []
    assert notification_service.get_notification(db_session, alice.id, notification.id) is None


def test_purge_expired_removes_only_expired(db_session, alice) -> None:
    _create(db_session, alice, expires_at=utcnow() - timedelta(days=1))
    kept = _create(db_session, alice)

    assert notification_service.purge_expired(db_session) == 1
    assert [n.id for n in notification_service.list_notifications(db_session, alice.id)] == [kept.id]


def test_time_ago_and_is_recent() -> None:
    now = utcnow()

    assert notification_service.time_ago(now - timedelta(seconds=30), now) == "30 seconds ago"
    assert notification_service.time_ago(now - timedelta(minutes=5), now) == "5 minutes ago"
    assert notification_service.time_ago(now - timedelta(hours=3), now) == "3 hours ago"
    assert notification_service.time_ago(now - timedelta(days=2), now) == "2 days ago"
    assert notification_service.is_recent(now - timedelta(minutes=59), now)
    assert not notification_service.is_recent(now - timedelta(hours=2), now)
