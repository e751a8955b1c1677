"""Named enqueue helpers for the email and notification queues.

Domain code (registration, collection logging, route planning, the chat
gateway) calls these instead of sending mail or writing notifications inline.
"""
from __future__ import annotations

from typing import Any

from ecoroute.core.settings import settings
from ecoroute.models.job import BACKOFF_EXPONENTIAL, BACKOFF_FIXED, QUEUE_EMAIL, QUEUE_NOTIFICATION
from ecoroute.schemas.notification import NotificationCreate
from ecoroute.services.job_queue import Backoff, JobQueue, get_job_queue

EMAIL_WELCOME = "welcome"
EMAIL_VERIFICATION = "verification"
EMAIL_COLLECTION = "collection"
EMAIL_ROUTE = "route"
EMAIL_CUSTOM = "custom"

NOTIFICATION_CREATE = "create-notification"


class QueueService:
    """Enqueue email and notification jobs with the configured retry policies."""

    def __init__(self, queue: JobQueue | None = None) -> None:
        self.queue = queue or get_job_queue()

    def _email(self, job_type: str, to: str, name: str, data: dict[str, Any] | None = None) -> int:
        return self.queue.enqueue(
            QUEUE_EMAIL,
            job_type,
            {"to": to, "name": name, "data": data or {}},
            attempts=settings.email_job_attempts,
            backoff=Backoff(BACKOFF_EXPONENTIAL, settings.email_job_backoff_ms),
        )

    def send_welcome_email(self, to: str, name: str) -> int:
        return self._email(EMAIL_WELCOME, to, name)

    def send_verification_email(self, to: str, name: str, code: str) -> int:
        """Queue a verification code mail. Expiry is checked by the verifier, not here."""
        return self._email(EMAIL_VERIFICATION, to, name, {"code": code})

    def send_collection_email(self, to: str, name: str, point_name: str, volume: float) -> int:
        return self._email(EMAIL_COLLECTION, to, name, {"pointName": point_name, "volume": volume})

    def send_route_email(self, to: str, name: str, route_name: str) -> int:
        return self._email(EMAIL_ROUTE, to, name, {"routeName": route_name})

    def send_custom_email(self, to: str, subject: str, html: str) -> int:
        return self._email(EMAIL_CUSTOM, to, "", {"subject": subject, "html": html})

    def create_notification(
        self,
        user_id: int,
        type: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
        *,
        push: bool = True,
        extra: dict[str, Any] | None = None,
    ) -> int:
        """Queue persistence of a notification for ``user_id``.

        Args:
            user_id: Recipient
            type: Notification type
            title: Short title
            message: Body text
            data: Deep-link payload stored on the notification
            push: Whether the worker should push the stored record live
            extra: Further ``NotificationCreate`` fields (icon, color, link, priority)
        """
        payload: dict[str, Any] = {
            "userId": user_id,
            "type": type,
            "title": title,
            "message": message,
            "data": data or {},
            "push": push,
        }
        if extra:
            payload["extra"] = extra
        return self.queue.enqueue(
            QUEUE_NOTIFICATION,
            NOTIFICATION_CREATE,
            payload,
            attempts=settings.notification_job_attempts,
            backoff=Backoff(BACKOFF_FIXED, settings.notification_job_delay_ms),
            delay_ms=settings.notification_job_delay_ms,
        )

    def enqueue_notification(self, notification: NotificationCreate, *, push: bool = True) -> int:
        """Queue a fully described notification, e.g. one built by a factory helper."""
        extra = notification.model_dump(
            include={"link", "icon", "color", "priority"},
            exclude_none=True,
        )
        return self.create_notification(
            notification.user_id,
            notification.type,
            notification.title,
            notification.message,
            notification.data,
            push=push,
            extra=extra,
        )


_queue_service: QueueService | None = None


def get_queue_service() -> QueueService:
    """Return the shared queue service."""
    global _queue_service
    if _queue_service is None:
        _queue_service = QueueService()
    return _queue_service
