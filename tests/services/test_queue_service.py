"""Tests for the named email and notification enqueue helpers."""

from __future__ import annotations

from datetime import timedelta

from ecoroute.db.time import as_utc
from ecoroute.services import notification_service


def test_welcome_email_job(queue_service, queued_jobs) -> None:
    queue_service.send_welcome_email("alice@example.com", "Alice")

    [job] = queued_jobs("email")
    assert job.job_type == "welcome"
    assert job.payload == {"to": "alice@example.com", "name": "Alice", "data": {}}
    assert job.max_attempts == 3
    assert job.backoff_type == "exponential"
    assert job.backoff_delay_ms == 2000


def test_email_helpers_carry_template_data(queue_service, queued_jobs) -> None:
    queue_service.send_verification_email("a@example.com", "Alice", "123456")
    queue_service.send_collection_email("a@example.com", "Alice", "Central Point", 40.0)
    queue_service.send_route_email("a@example.com", "Alice", "Morning run")
    queue_service.send_custom_email("a@example.com", "Hi", "<p>Hi</p>")

    jobs = queued_jobs("email")
    assert [job.job_type for job in jobs] == ["verification", "collection", "route", "custom"]
    assert jobs[0].payload["data"] == {"code": "123456"}
    assert jobs[1].payload["data"] == {"pointName": "Central Point", "volume": 40.0}
    assert jobs[2].payload["data"] == {"routeName": "Morning run"}
    assert jobs[3].payload["data"] == {"subject": "Hi", "html": "<p>Hi</p>"}


def test_create_notification_job_is_delayed_with_fixed_backoff(queue_service, queued_jobs) -> None:
    queue_service.create_notification(5, "system", "Title", "Body", {"k": "v"})

    [job] = queued_jobs("notification")
    assert job.job_type == "create-notification"
    assert job.payload == {
        "userId": 5,
        "type": "system",
        "title": "Title",
        "message": "Body",
        "data": {"k": "v"},
        "push": True,
    }
    assert job.max_attempts == 2
    assert job.backoff_type == "fixed"
    assert job.backoff_delay_ms == 1000
    assert as_utc(job.run_at) - as_utc(job.created_at) >= timedelta(milliseconds=900)


def test_enqueue_notification_keeps_presentation_fields(queue_service, queued_jobs) -> None:
    data = notification_service.message_notification(9, "Alice", "hello", {"messageId": 3})

    queue_service.enqueue_notification(data, push=False)

    [job] = queued_jobs("notification")
    assert job.payload["message"] == "Alice: hello"
    assert job.payload["push"] is False
    assert job.payload["data"] == {"senderName": "Alice", "messageId": 3}
    assert job.payload["extra"] == {
        "link": "/dashboard/chat",
        "icon": "fas fa-envelope",
        "color": "info",
        "priority": "medium",
    }
