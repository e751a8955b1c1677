"""Tests for operational endpoints."""

from __future__ import annotations

from fastapi import status


def test_health_and_root(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/").json()["realtime"] == "/api/v1/ws"


def test_queue_status(client, queue_service) -> None:
    queue_service.send_welcome_email("alice@example.com", "Alice")
    queue_service.create_notification(1, "system", "Hi", "There")

    response = client.get("/api/v1/system/queues")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["email"] == {"pending": 1, "active": 0, "completed": 0, "failed": 0, "delayed": 0}
    assert body["notification"]["delayed"] == 1


def test_presence_count(client) -> None:
    assert client.get("/api/v1/system/presence").json() == {"online": 0}


def test_public_config_hides_secrets(client) -> None:
    body = client.get("/api/v1/system/config").json()

    assert body["realtime"]["history_limit"] == 50
    flattened = str(body)
    assert "secret" not in flattened.lower()
    assert "password" not in flattened.lower()
