"""Tests for the chat history REST endpoints."""

from __future__ import annotations

from fastapi import status

from ecoroute.services import message_service
from tests.conftest import auth_headers


def test_room_history(client, db_session, alice) -> None:
    ids = [message_service.create_message(db_session, alice, f"m{i}", room="drivers").id for i in range(3)]

    response = client.get("/api/v1/messages/rooms/drivers?limit=2", headers=auth_headers(alice))

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["room"] == "drivers"
    assert [m["id"] for m in body["messages"]] == sorted(ids, reverse=True)[:2]
    assert body["messages"][0]["senderName"] == "Alice"


def test_recipient_marks_private_message_read(client, db_session, alice, bob) -> None:
    message = message_service.create_message(db_session, alice, "psst", recipient_id=bob.id)

    response = client.put(f"/api/v1/messages/{message.id}/read", headers=auth_headers(bob))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "read"
    assert response.json()["readAt"] is not None


def test_sender_cannot_mark_own_message_read(client, db_session, alice, bob) -> None:
    message = message_service.create_message(db_session, alice, "psst", recipient_id=bob.id)

    response = client.put(f"/api/v1/messages/{message.id}/read", headers=auth_headers(alice))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "sent"


def test_outsider_gets_404_for_private_message(client, db_session, alice, bob, carol) -> None:
    message = message_service.create_message(db_session, alice, "psst", recipient_id=bob.id)

    response = client.put(f"/api/v1/messages/{message.id}/read", headers=auth_headers(carol))
    assert response.status_code == status.HTTP_404_NOT_FOUND

    response = client.put("/api/v1/messages/9999/read", headers=auth_headers(carol))
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_room_history_hides_private_messages_from_outsiders(
    client, db_session, alice, bob, carol
) -> None:
    public = message_service.create_message(db_session, alice, "hi all")
    private = message_service.create_message(
        db_session, alice, "secret for bob", room="general", recipient_id=bob.id
    )

    carol_view = client.get("/api/v1/messages/rooms/general", headers=auth_headers(carol)).json()
    bob_view = client.get("/api/v1/messages/rooms/general", headers=auth_headers(bob)).json()

    assert [m["id"] for m in carol_view["messages"]] == [public.id]
    assert {m["id"] for m in bob_view["messages"]} == {public.id, private.id}
