"""Tests for the client-side real-time session."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
from websockets.datastructures import Headers
from websockets.exceptions import InvalidStatus
from websockets.http11 import Response

from ecoroute.client import RealtimeSession

URL = "ws://localhost:8000/api/v1/ws"


def _connected_session() -> RealtimeSession:
    session = RealtimeSession(URL)
    session.status = "connected"
    session._ws = AsyncMock()
    return session


def _sent_frames(session: RealtimeSession) -> list[dict]:
    return [json.loads(call.args[0]) for call in session._ws.send.call_args_list]


def test_notifications_are_prepended_and_deduplicated() -> None:
    session = RealtimeSession(URL)

    session.handle_event("notification", {"id": 1, "title": "first", "read": False})
    session.handle_event("notification", {"id": 2, "title": "second", "read": False})
    session.handle_event("notification", {"id": 1, "title": "first again", "read": False})

    assert [n["id"] for n in session.notifications] == [2, 1]
    assert session.notifications[1]["title"] == "first"
    assert session.unread_count == 2


def test_messages_are_appended_per_room_and_deduplicated() -> None:
    session = RealtimeSession(URL)

    session.handle_event("new-message", {"id": 10, "room": "general", "content": "a"})
    session.handle_event("new-message", {"id": 11, "room": "general", "content": "b"})
    session.handle_event("new-message", {"id": 10, "room": "general", "content": "a"})
    session.handle_event("new-message", {"id": 12, "room": "drivers", "content": "c"})

    assert [m["id"] for m in session.messages["general"]] == [10, 11]
    assert [m["id"] for m in session.messages["drivers"]] == [12]


def test_history_replaces_room_messages() -> None:
    session = RealtimeSession(URL)
    session.handle_event("new-message", {"id": 1, "room": "general", "content": "stale"})

    session.handle_event(
        "message-history",
        {"room": "general", "messages": [{"id": 3, "content": "x"}, {"id": 2, "content": "y"}]},
    )

    assert [m["id"] for m in session.messages["general"]] == [3, 2]


def test_online_users_error_and_typing() -> None:
    updates: list[str] = []
    session = RealtimeSession(URL, on_update=updates.append)

    session.handle_event("online-users", [{"userId": 1, "name": "Alice", "role": "admin"}])
    session.handle_event("message-error", {"error": "Error sending message"})
    session.handle_event("user-typing", {"userId": 2, "name": "Bob", "isTyping": True})

    assert session.online_users == [{"userId": 1, "name": "Alice", "role": "admin"}]
    assert session.last_error == "Error sending message"
    assert 2 in session.typing

    session.handle_event("user-typing", {"userId": 2, "name": "Bob", "isTyping": False})
    assert session.typing == {}
    assert updates == ["online-users", "error", "typing", "typing"]


@pytest.mark.asyncio
async def test_start_requires_user_and_token() -> None:
    session = RealtimeSession(URL)

    assert await session.start(None, "token") is False
    assert await session.start({"id": 1}, None) is False
    assert session.status == "idle"


@pytest.mark.asyncio
async def test_mark_notification_read_is_optimistic() -> None:
    session = _connected_session()
    session.handle_event("notification", {"id": 7, "title": "t", "read": False})

    await session.mark_notification_read(7)

    assert session.notifications[0]["read"] is True
    assert session.unread_count == 0
    assert _sent_frames(session) == [{"event": "mark-notification-read", "data": 7}]


@pytest.mark.asyncio
async def test_mark_read_works_offline_and_for_transient_broadcasts() -> None:
    session = RealtimeSession(URL)
    session.handle_event("notification", {"id": "b1f2", "title": "broadcast", "read": False})

    await session.mark_notification_read("b1f2")

    assert session.unread_count == 0


@pytest.mark.asyncio
async def test_operations_emit_events() -> None:
    session = _connected_session()

    assert await session.join_room("general") is True
    assert await session.send_message("general", "hello", recipient=2) is True
    assert await session.send_notification("Heads up", "Server restart", "warning") is True
    await session.leave_room("general")

    assert _sent_frames(session) == [
        {"event": "join-room", "data": "general"},
        {"event": "send-message", "data": {"room": "general", "message": "hello", "recipient": 2}},
        {
            "event": "broadcast-notification",
            "data": {"title": "Heads up", "message": "Server restart", "type": "warning"},
        },
        {"event": "leave-room", "data": "general"},
    ]


@pytest.mark.asyncio
async def test_operations_without_connection_are_dropped() -> None:
    session = RealtimeSession(URL)

    assert await session.send_message("general", "hello") is False


@pytest.mark.asyncio
async def test_ping_is_answered_with_pong() -> None:
    session = _connected_session()

    await session._dispatch(json.dumps({"event": "ping", "data": {"ts": "now"}}))
    await session._dispatch("not json")

    assert _sent_frames(session) == [{"event": "pong", "data": {"ts": "now"}}]


def test_clear_notifications() -> None:
    session = RealtimeSession(URL)
    session.handle_event("notification", {"id": 1, "read": False})

    session.clear_notifications()

    assert session.notifications == []
    assert session.unread_count == 0


@pytest.mark.asyncio
async def test_reconnection_is_bounded(mocker) -> None:
    connect = mocker.patch(
        "ecoroute.client.session.websockets.connect",
        side_effect=OSError("connection refused"),
    )
    statuses: list[str] = []
    session = RealtimeSession(URL, reconnect_attempts=2, reconnect_delay=0)
    session.on_update = lambda what: statuses.append(session.status) if what == "status" else None

    assert await session.start({"id": 1, "name": "Alice"}, "secret-token") is True
    await session._task

    assert connect.call_count == 3
    assert connect.call_args.args[0] == f"{URL}?token=secret-token"
    assert "reconnecting" in statuses
    assert session.status == "disconnected"


@pytest.mark.asyncio
async def test_rejected_handshake_is_not_retried(mocker) -> None:
    connect = mocker.patch(
        "ecoroute.client.session.websockets.connect",
        side_effect=InvalidStatus(Response(403, "Forbidden", Headers())),
    )
    statuses: list[str] = []
    session = RealtimeSession(URL, reconnect_attempts=2, reconnect_delay=0)
    session.on_update = lambda what: statuses.append(session.status) if what == "status" else None

    await session.start({"id": 1, "name": "Alice"}, "expired-token")
    await session._task

    assert connect.call_count == 1
    assert "reconnecting" not in statuses
    assert session.status == "disconnected"
    assert "403" in session.last_error


@pytest.mark.asyncio
async def test_server_error_during_handshake_is_retried(mocker) -> None:
    connect = mocker.patch(
        "ecoroute.client.session.websockets.connect",
        side_effect=InvalidStatus(Response(503, "Service Unavailable", Headers())),
    )
    session = RealtimeSession(URL, reconnect_attempts=1, reconnect_delay=0)

    await session.start({"id": 1, "name": "Alice"}, "secret-token")
    await session._task

    assert connect.call_count == 2
    assert session.status == "disconnected"
