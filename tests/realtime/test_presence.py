"""Tests for the in-process presence registry."""

from __future__ import annotations

from ecoroute.realtime.presence import ConnectedUser, PresenceRegistry
from tests.conftest import FakeConnection

ALICE = ConnectedUser(id=1, name="Alice", role="cooperative")
BOB = ConnectedUser(id=2, name="Bob", role="driver")


def test_register_and_unregister() -> None:
    registry = PresenceRegistry()
    conn = FakeConnection()

    registry.register(conn, ALICE)
    assert registry.is_online(1)
    assert registry.principal(conn) == ALICE
    assert registry.connection_for(1) is conn
    assert registry.online_count() == 1

    assert registry.unregister(conn) is True
    assert not registry.is_online(1)
    assert registry.principal(conn) is None
    assert registry.all_connections() == []


def test_latest_connection_wins() -> None:
    registry = PresenceRegistry()
    first, second = FakeConnection(), FakeConnection()

    registry.register(first, ALICE)
    registry.register(second, ALICE)

    assert registry.connection_for(1) is second
    assert registry.online_users() == [ALICE]

    # Closing the superseded connection leaves the user online.
    assert registry.unregister(first) is False
    assert registry.is_online(1)
    assert registry.unregister(second) is True
    assert not registry.is_online(1)


def test_room_membership_is_per_connection() -> None:
    registry = PresenceRegistry()
    alice, bob = FakeConnection(), FakeConnection()
    registry.register(alice, ALICE)
    registry.register(bob, BOB)

    registry.join(alice, "general")
    registry.join(bob, "general")
    registry.join(bob, "drivers")
    registry.leave(bob, "general")

    assert registry.connections_in_room("general") == [alice]
    assert registry.connections_in_room("drivers") == [bob]
    assert registry.rooms_of(bob) == {"drivers"}

    registry.unregister(alice)
    assert registry.connections_in_room("general") == []


def test_admin_flag() -> None:
    assert ConnectedUser(id=3, name="Root", role="admin").is_admin
    assert not ALICE.is_admin
