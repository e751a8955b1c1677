"""In-process registry of live connections, users and room membership.

The registry is owned by the gateway and mutated only from event-loop
handlers, so it needs no locking. It is scoped to one server process: a
deployment with several instances would need an external shared store.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class Connection(Protocol):
    """A live, authenticated bidirectional channel to one client."""

    id: str

    async def send(self, event: str, data: object) -> None:
        """Emit ``event`` with ``data`` to this client only."""


@dataclass(frozen=True)
class ConnectedUser:
    """Snapshot of the principal behind a connection, taken at admission."""

    id: int
    name: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class PresenceRegistry:
    """Maps users to their live connection and connections to joined rooms.

    A user appears at most once: a newer connection replaces the older one
    for presence purposes, while room membership stays per connection.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._principals: dict[str, ConnectedUser] = {}
        self._user_connection: dict[int, str] = {}
        self._rooms: dict[str, set[str]] = {}

    def register(self, connection: Connection, user: ConnectedUser) -> None:
        """Record an admitted connection; the user's latest connection wins."""
        self._connections[connection.id] = connection
        self._principals[connection.id] = user
        self._rooms.setdefault(connection.id, set())
        self._user_connection[user.id] = connection.id

    def unregister(self, connection: Connection) -> bool:
        """Forget a connection and its rooms.

        Returns:
            True if the connection was the user's presence entry and the user
            was removed from the online set.
        """
        self._connections.pop(connection.id, None)
        self._rooms.pop(connection.id, None)
        user = self._principals.pop(connection.id, None)
        if user is None:
            return False
        if self._user_connection.get(user.id) == connection.id:
            del self._user_connection[user.id]
            return True
        return False

    def principal(self, connection: Connection) -> ConnectedUser | None:
        return self._principals.get(connection.id)

    def connection_for(self, user_id: int) -> Connection | None:
        """Return the live connection of ``user_id`` or None when offline."""
        connection_id = self._user_connection.get(user_id)
        if connection_id is None:
            return None
        return self._connections.get(connection_id)

    def is_online(self, user_id: int) -> bool:
        return user_id in self._user_connection

    def online_users(self) -> list[ConnectedUser]:
        """Return one entry per online user, in connection order."""
        return [self._principals[cid] for cid in self._user_connection.values()]

    def online_user_ids(self) -> list[int]:
        return list(self._user_connection)

    def online_count(self) -> int:
        return len(self._user_connection)

    def all_connections(self) -> list[Connection]:
        return list(self._connections.values())

    # Room membership

    def join(self, connection: Connection, room: str) -> None:
        self._rooms.setdefault(connection.id, set()).add(room)

    def leave(self, connection: Connection, room: str) -> None:
        self._rooms.get(connection.id, set()).discard(room)

    def rooms_of(self, connection: Connection) -> set[str]:
        return set(self._rooms.get(connection.id, set()))

    def connections_in_room(self, room: str) -> list[Connection]:
        """Return every connection currently joined to ``room``."""
        return [
            self._connections[cid]
            for cid, rooms in self._rooms.items()
            if room in rooms and cid in self._connections
        ]
