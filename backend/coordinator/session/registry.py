"""Connection registry: live connections and their bound sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from coordinator.messaging.protocol import ConnectionProtocol
    from coordinator.session.models import Session


class ConnectionRegistry:
    """Track every live connection and, once bound, the Session it carries.

    Both tables are keyed by connection id, so resolving the session behind an
    incoming frame never scans the connection table.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ConnectionProtocol] = {}  # connection_id -> connection
        self._sessions: dict[str, Session] = {}  # connection_id -> Session

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    @property
    def bound_count(self) -> int:
        return len(self._sessions)

    def register(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    def unregister(self, connection_id: str) -> Session | None:
        """Forget a connection entirely. Return the session it was bound to, if any."""
        self._connections.pop(connection_id, None)
        return self.unbind(connection_id)

    def is_registered(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def connections(self) -> list[ConnectionProtocol]:
        return list(self._connections.values())

    def bind(self, connection_id: str, session: Session) -> None:
        if connection_id not in self._connections:
            raise KeyError(f"connection {connection_id} is not registered")
        if connection_id in self._sessions:
            raise ValueError(f"connection {connection_id} is already bound")
        self._sessions[connection_id] = session

    def unbind(self, connection_id: str) -> Session | None:
        return self._sessions.pop(connection_id, None)

    def get_session(self, connection_id: str) -> Session | None:
        return self._sessions.get(connection_id)
