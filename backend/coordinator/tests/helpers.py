"""Shared helpers for driving the session manager with mock connections."""

from __future__ import annotations

from typing import TYPE_CHECKING

from coordinator.tests.mocks import MockConnection

if TYPE_CHECKING:
    from coordinator.session.manager import SessionManager
    from coordinator.session.room import Room


def connect(manager: SessionManager) -> MockConnection:
    """Register a fresh mock connection (UNBOUND)."""
    conn = MockConnection()
    manager.register_connection(conn)
    return conn


async def create_room(
    manager: SessionManager,
    player_name: str = "Host",
    *,
    is_private: bool = False,
) -> tuple[MockConnection, Room]:
    conn = connect(manager)
    room = await manager.create_room(conn, player_name, is_private=is_private)
    return conn, room


async def fill_room(manager: SessionManager, names: list[str]) -> tuple[Room, list[MockConnection]]:
    """Create a room hosted by names[0], join the rest, then clear every outbox."""
    host, room = await create_room(manager, names[0])
    conns = [host]
    for name in names[1:]:
        conn = connect(manager)
        await manager.join_room(conn, room.room_code, name)
        conns.append(conn)

    # clear message history for clean test assertions
    for conn in conns:
        conn.clear()
    return room, conns
