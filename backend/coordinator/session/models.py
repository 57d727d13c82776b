from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING
from uuid import uuid4

from coordinator.messaging.types import PlayerSnapshot, Position

if TYPE_CHECKING:
    from coordinator.messaging.protocol import ConnectionProtocol

SPAWN_X = 100.0
SPAWN_Y = 100.0


def spawn_position() -> Position:
    return Position(x=SPAWN_X, y=SPAWN_Y)


def new_player_id() -> str:
    return f"player_{uuid4().hex}"


def now_ms() -> int:
    """Wall-clock epoch milliseconds, the timestamp unit used on the wire."""
    return int(time.time() * 1000)


@dataclass
class Session:
    """Bind a live connection to a player identity and optional room membership.

    Lifecycle:
    - Created on a successful create_room or join_room
    - room_code and is_host are managed by Room.add_player/remove_player
    - Dropped from the registry on leave_room or disconnect
    """

    connection: ConnectionProtocol
    display_name: str
    player_id: str = field(default_factory=new_player_id)
    room_code: str | None = None
    position: Position = field(default_factory=spawn_position)
    is_host: bool = False
    connected_at: float = field(default_factory=time.time)

    @property
    def connection_id(self) -> str:
        return self.connection.connection_id

    def snapshot(self) -> PlayerSnapshot:
        return PlayerSnapshot(
            player_id=self.player_id,
            name=self.display_name,
            position=self.position,
            is_host=self.is_host,
        )


@dataclass
class GameState:
    started: bool = False
    started_at: int | None = None  # epoch ms


class ConnectionState(StrEnum):
    """Per-connection lifecycle: UNBOUND -> BOUND -> UNBOUND on leave, CLOSED on disconnect."""

    UNBOUND = "unbound"
    BOUND = "bound"
    CLOSED = "closed"
