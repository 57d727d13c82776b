"""Room model: a bounded group of sessions sharing game state."""

from __future__ import annotations

import asyncio
import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from coordinator.messaging.types import (
    ChatBroadcastData,
    ChatEntry,
    DoorStateChangedData,
    GameResetData,
    GameStartedData,
    PlayerInteractedData,
    PlayerMovedData,
    PlayerSnapshot,
    Position,
    RoomSummary,
)
from coordinator.session.broadcast import broadcast_to_sessions
from coordinator.session.exceptions import (
    EmptyRoomError,
    GameAlreadyStartedError,
    InvalidMessageError,
    NotHostError,
    NotInRoomError,
)
from coordinator.session.models import GameState, now_ms, spawn_position

if TYPE_CHECKING:
    from coordinator.session.models import Session

DEFAULT_MAX_PLAYERS = 8
DEFAULT_CHAT_HISTORY_SIZE = 50


@dataclass
class Room:
    """Live room addressed by a room code.

    Members are keyed by player id in join order, so the first remaining
    entry is the earliest-joined member when the host leaves. Every
    check-then-mutate step below runs without an ``await`` in between;
    ``lock`` is only for callers that need a mutation and its follow-up
    sends to stay ordered relative to other joins and leaves.
    """

    room_code: str
    host_player_id: str
    is_private: bool = False
    max_players: int = DEFAULT_MAX_PLAYERS
    chat_history_size: int = DEFAULT_CHAT_HISTORY_SIZE
    members: dict[str, Session] = field(default_factory=dict)  # player_id -> Session
    game_state: GameState = field(default_factory=GameState)
    created_at: float = field(default_factory=time.monotonic)
    chat_history: deque[ChatEntry] = field(init=False)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def __post_init__(self) -> None:
        if self.max_players < 1:
            raise ValueError(f"max_players must be at least 1, got {self.max_players}")
        self.chat_history = deque(maxlen=self.chat_history_size)

    @property
    def player_count(self) -> int:
        return len(self.members)

    @property
    def is_empty(self) -> bool:
        return self.player_count == 0

    @property
    def is_full(self) -> bool:
        return self.player_count >= self.max_players

    @property
    def host_name(self) -> str:
        host = self.members.get(self.host_player_id)
        return host.display_name if host is not None else "Unknown"

    def has_player(self, player_id: str) -> bool:
        return player_id in self.members

    # --- Membership ---

    def add_player(self, session: Session) -> bool:
        """Add a member at the spawn point. Return False when the room is full."""
        if self.is_full:
            return False
        session.position = spawn_position()
        session.is_host = session.player_id == self.host_player_id
        session.room_code = self.room_code
        self.members[session.player_id] = session
        return True

    def remove_player(self, player_id: str) -> Session | None:
        """Remove a member, handing host to the earliest-joined remaining member if needed."""
        session = self.members.pop(player_id, None)
        if session is None:
            return None
        session.room_code = None
        session.is_host = False
        if player_id == self.host_player_id and self.members:
            successor = next(iter(self.members.values()))
            successor.is_host = True
            self.host_player_id = successor.player_id
        return session

    # --- Fan-out ---

    async def broadcast(self, message: dict[str, Any], exclude_player_id: str | None = None) -> int:
        return await broadcast_to_sessions(list(self.members.values()), message, exclude_player_id)

    async def update_position(self, player_id: str, x: float, y: float) -> None:
        session = self._require_member(player_id)
        if not (math.isfinite(x) and math.isfinite(y)):
            raise InvalidMessageError("Position must be finite numbers")
        session.position = Position(x=x, y=y)
        await self.broadcast(
            PlayerMovedData(player_id=player_id, position=session.position).envelope(),
            exclude_player_id=player_id,
        )

    async def interact(self, player_id: str, object_id: str, interaction_type: str) -> None:
        self._require_member(player_id)
        await self.broadcast(
            PlayerInteractedData(
                player_id=player_id,
                object_id=object_id,
                interaction_type=interaction_type,
                timestamp=now_ms(),
            ).envelope(),
        )

    async def change_door_state(
        self,
        player_id: str,
        door_id: str,
        *,
        is_open: bool,
        from_room: str | None = None,
        target_room: str | None = None,
    ) -> None:
        self._require_member(player_id)
        await self.broadcast(
            DoorStateChangedData(
                door_id=door_id,
                is_open=is_open,
                from_room=from_room,
                target_room=target_room,
                changed_by=player_id,
            ).envelope(),
        )

    async def send_chat(self, player_id: str, message: str) -> ChatEntry:
        session = self._require_member(player_id)
        entry = ChatEntry(
            player_id=player_id,
            player_name=session.display_name,
            message=message,
            timestamp=now_ms(),
        )
        self.chat_history.append(entry)
        await self.broadcast(ChatBroadcastData(**entry.model_dump()).envelope())
        return entry

    def recent_chat(self) -> list[ChatEntry]:
        return list(self.chat_history)

    # --- Host-only game state ---

    async def start_game(self, requester_id: str) -> None:
        """Start an episode and announce it, with the member list, to everyone."""
        if requester_id != self.host_player_id:
            raise NotHostError("Only the host can start the game")
        if self.is_empty:
            raise EmptyRoomError
        if self.game_state.started:
            raise GameAlreadyStartedError
        self.game_state = GameState(started=True, started_at=now_ms())
        await self.broadcast(
            GameStartedData(timestamp=self.game_state.started_at, players=self.player_snapshots()).envelope(),
        )

    async def reset_game(self, requester_id: str) -> None:
        """Clear game state and send every member back to the spawn point."""
        if requester_id != self.host_player_id:
            raise NotHostError("Only the host can reset the game")
        self.game_state = GameState()
        for session in self.members.values():
            session.position = spawn_position()
        await self.broadcast(GameResetData(timestamp=now_ms()).envelope())

    # --- Views ---

    def player_snapshots(self) -> list[PlayerSnapshot]:
        return [session.snapshot() for session in self.members.values()]

    def summary(self) -> RoomSummary:
        return RoomSummary(
            room_code=self.room_code,
            player_count=self.player_count,
            max_players=self.max_players,
            host_name=self.host_name,
            game_started=self.game_state.started,
            is_private=self.is_private,
        )

    def _require_member(self, player_id: str) -> Session:
        session = self.members.get(player_id)
        if session is None:
            raise NotInRoomError
        return session
