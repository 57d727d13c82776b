"""Process-wide room directory: code generation, lookup, eviction and expiry."""

from __future__ import annotations

import asyncio
import contextlib
import secrets
import string
import time
from typing import TYPE_CHECKING

import structlog

from coordinator.messaging.types import ROOM_CODE_LENGTH
from coordinator.session.exceptions import CodeGenerationExhaustedError
from coordinator.session.room import DEFAULT_CHAT_HISTORY_SIZE, DEFAULT_MAX_PLAYERS, Room

if TYPE_CHECKING:
    from coordinator.messaging.types import RoomSummary

logger = structlog.get_logger()

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_CODE_ATTEMPTS = 100
DEFAULT_ROOM_TTL_SECONDS = 24 * 60 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60
DEFAULT_PUBLIC_LISTING_LIMIT = 50


def generate_room_code() -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


class RoomDirectory:
    """Own the room code -> Room mapping for the whole process.

    Purely state management plus the background expiry sweep. Membership
    changes and fan-out go through the Room itself; the session manager calls
    ``remove_room_if_empty`` after every leave.
    """

    def __init__(
        self,
        *,
        max_players: int = DEFAULT_MAX_PLAYERS,
        chat_history_size: int = DEFAULT_CHAT_HISTORY_SIZE,
        room_ttl_seconds: float = DEFAULT_ROOM_TTL_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        public_listing_limit: int = DEFAULT_PUBLIC_LISTING_LIMIT,
    ) -> None:
        self._rooms: dict[str, Room] = {}
        self._max_players = max_players
        self._chat_history_size = chat_history_size
        self._room_ttl_seconds = room_ttl_seconds
        self._sweep_interval_seconds = sweep_interval_seconds
        self._public_listing_limit = public_listing_limit
        self._reaper_task: asyncio.Task[None] | None = None

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    def create_room(self, host_player_id: str, *, is_private: bool = False) -> Room:
        """Register a new empty room under a fresh, unused code."""
        room_code = self._unused_code()
        room = Room(
            room_code=room_code,
            host_player_id=host_player_id,
            is_private=is_private,
            max_players=self._max_players,
            chat_history_size=self._chat_history_size,
        )
        self._rooms[room_code] = room
        logger.info("room created", room_code=room_code, is_private=is_private)
        return room

    def _unused_code(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_room_code()
            if code not in self._rooms:
                return code
        logger.error("room code generation exhausted", attempts=MAX_CODE_ATTEMPTS, room_count=self.room_count)
        raise CodeGenerationExhaustedError

    def get_room(self, room_code: str) -> Room | None:
        return self._rooms.get(room_code.upper())

    def remove_room_if_empty(self, room_code: str) -> bool:
        """Delete the room when it has no members. Return True if it was removed."""
        code = room_code.upper()
        room = self._rooms.get(code)
        if room is None or not room.is_empty:
            return False
        del self._rooms[code]
        logger.info("room deleted (empty)", room_code=code)
        return True

    def sweep_expired(self, now: float | None = None, ttl: float | None = None) -> list[str]:
        """Remove empty rooms older than the TTL. Return the removed codes.

        Rooms whose lock is held are mid join/leave and are left for the next
        sweep.
        """
        if now is None:
            now = time.monotonic()
        if ttl is None:
            ttl = self._room_ttl_seconds

        removed: list[str] = []
        for room_code, room in list(self._rooms.items()):
            if room.lock.locked() or not room.is_empty:
                continue
            if now - room.created_at > ttl:
                del self._rooms[room_code]
                removed.append(room_code)
                logger.info("cleaned up inactive room", room_code=room_code)
        return removed

    def list_public(self) -> list[RoomSummary]:
        """Return summaries of occupied public rooms, newest first."""
        rooms = [room for room in self._rooms.values() if not room.is_private and not room.is_empty]
        rooms.sort(key=lambda room: room.created_at, reverse=True)
        return [room.summary() for room in rooms[: self._public_listing_limit]]

    # --- Background sweep ---

    def start_reaper(self) -> None:
        """Start the periodic expiry sweep. No-op if running or disabled."""
        if self._reaper_task is not None or self._sweep_interval_seconds <= 0:
            return
        self._reaper_task = asyncio.create_task(self._reaper_loop())

    async def stop_reaper(self) -> None:
        if self._reaper_task is not None:
            self._reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper_task
            self._reaper_task = None

    async def _reaper_loop(self) -> None:  # pragma: no cover
        while True:
            await asyncio.sleep(self._sweep_interval_seconds)
            try:
                self.sweep_expired()
            except Exception:
                logger.exception("room sweep failed")
