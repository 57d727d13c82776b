from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog

from coordinator.messaging.types import (
    ErrorMessage,
    PlayerJoinedData,
    PlayerLeftData,
    PongData,
    RoomCreatedData,
    RoomJoinedData,
    RoomLeftData,
)
from coordinator.session.directory import RoomDirectory
from coordinator.session.exceptions import (
    AlreadyInRoomError,
    GameInProgressError,
    NotInRoomError,
    RoomFullError,
    RoomNotFoundError,
)
from coordinator.session.heartbeat import HeartbeatMonitor
from coordinator.session.models import ConnectionState, Session, now_ms
from coordinator.session.registry import ConnectionRegistry

if TYPE_CHECKING:
    from coordinator.messaging.protocol import ConnectionProtocol
    from coordinator.messaging.types import ErrorCode, RoomSummary
    from coordinator.server.settings import CoordinatorSettings
    from coordinator.session.room import Room

logger = structlog.get_logger()


class SessionManager:
    """Connection lifecycle and room membership for every live connection.

    Operations raise ``RoomError`` subclasses for rule violations; the message
    router turns those into an error envelope for the offending connection.
    Join, leave, start and reset run under the room lock so their replies and
    broadcasts never interleave with another membership change in the same
    room.
    """

    def __init__(
        self,
        directory: RoomDirectory | None = None,
        registry: ConnectionRegistry | None = None,
        heartbeat: HeartbeatMonitor | None = None,
    ) -> None:
        self._directory = directory or RoomDirectory()
        self._registry = registry or ConnectionRegistry()
        self._heartbeat = heartbeat or HeartbeatMonitor(self._registry)

    @classmethod
    def from_settings(cls, settings: CoordinatorSettings) -> SessionManager:
        registry = ConnectionRegistry()
        return cls(
            directory=RoomDirectory(
                max_players=settings.max_players,
                chat_history_size=settings.chat_history_size,
                room_ttl_seconds=settings.room_ttl_seconds,
                sweep_interval_seconds=settings.sweep_interval_seconds,
                public_listing_limit=settings.public_listing_limit,
            ),
            registry=registry,
            heartbeat=HeartbeatMonitor(
                registry,
                timeout=settings.heartbeat_timeout_seconds,
                check_interval=settings.heartbeat_check_interval_seconds,
            ),
        )

    @property
    def directory(self) -> RoomDirectory:
        return self._directory

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def heartbeat(self) -> HeartbeatMonitor:
        return self._heartbeat

    @property
    def room_count(self) -> int:
        return self._directory.room_count

    @property
    def connection_count(self) -> int:
        return self._registry.connection_count

    @property
    def bound_count(self) -> int:
        return self._registry.bound_count

    # --- Background tasks ---

    def start(self) -> None:
        self._directory.start_reaper()
        self._heartbeat.start()

    async def stop(self) -> None:
        await self._heartbeat.stop()
        await self._directory.stop_reaper()

    # --- Connection lifecycle ---

    def register_connection(self, connection: ConnectionProtocol) -> None:
        self._registry.register(connection)
        self._heartbeat.record_connect(connection.connection_id)

    def unregister_connection(self, connection: ConnectionProtocol) -> None:
        self._registry.unregister(connection.connection_id)
        self._heartbeat.record_disconnect(connection.connection_id)

    def record_activity(self, connection: ConnectionProtocol) -> None:
        self._heartbeat.record_activity(connection.connection_id)

    def connection_state(self, connection_id: str) -> ConnectionState:
        if not self._registry.is_registered(connection_id):
            return ConnectionState.CLOSED
        if self._registry.get_session(connection_id) is None:
            return ConnectionState.UNBOUND
        return ConnectionState.BOUND

    def get_session(self, connection_id: str) -> Session | None:
        return self._registry.get_session(connection_id)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        """Leave any room silently, then forget the connection."""
        await self.leave_room(connection, notify_player=False)
        self.unregister_connection(connection)
        logger.info("connection closed")

    async def send_error(self, connection: ConnectionProtocol, code: ErrorCode, message: str) -> None:
        logger.warning("session error sent to client", error_code=code.value, error_message=message)
        await connection.send_message(ErrorMessage(code=code, message=message).model_dump(mode="json"))

    async def handle_ping(self, connection: ConnectionProtocol) -> None:
        """Respond to client ping with pong and update activity timestamp."""
        self._heartbeat.record_activity(connection.connection_id)
        await connection.send_message(PongData(timestamp=now_ms()).envelope())

    # --- Membership ---

    async def create_room(
        self,
        connection: ConnectionProtocol,
        player_name: str,
        *,
        is_private: bool = False,
    ) -> Room:
        """Create a room hosted by this connection and bind the connection to it."""
        self._require_unbound(connection)
        session = Session(connection=connection, display_name=player_name)
        room = self._directory.create_room(session.player_id, is_private=is_private)

        async with room.lock:
            room.add_player(session)
            self._registry.bind(connection.connection_id, session)
            self._bind_log_context(session)
            logger.info("player created room", player_name=player_name)
            await connection.send_message(
                RoomCreatedData(
                    room_code=room.room_code,
                    player_id=session.player_id,
                    player_name=session.display_name,
                    room=room.summary(),
                    players=room.player_snapshots(),
                ).envelope(),
            )
        return room

    async def join_room(self, connection: ConnectionProtocol, room_code: str, player_name: str) -> Room:
        """Join an existing room by code (case-insensitive)."""
        self._require_unbound(connection)
        room = self._directory.get_room(room_code)
        if room is None:
            raise RoomNotFoundError

        async with room.lock:
            # the room may have been evicted while we waited on its lock
            if self._directory.get_room(room.room_code) is not room:
                raise RoomNotFoundError
            if room.game_state.started:
                raise GameInProgressError
            session = Session(connection=connection, display_name=player_name)
            if not room.add_player(session):
                raise RoomFullError
            self._registry.bind(connection.connection_id, session)
            self._bind_log_context(session)
            logger.info("player joined room", player_name=player_name, player_count=room.player_count)

            await connection.send_message(
                RoomJoinedData(
                    room_code=room.room_code,
                    player_id=session.player_id,
                    is_host=session.is_host,
                    room=room.summary(),
                    players=room.player_snapshots(),
                    chat_history=room.recent_chat(),
                ).envelope(),
            )
            await room.broadcast(
                PlayerJoinedData(
                    player_id=session.player_id,
                    name=session.display_name,
                    position=session.position,
                ).envelope(),
                exclude_player_id=session.player_id,
            )
        return room

    async def leave_room(self, connection: ConnectionProtocol, *, notify_player: bool = True) -> None:
        """Remove the connection's player from its room. No-op when unbound."""
        session = self._registry.unbind(connection.connection_id)
        if session is None or session.room_code is None:
            return

        room_code = session.room_code
        room = self._directory.get_room(room_code)
        if room is None:
            session.room_code = None
            return

        async with room.lock:
            room.remove_player(session.player_id)
            logger.info("player left room", player_count=room.player_count, host_player_id=room.host_player_id)
            await room.broadcast(
                PlayerLeftData(player_id=session.player_id, player_name=session.display_name).envelope(),
            )
            self._directory.remove_room_if_empty(room_code)

        structlog.contextvars.unbind_contextvars("room_code", "player_id")
        if notify_player:
            with contextlib.suppress(RuntimeError, OSError, ConnectionError):
                await connection.send_message(RoomLeftData(room_code=room_code).envelope())

    # --- In-room actions ---

    async def move(self, connection: ConnectionProtocol, x: float, y: float) -> None:
        session, room = self._require_room(connection)
        await room.update_position(session.player_id, x, y)

    async def interact(self, connection: ConnectionProtocol, object_id: str, interaction_type: str) -> None:
        session, room = self._require_room(connection)
        await room.interact(session.player_id, object_id, interaction_type)

    async def chat(self, connection: ConnectionProtocol, message: str) -> None:
        session, room = self._require_room(connection)
        await room.send_chat(session.player_id, message)

    async def change_door_state(
        self,
        connection: ConnectionProtocol,
        door_id: str,
        *,
        is_open: bool,
        from_room: str | None = None,
        target_room: str | None = None,
    ) -> None:
        session, room = self._require_room(connection)
        logger.info("door state change", door_id=door_id, is_open=is_open)
        await room.change_door_state(
            session.player_id,
            door_id,
            is_open=is_open,
            from_room=from_room,
            target_room=target_room,
        )

    async def start_game(self, connection: ConnectionProtocol) -> None:
        session, room = self._require_room(connection)
        async with room.lock:
            await room.start_game(session.player_id)
        logger.info("game started", player_count=room.player_count)

    async def reset_game(self, connection: ConnectionProtocol) -> None:
        session, room = self._require_room(connection)
        async with room.lock:
            await room.reset_game(session.player_id)
        logger.info("game reset")

    def list_public_rooms(self) -> list[RoomSummary]:
        return self._directory.list_public()

    # --- Helpers ---

    def _require_unbound(self, connection: ConnectionProtocol) -> None:
        if self._registry.get_session(connection.connection_id) is not None:
            raise AlreadyInRoomError

    def _require_room(self, connection: ConnectionProtocol) -> tuple[Session, Room]:
        session = self._registry.get_session(connection.connection_id)
        if session is None or session.room_code is None:
            raise NotInRoomError
        room = self._directory.get_room(session.room_code)
        if room is None:
            raise NotInRoomError
        return session, room

    @staticmethod
    def _bind_log_context(session: Session) -> None:
        structlog.contextvars.bind_contextvars(room_code=session.room_code, player_id=session.player_id)
