from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from coordinator.messaging.types import (
    ChatMessage,
    ClientMessageType,
    CreateRoomMessage,
    DoorStateChangeMessage,
    ErrorCode,
    JoinRoomMessage,
    PlayerInteractMessage,
    PlayerMoveMessage,
    UnknownMessageTypeError,
    parse_client_message,
)
from coordinator.session.exceptions import RoomError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from coordinator.messaging.protocol import ConnectionProtocol
    from coordinator.messaging.types import ClientMessage
    from coordinator.session.manager import SessionManager

    Handler = Callable[[ConnectionProtocol, ClientMessage], Awaitable[None]]

logger = structlog.get_logger()


def describe_validation_error(error: ValidationError) -> str:
    """Collapse a pydantic error into one line naming the first offending field."""
    first = error.errors()[0]
    loc = list(first["loc"])
    # drop the union tag and envelope key so only the payload field path remains
    if "data" in loc:
        loc = loc[loc.index("data") + 1 :]
    location = ".".join(str(part) for part in loc)
    return f"Invalid {location}: {first['msg']}" if location else first["msg"]


class MessageRouter:
    """
    Routes incoming messages to appropriate handlers.

    This class contains pure business logic and can be tested
    without real WebSocket connections. Every client message type has
    exactly one entry in the handler table.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager
        self._handlers = self._build_handlers()
        missing = set(ClientMessageType) - self._handlers.keys()
        if missing:
            raise RuntimeError(f"no handler registered for: {sorted(m.value for m in missing)}")

    def _build_handlers(self) -> dict[ClientMessageType, Handler]:
        return {
            ClientMessageType.CREATE_ROOM: self._handle_create_room,
            ClientMessageType.JOIN_ROOM: self._handle_join_room,
            ClientMessageType.LEAVE_ROOM: self._handle_leave_room,
            ClientMessageType.PLAYER_MOVE: self._handle_player_move,
            ClientMessageType.PLAYER_INTERACT: self._handle_player_interact,
            ClientMessageType.GAME_START: self._handle_game_start,
            ClientMessageType.GAME_RESET: self._handle_game_reset,
            ClientMessageType.CHAT_MESSAGE: self._handle_chat_message,
            ClientMessageType.DOOR_STATE_CHANGE: self._handle_door_state_change,
            ClientMessageType.PING: self._handle_ping,
        }

    @property
    def session_manager(self) -> SessionManager:
        return self._session_manager

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.register_connection(connection)
        logger.info("connection opened")

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._session_manager.handle_disconnect(connection)

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        self._session_manager.record_activity(connection)
        try:
            message = parse_client_message(raw_message)
        except UnknownMessageTypeError as e:
            logger.warning("unknown message type", message_type=str(e.message_type))
            await self._session_manager.send_error(connection, ErrorCode.UNKNOWN_MESSAGE_TYPE, str(e))
            return
        except ValidationError as e:
            logger.warning("invalid message", error=str(e))
            await self._session_manager.send_error(connection, ErrorCode.INVALID_MESSAGE, describe_validation_error(e))
            return
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message", error=str(e))
            await self._session_manager.send_error(connection, ErrorCode.INVALID_MESSAGE, str(e))
            return

        await self.dispatch(connection, message)

    async def dispatch(self, connection: ConnectionProtocol, message: ClientMessage) -> None:
        """Run the handler for a validated message, reporting failures to the sender only."""
        handler = self._handlers[ClientMessageType(message.type)]
        try:
            await handler(connection, message)
        except RoomError as e:
            await self._session_manager.send_error(connection, e.code, e.message)
        except ConnectionError:
            # the sender's own transport failed; the receive loop handles the disconnect
            raise
        except Exception:
            logger.exception("unexpected error handling message", message_type=message.type)
            await self._session_manager.send_error(connection, ErrorCode.INTERNAL_ERROR, "Internal server error")

    # --- Handlers ---

    async def _handle_create_room(self, connection: ConnectionProtocol, message: CreateRoomMessage) -> None:
        await self._session_manager.create_room(
            connection,
            message.data.player_name,
            is_private=message.data.is_private,
        )

    async def _handle_join_room(self, connection: ConnectionProtocol, message: JoinRoomMessage) -> None:
        await self._session_manager.join_room(connection, message.data.room_code, message.data.player_name)

    async def _handle_leave_room(self, connection: ConnectionProtocol, _message: ClientMessage) -> None:
        await self._session_manager.leave_room(connection)

    async def _handle_player_move(self, connection: ConnectionProtocol, message: PlayerMoveMessage) -> None:
        position = message.data.position
        await self._session_manager.move(connection, position.x, position.y)

    async def _handle_player_interact(self, connection: ConnectionProtocol, message: PlayerInteractMessage) -> None:
        await self._session_manager.interact(connection, message.data.object_id, message.data.interaction_type)

    async def _handle_game_start(self, connection: ConnectionProtocol, _message: ClientMessage) -> None:
        await self._session_manager.start_game(connection)

    async def _handle_game_reset(self, connection: ConnectionProtocol, _message: ClientMessage) -> None:
        await self._session_manager.reset_game(connection)

    async def _handle_chat_message(self, connection: ConnectionProtocol, message: ChatMessage) -> None:
        await self._session_manager.chat(connection, message.data.message)

    async def _handle_door_state_change(self, connection: ConnectionProtocol, message: DoorStateChangeMessage) -> None:
        await self._session_manager.change_door_state(
            connection,
            message.data.door_id,
            is_open=message.data.is_open,
            from_room=message.data.from_room,
            target_room=message.data.target_room,
        )

    async def _handle_ping(self, connection: ConnectionProtocol, _message: ClientMessage) -> None:
        await self._session_manager.handle_ping(connection)
