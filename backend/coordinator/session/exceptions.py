"""Typed errors for room and session rule violations.

Every RoomError is recoverable: the session manager catches it at the
handler boundary and reports it to the offending connection only, using the
error code carried by the exception class. Nothing here closes a connection.
"""

from coordinator.messaging.types import ErrorCode


class RoomError(Exception):
    """Base for errors reported to a single connection as an error envelope."""

    code: ErrorCode = ErrorCode.INVALID_MESSAGE
    default_message = "Invalid request"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class InvalidMessageError(RoomError):
    """Malformed or missing fields in an otherwise routable message."""

    code = ErrorCode.INVALID_MESSAGE
    default_message = "Invalid message"


class RoomNotFoundError(RoomError):
    code = ErrorCode.ROOM_NOT_FOUND
    default_message = "Room not found"


class RoomFullError(RoomError):
    code = ErrorCode.ROOM_FULL
    default_message = "Room is full"


class NotHostError(RoomError):
    code = ErrorCode.NOT_HOST
    default_message = "Only the host can do that"


class StateError(RoomError):
    """The action is not valid for the current room or connection state."""


class GameAlreadyStartedError(StateError):
    code = ErrorCode.GAME_ALREADY_STARTED
    default_message = "Game already started"


class GameInProgressError(StateError):
    code = ErrorCode.GAME_IN_PROGRESS
    default_message = "Game already in progress"


class AlreadyInRoomError(StateError):
    code = ErrorCode.ALREADY_IN_ROOM
    default_message = "Already in a room"


class NotInRoomError(StateError):
    code = ErrorCode.NOT_IN_ROOM
    default_message = "You must join a room first"


class EmptyRoomError(StateError):
    code = ErrorCode.EMPTY_ROOM
    default_message = "Need at least 1 player to start"


class CodeGenerationExhaustedError(RoomError):
    """No unused room code was found within the retry budget."""

    code = ErrorCode.CODE_GENERATION_FAILED
    default_message = "Failed to create room"
