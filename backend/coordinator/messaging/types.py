"""Wire message models for the room coordinator WebSocket protocol.

Every frame is a JSON envelope ``{"type": str, "data": object}``. Field names
inside ``data`` are camelCase on the wire and snake_case in Python; models
accept both on input and always emit camelCase.
"""

from enum import StrEnum
from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F

MAX_PLAYER_NAME_LENGTH = 20
MAX_CHAT_LENGTH = 200
ROOM_CODE_LENGTH = 6


class ClientMessageType(StrEnum):
    CREATE_ROOM = "create_room"
    JOIN_ROOM = "join_room"
    LEAVE_ROOM = "leave_room"
    PLAYER_MOVE = "player_move"
    PLAYER_INTERACT = "player_interact"
    GAME_START = "game_start"
    GAME_RESET = "game_reset"
    CHAT_MESSAGE = "chat_message"
    DOOR_STATE_CHANGE = "door_state_change"
    PING = "ping"


class ServerMessageType(StrEnum):
    ROOM_CREATED = "room_created"
    ROOM_JOINED = "room_joined"
    ROOM_LEFT = "room_left"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    PLAYER_MOVED = "player_moved"
    PLAYER_INTERACTED = "player_interacted"
    GAME_STARTED = "game_started"
    GAME_RESET = "game_reset"
    CHAT_MESSAGE = "chat_message"
    DOOR_STATE_CHANGE = "door_state_change"
    PONG = "pong"
    ERROR = "error"


class ErrorCode(StrEnum):
    INVALID_MESSAGE = "invalid_message"
    UNKNOWN_MESSAGE_TYPE = "unknown_message_type"
    ROOM_NOT_FOUND = "room_not_found"
    ROOM_FULL = "room_full"
    NOT_HOST = "not_host"
    NOT_IN_ROOM = "not_in_room"
    ALREADY_IN_ROOM = "already_in_room"
    GAME_ALREADY_STARTED = "game_already_started"
    GAME_IN_PROGRESS = "game_in_progress"
    EMPTY_ROOM = "empty_room"
    CODE_GENERATION_FAILED = "code_generation_failed"
    RATE_LIMITED = "rate_limited"
    INTERNAL_ERROR = "internal_error"


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        validate_by_name=True,
        validate_by_alias=True,
        str_strip_whitespace=True,
    )


def _reject_control_chars(value: str, field_name: str) -> str:
    if any((ord(c) < _SPACE_ORD and c not in ("\t", "\n", "\r")) or ord(c) == _DEL_ORD for c in value):
        raise ValueError(f"{field_name} must not contain control characters")
    return value


PlayerName = Annotated[str, Field(min_length=1, max_length=MAX_PLAYER_NAME_LENGTH)]
FiniteNumber = Annotated[float, Field(strict=True, allow_inf_nan=False)]
Identifier = Annotated[str, Field(min_length=1, max_length=100)]


# --- Inbound payloads ---


class EmptyData(WireModel):
    pass


class CreateRoomData(WireModel):
    player_name: PlayerName
    is_private: StrictBool = False

    @field_validator("player_name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        return _reject_control_chars(v, "playerName")


class JoinRoomData(WireModel):
    room_code: str = Field(min_length=1, max_length=ROOM_CODE_LENGTH, pattern=r"^[a-zA-Z0-9]+$")
    player_name: PlayerName

    @field_validator("room_code")
    @classmethod
    def _normalize_code(cls, v: str) -> str:
        return v.upper()

    @field_validator("player_name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        return _reject_control_chars(v, "playerName")


class Position(WireModel):
    x: FiniteNumber
    y: FiniteNumber


class PlayerMoveData(WireModel):
    position: Position


class PlayerInteractData(WireModel):
    object_id: Identifier
    interaction_type: Identifier


class ChatMessageData(WireModel):
    message: str = Field(min_length=1, max_length=MAX_CHAT_LENGTH)

    @field_validator("message")
    @classmethod
    def _validate_message(cls, v: str) -> str:
        return _reject_control_chars(v, "message")


class DoorStateChangeData(WireModel):
    door_id: Identifier
    is_open: StrictBool
    from_room: str | None = Field(default=None, max_length=100)
    target_room: str | None = Field(default=None, max_length=100)


# --- Inbound envelopes ---


class CreateRoomMessage(BaseModel):
    type: Literal[ClientMessageType.CREATE_ROOM] = ClientMessageType.CREATE_ROOM
    data: CreateRoomData


class JoinRoomMessage(BaseModel):
    type: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM
    data: JoinRoomData


class LeaveRoomMessage(BaseModel):
    type: Literal[ClientMessageType.LEAVE_ROOM] = ClientMessageType.LEAVE_ROOM
    data: EmptyData = Field(default_factory=EmptyData)


class PlayerMoveMessage(BaseModel):
    type: Literal[ClientMessageType.PLAYER_MOVE] = ClientMessageType.PLAYER_MOVE
    data: PlayerMoveData


class PlayerInteractMessage(BaseModel):
    type: Literal[ClientMessageType.PLAYER_INTERACT] = ClientMessageType.PLAYER_INTERACT
    data: PlayerInteractData


class GameStartMessage(BaseModel):
    type: Literal[ClientMessageType.GAME_START] = ClientMessageType.GAME_START
    data: EmptyData = Field(default_factory=EmptyData)


class GameResetMessage(BaseModel):
    type: Literal[ClientMessageType.GAME_RESET] = ClientMessageType.GAME_RESET
    data: EmptyData = Field(default_factory=EmptyData)


class ChatMessage(BaseModel):
    type: Literal[ClientMessageType.CHAT_MESSAGE] = ClientMessageType.CHAT_MESSAGE
    data: ChatMessageData


class DoorStateChangeMessage(BaseModel):
    type: Literal[ClientMessageType.DOOR_STATE_CHANGE] = ClientMessageType.DOOR_STATE_CHANGE
    data: DoorStateChangeData


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING
    data: EmptyData = Field(default_factory=EmptyData)


ClientMessage = (
    CreateRoomMessage
    | JoinRoomMessage
    | LeaveRoomMessage
    | PlayerMoveMessage
    | PlayerInteractMessage
    | GameStartMessage
    | GameResetMessage
    | ChatMessage
    | DoorStateChangeMessage
    | PingMessage
)

_CLIENT_MESSAGE_TYPES = frozenset(t.value for t in ClientMessageType)

_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(
    Annotated[ClientMessage, Field(discriminator="type")],
)


class UnknownMessageTypeError(ValueError):
    """The envelope's ``type`` is not one of the known client message types."""

    def __init__(self, message_type: object) -> None:
        self.message_type = message_type
        super().__init__(f"Unknown message type: {message_type}")


def parse_client_message(raw: dict[str, Any]) -> ClientMessage:
    """Validate a decoded envelope into a typed client message.

    Raises UnknownMessageTypeError for an unrecognized ``type`` and pydantic's
    ValidationError for missing or malformed fields.
    """
    message_type = raw.get("type")
    if not isinstance(message_type, str):
        raise ValueError("Message must have a string 'type' field")
    if message_type not in _CLIENT_MESSAGE_TYPES:
        raise UnknownMessageTypeError(message_type)
    if raw.get("data") is None:
        raw = {**raw, "data": {}}
    elif not isinstance(raw["data"], dict):
        raise ValueError("Message 'data' field must be an object")
    return _client_message_adapter.validate_python(raw)


# --- Outbound payloads ---


class PlayerSnapshot(WireModel):
    """Member info included in room_created, room_joined and game_started."""

    player_id: str
    name: str
    position: Position
    is_host: bool


class RoomSummary(WireModel):
    """Public room info for the lobby listing and join replies."""

    room_code: str
    player_count: int
    max_players: int
    host_name: str
    game_started: bool
    is_private: bool


class ChatEntry(WireModel):
    player_id: str
    player_name: str
    message: str
    timestamp: int


class OutboundData(WireModel):
    """Base for server-to-client payloads; ``envelope()`` builds the wire dict."""

    message_type: ClassVar[ServerMessageType]

    def envelope(self) -> dict[str, Any]:
        return {"type": self.message_type.value, "data": self.model_dump(mode="json", by_alias=True)}


class RoomCreatedData(OutboundData):
    message_type = ServerMessageType.ROOM_CREATED

    room_code: str
    player_id: str
    player_name: str
    is_host: bool = True
    room: RoomSummary
    players: list[PlayerSnapshot]


class RoomJoinedData(OutboundData):
    message_type = ServerMessageType.ROOM_JOINED

    room_code: str
    player_id: str
    is_host: bool
    room: RoomSummary
    players: list[PlayerSnapshot]
    chat_history: list[ChatEntry] = Field(default_factory=list)


class RoomLeftData(OutboundData):
    message_type = ServerMessageType.ROOM_LEFT

    room_code: str


class PlayerJoinedData(OutboundData):
    message_type = ServerMessageType.PLAYER_JOINED

    player_id: str
    name: str
    position: Position


class PlayerLeftData(OutboundData):
    message_type = ServerMessageType.PLAYER_LEFT

    player_id: str
    player_name: str


class PlayerMovedData(OutboundData):
    message_type = ServerMessageType.PLAYER_MOVED

    player_id: str
    position: Position


class PlayerInteractedData(OutboundData):
    message_type = ServerMessageType.PLAYER_INTERACTED

    player_id: str
    object_id: str
    interaction_type: str
    timestamp: int


class GameStartedData(OutboundData):
    message_type = ServerMessageType.GAME_STARTED

    timestamp: int
    players: list[PlayerSnapshot]


class GameResetData(OutboundData):
    message_type = ServerMessageType.GAME_RESET

    timestamp: int


class ChatBroadcastData(ChatEntry, OutboundData):
    message_type = ServerMessageType.CHAT_MESSAGE


class DoorStateChangedData(OutboundData):
    message_type = ServerMessageType.DOOR_STATE_CHANGE

    door_id: str
    is_open: bool
    from_room: str | None
    target_room: str | None
    changed_by: str


class PongData(OutboundData):
    message_type = ServerMessageType.PONG

    timestamp: int


class ErrorMessage(BaseModel):
    """Error envelope; sent only to the connection that caused the error."""

    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    code: ErrorCode
    message: str
