from enum import StrEnum
from typing import Annotated, Any, Literal, Self

from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator

from tabletop.session.models import ROTATION_STEP, CardView, Phase, PlayerInfo, Position, normalize_rotation

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F

MAX_PLAYER_COUNT = 8
MAX_DICE_SIDES = 100

_ROOM_ID_FIELD = Field(min_length=1, max_length=50, pattern=r"^[a-zA-Z0-9_-]+$")


class ClientMessageType(StrEnum):
    JOIN = "join"
    LEAVE = "leave"
    SET_READY = "set_ready"
    END_TURN = "end_turn"
    PLACE_CARD = "place_card"
    UPDATE_CARD = "update_card"
    UPDATE_CARD_POSITION = "update_card_position"
    REMOVE_CARD = "remove_card"
    HAND_COUNT_UPDATE = "hand_count_update"
    SHOW_CARD = "show_card"
    SET_DECK = "set_deck"
    PLAY_NWO = "play_nwo"
    REMOVE_NWO = "remove_nwo"
    ROLL_DICE = "roll_dice"
    CLOSE_DICE = "close_dice"
    PING = "ping"


class SessionMessageType(StrEnum):
    ROOM_JOINED = "room_joined"
    ROOM_FULL = "room_full"
    ROOM_LEFT = "room_left"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    SETUP_PROGRESS = "setup_progress"
    GAME_STARTED = "game_started"
    TURN_CHANGED = "turn_changed"
    TURN_NUMBER_UPDATED = "turn_number_updated"
    CARD_MOVED = "card_moved"
    CARD_UPDATED = "card_updated"
    CARD_POSITION_UPDATED = "card_position_updated"
    CARD_REMOVED = "card_removed"
    OPPONENT_HAND_UPDATE = "opponent_hand_update"
    CARD_SHOWN = "card_shown"
    PLAYER_DECK_READY = "player_deck_ready"
    NWO_PLAYED = "nwo_played"
    NWO_REMOVED = "nwo_removed"
    DICE_ROLLED = "dice_rolled"
    DICE_CLOSED = "dice_closed"
    PONG = "pong"
    ERROR = "session_error"


class SessionErrorCode(StrEnum):
    ALREADY_IN_ROOM = "already_in_room"
    SERVER_FULL = "server_full"
    INVALID_MESSAGE = "invalid_message"
    RATE_LIMITED = "rate_limited"
    ACTION_FAILED = "action_failed"


def _reject_control_characters(value: str) -> str:
    if any((ord(c) < _SPACE_ORD and c not in ("\t", "\n", "\r")) or ord(c) == _DEL_ORD for c in value):
        raise ValueError("text must not contain control characters")
    return value


# --- Client -> server ---


class JoinMessage(BaseModel):
    type: Literal[ClientMessageType.JOIN] = ClientMessageType.JOIN
    room_id: str = _ROOM_ID_FIELD
    player_name: str = Field(min_length=1, max_length=50)
    player_count: int | None = Field(default=None, ge=1, le=MAX_PLAYER_COUNT)

    @field_validator("player_name")
    @classmethod
    def _validate_player_name(cls, v: str) -> str:
        return _reject_control_characters(v)


class LeaveMessage(BaseModel):
    type: Literal[ClientMessageType.LEAVE] = ClientMessageType.LEAVE
    room_id: str = _ROOM_ID_FIELD


class SetReadyMessage(BaseModel):
    type: Literal[ClientMessageType.SET_READY] = ClientMessageType.SET_READY
    room_id: str = _ROOM_ID_FIELD


class EndTurnMessage(BaseModel):
    type: Literal[ClientMessageType.END_TURN] = ClientMessageType.END_TURN
    room_id: str = _ROOM_ID_FIELD


class PlaceCardMessage(BaseModel):
    type: Literal[ClientMessageType.PLACE_CARD] = ClientMessageType.PLACE_CARD
    room_id: str = _ROOM_ID_FIELD
    card: dict[str, Any]
    position: Position


class _CardRefMessage(BaseModel):
    """Base for messages addressing a table card.

    card_index is the positional handle; instance_id is the stable one and
    takes precedence when both are sent.
    """

    room_id: str = _ROOM_ID_FIELD
    card_index: int | None = Field(default=None, ge=0)
    instance_id: str | None = Field(default=None, min_length=1, max_length=64)

    @model_validator(mode="after")
    def _require_reference(self) -> Self:
        if self.card_index is None and self.instance_id is None:
            raise ValueError("card_index or instance_id is required")
        return self


class UpdateCardMessage(_CardRefMessage):
    type: Literal[ClientMessageType.UPDATE_CARD] = ClientMessageType.UPDATE_CARD
    rotation: int | None = None
    tokens: int | None = Field(default=None, ge=0)

    @field_validator("rotation")
    @classmethod
    def _validate_rotation(cls, v: int | None) -> int | None:
        if v is None:
            return None
        if v % ROTATION_STEP != 0:
            raise ValueError(f"rotation must be a multiple of {ROTATION_STEP}")
        return normalize_rotation(v)


class UpdateCardPositionMessage(_CardRefMessage):
    type: Literal[ClientMessageType.UPDATE_CARD_POSITION] = ClientMessageType.UPDATE_CARD_POSITION
    position: Position


class RemoveCardMessage(_CardRefMessage):
    type: Literal[ClientMessageType.REMOVE_CARD] = ClientMessageType.REMOVE_CARD


class HandCountUpdateMessage(BaseModel):
    type: Literal[ClientMessageType.HAND_COUNT_UPDATE] = ClientMessageType.HAND_COUNT_UPDATE
    room_id: str = _ROOM_ID_FIELD
    hand_counts: dict[str, Any]


class ShowCardMessage(BaseModel):
    type: Literal[ClientMessageType.SHOW_CARD] = ClientMessageType.SHOW_CARD
    room_id: str = _ROOM_ID_FIELD
    card: dict[str, Any]


class SetDeckMessage(BaseModel):
    type: Literal[ClientMessageType.SET_DECK] = ClientMessageType.SET_DECK
    room_id: str = _ROOM_ID_FIELD


class PlayNwoMessage(BaseModel):
    type: Literal[ClientMessageType.PLAY_NWO] = ClientMessageType.PLAY_NWO
    room_id: str = _ROOM_ID_FIELD
    color: str = Field(min_length=1, max_length=20)
    card: dict[str, Any]


class RemoveNwoMessage(BaseModel):
    type: Literal[ClientMessageType.REMOVE_NWO] = ClientMessageType.REMOVE_NWO
    room_id: str = _ROOM_ID_FIELD
    color: str = Field(min_length=1, max_length=20)


class RollDiceMessage(BaseModel):
    type: Literal[ClientMessageType.ROLL_DICE] = ClientMessageType.ROLL_DICE
    room_id: str = _ROOM_ID_FIELD
    sides: int = Field(default=6, ge=2, le=MAX_DICE_SIDES)


class CloseDiceMessage(BaseModel):
    type: Literal[ClientMessageType.CLOSE_DICE] = ClientMessageType.CLOSE_DICE
    room_id: str = _ROOM_ID_FIELD


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


ClientMessage = (
    JoinMessage
    | LeaveMessage
    | SetReadyMessage
    | EndTurnMessage
    | PlaceCardMessage
    | UpdateCardMessage
    | UpdateCardPositionMessage
    | RemoveCardMessage
    | HandCountUpdateMessage
    | ShowCardMessage
    | SetDeckMessage
    | PlayNwoMessage
    | RemoveNwoMessage
    | RollDiceMessage
    | CloseDiceMessage
    | PingMessage
)

_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(
    Annotated[ClientMessage, Field(discriminator="type")],
)


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Parse a decoded frame into its typed message, keyed on "type"."""
    return _client_message_adapter.validate_python(data)


# --- Server -> client ---


class RoomJoinedMessage(BaseModel):
    type: Literal[SessionMessageType.ROOM_JOINED] = SessionMessageType.ROOM_JOINED
    room_id: str
    player_id: str
    players: list[PlayerInfo]
    max_players: int
    phase: Phase
    turn_number: int
    current_turn: str | None
    ready_count: int
    table: list[CardView]


class RoomFullMessage(BaseModel):
    type: Literal[SessionMessageType.ROOM_FULL] = SessionMessageType.ROOM_FULL
    room_id: str
    max_players: int


class RoomLeftMessage(BaseModel):
    type: Literal[SessionMessageType.ROOM_LEFT] = SessionMessageType.ROOM_LEFT
    room_id: str


class PlayerJoinedMessage(BaseModel):
    type: Literal[SessionMessageType.PLAYER_JOINED] = SessionMessageType.PLAYER_JOINED
    player_id: str
    player_name: str
    player_count: int
    max_players: int


class PlayerLeftMessage(BaseModel):
    type: Literal[SessionMessageType.PLAYER_LEFT] = SessionMessageType.PLAYER_LEFT
    player_id: str
    player_name: str
    remaining_players: int


class SetupProgressMessage(BaseModel):
    type: Literal[SessionMessageType.SETUP_PROGRESS] = SessionMessageType.SETUP_PROGRESS
    ready_count: int
    required_count: int
    max_players: int


class GameStartedMessage(BaseModel):
    type: Literal[SessionMessageType.GAME_STARTED] = SessionMessageType.GAME_STARTED
    current_turn: str
    starting_player_name: str
    turn_number: int


class TurnChangedMessage(BaseModel):
    type: Literal[SessionMessageType.TURN_CHANGED] = SessionMessageType.TURN_CHANGED
    current_turn: str


class TurnNumberUpdatedMessage(BaseModel):
    type: Literal[SessionMessageType.TURN_NUMBER_UPDATED] = SessionMessageType.TURN_NUMBER_UPDATED
    turn_number: int


class CardMovedMessage(BaseModel):
    type: Literal[SessionMessageType.CARD_MOVED] = SessionMessageType.CARD_MOVED
    player_id: str
    card_index: int
    card: CardView


class CardUpdatedMessage(BaseModel):
    type: Literal[SessionMessageType.CARD_UPDATED] = SessionMessageType.CARD_UPDATED
    player_id: str
    card_index: int
    instance_id: str
    rotation: int | None = None
    tokens: int | None = None


class CardPositionUpdatedMessage(BaseModel):
    type: Literal[SessionMessageType.CARD_POSITION_UPDATED] = SessionMessageType.CARD_POSITION_UPDATED
    player_id: str
    card_index: int
    instance_id: str
    position: Position


class CardRemovedMessage(BaseModel):
    type: Literal[SessionMessageType.CARD_REMOVED] = SessionMessageType.CARD_REMOVED
    player_id: str
    card_index: int
    instance_id: str


class OpponentHandUpdateMessage(BaseModel):
    type: Literal[SessionMessageType.OPPONENT_HAND_UPDATE] = SessionMessageType.OPPONENT_HAND_UPDATE
    player_id: str
    hand_counts: dict[str, Any]


class CardShownMessage(BaseModel):
    type: Literal[SessionMessageType.CARD_SHOWN] = SessionMessageType.CARD_SHOWN
    player_id: str
    card: dict[str, Any]


class PlayerDeckReadyMessage(BaseModel):
    type: Literal[SessionMessageType.PLAYER_DECK_READY] = SessionMessageType.PLAYER_DECK_READY
    player_id: str


class NwoPlayedMessage(BaseModel):
    type: Literal[SessionMessageType.NWO_PLAYED] = SessionMessageType.NWO_PLAYED
    player_id: str
    color: str
    card: dict[str, Any]


class NwoRemovedMessage(BaseModel):
    type: Literal[SessionMessageType.NWO_REMOVED] = SessionMessageType.NWO_REMOVED
    player_id: str
    color: str


class DiceRolledMessage(BaseModel):
    type: Literal[SessionMessageType.DICE_ROLLED] = SessionMessageType.DICE_ROLLED
    player_id: str
    sides: int
    dice1: int
    dice2: int


class DiceClosedMessage(BaseModel):
    type: Literal[SessionMessageType.DICE_CLOSED] = SessionMessageType.DICE_CLOSED
    player_id: str


class PongMessage(BaseModel):
    type: Literal[SessionMessageType.PONG] = SessionMessageType.PONG


class ErrorMessage(BaseModel):
    type: Literal[SessionMessageType.ERROR] = SessionMessageType.ERROR
    code: SessionErrorCode
    message: str
