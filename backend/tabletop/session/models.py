"""Authoritative in-memory state for one card table room."""

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel

DEFAULT_CAPACITY = 2
ROTATION_STEP = 90
FULL_TURN = 360


class Phase(StrEnum):
    SETUP = "setup"
    PLAYING = "playing"


class Position(BaseModel):
    """Table coordinates, in client pixels."""

    x: float
    y: float


class PlayerInfo(BaseModel):
    """Roster entry sent to clients."""

    player_id: str
    name: str


class CardView(BaseModel):
    """Wire form of a card on the table."""

    instance_id: str
    card: dict[str, Any]
    position: Position
    rotation: int
    tokens: int
    owner_id: str


def normalize_rotation(degrees: int) -> int:
    """Wrap a rotation into [0, 360). Callers guarantee a multiple of 90."""
    return degrees % FULL_TURN


@dataclass
class Player:
    connection_id: str
    display_name: str
    deck_ready: bool = False


@dataclass
class CardInstance:
    """A card placed on the shared table.

    card is the client's payload and is never inspected. The remaining
    fields are presentation attributes the server owns.
    """

    card: dict[str, Any]
    position: Position
    owner_connection_id: str
    rotation_degrees: int = 0
    token_count: int = 0
    instance_id: str = field(default_factory=lambda: uuid4().hex)

    def to_view(self) -> CardView:
        return CardView(
            instance_id=self.instance_id,
            card=self.card,
            position=self.position,
            rotation=self.rotation_degrees,
            tokens=self.token_count,
            owner_id=self.owner_connection_id,
        )


@dataclass
class Session:
    """State of one room, from the first join until the roster empties.

    players keeps join order, which is the turn order. A card's index in
    table is a valid handle for it until the next removal shifts it.
    """

    room_id: str
    max_players: int = DEFAULT_CAPACITY
    phase: Phase = Phase.SETUP
    turn_number: int = 1
    current_turn_player_id: str | None = None
    players: list[Player] = field(default_factory=list)
    ready_for_play: set[str] = field(default_factory=set)
    knocked: set[str] = field(default_factory=set)
    table: list[CardInstance] = field(default_factory=list)
    created_at: float = field(default_factory=time.monotonic)

    def __post_init__(self) -> None:
        if self.max_players < 1:
            raise ValueError(f"max_players must be at least 1, got {self.max_players}")

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def is_empty(self) -> bool:
        return not self.players

    @property
    def is_full(self) -> bool:
        return self.player_count >= self.max_players

    @property
    def player_ids(self) -> list[str]:
        return [p.connection_id for p in self.players]

    def get_player(self, connection_id: str) -> Player | None:
        for player in self.players:
            if player.connection_id == connection_id:
                return player
        return None

    def has_player(self, connection_id: str) -> bool:
        return self.get_player(connection_id) is not None

    def index_of(self, connection_id: str) -> int | None:
        for i, player in enumerate(self.players):
            if player.connection_id == connection_id:
                return i
        return None

    def find_card(
        self,
        card_index: int | None = None,
        instance_id: str | None = None,
    ) -> tuple[int, CardInstance] | None:
        """Resolve a table card by instance id, falling back to its index.

        Returns None for a stale or unknown reference.
        """
        if instance_id is not None:
            for i, card in enumerate(self.table):
                if card.instance_id == instance_id:
                    return i, card
            return None
        if card_index is not None and 0 <= card_index < len(self.table):
            return card_index, self.table[card_index]
        return None

    def get_player_info(self) -> list[PlayerInfo]:
        return [PlayerInfo(player_id=p.connection_id, name=p.display_name) for p in self.players]

    def get_table_view(self) -> list[CardView]:
        return [card.to_view() for card in self.table]
