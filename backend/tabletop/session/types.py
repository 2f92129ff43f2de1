"""
Routing targets and listing models for the session layer.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from tabletop.session.models import Phase


@dataclass(frozen=True)
class RoomTarget:
    """Deliver to every member of the room."""


@dataclass(frozen=True)
class OthersTarget:
    """Deliver to every member except the sender."""

    exclude_connection_id: str


@dataclass(frozen=True)
class ConnectionTarget:
    """Deliver to one connection, member or not."""

    connection_id: str


DeliveryTarget = RoomTarget | OthersTarget | ConnectionTarget


@dataclass(frozen=True)
class Delivery:
    """An outbound message and who should receive it."""

    message: dict[str, Any]
    target: DeliveryTarget


class RoomInfo(BaseModel):
    """Room information for the /rooms listing."""

    room_id: str
    player_count: int
    max_players: int
    phase: Phase
    turn_number: int
    players: list[str]
    age_seconds: float
