"""Relay of shared-table deltas between room members.

Nothing here validates move legality. The sender is assumed to have
applied the change locally already, so table deltas go to everyone else
and never back to the sender. Stale card references are ignored silently.
"""

import random
from typing import Any

import structlog

from tabletop.messaging.types import (
    CardMovedMessage,
    CardPositionUpdatedMessage,
    CardRemovedMessage,
    CardShownMessage,
    CardUpdatedMessage,
    DiceClosedMessage,
    DiceRolledMessage,
    NwoPlayedMessage,
    NwoRemovedMessage,
    OpponentHandUpdateMessage,
    PlayerDeckReadyMessage,
)
from tabletop.session.models import CardInstance, Position, Session, normalize_rotation
from tabletop.session.types import Delivery, OthersTarget, RoomTarget

logger = structlog.get_logger()


class SharedStateReplicator:
    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    @staticmethod
    def _to_others(sender: str, message: dict[str, Any]) -> list[Delivery]:
        return [Delivery(message, OthersTarget(sender))]

    def place_card(self, session: Session, sender: str, card: dict[str, Any], position: Position) -> list[Delivery]:
        if not session.has_player(sender):
            return []
        instance = CardInstance(card=card, position=position, owner_connection_id=sender)
        session.table.append(instance)
        card_index = len(session.table) - 1
        logger.debug("card placed", room_id=session.room_id, card_index=card_index, instance_id=instance.instance_id)
        moved = CardMovedMessage(player_id=sender, card_index=card_index, card=instance.to_view())
        return self._to_others(sender, moved.model_dump())

    def update_card(
        self,
        session: Session,
        sender: str,
        *,
        card_index: int | None = None,
        instance_id: str | None = None,
        rotation: int | None = None,
        tokens: int | None = None,
    ) -> list[Delivery]:
        """Apply rotation and/or token changes to one table card."""
        found = session.find_card(card_index, instance_id) if session.has_player(sender) else None
        if found is None:
            return []
        index, card = found
        if tokens is not None and tokens < 0:
            raise ValueError(f"token count must be non-negative, got {tokens}")

        if rotation is not None:
            card.rotation_degrees = normalize_rotation(rotation)
        if tokens is not None:
            card.token_count = tokens

        updated = CardUpdatedMessage(
            player_id=sender,
            card_index=index,
            instance_id=card.instance_id,
            rotation=card.rotation_degrees if rotation is not None else None,
            tokens=card.token_count if tokens is not None else None,
        )
        return self._to_others(sender, updated.model_dump())

    def update_card_position(
        self,
        session: Session,
        sender: str,
        position: Position,
        *,
        card_index: int | None = None,
        instance_id: str | None = None,
    ) -> list[Delivery]:
        found = session.find_card(card_index, instance_id) if session.has_player(sender) else None
        if found is None:
            return []
        index, card = found
        card.position = position
        moved = CardPositionUpdatedMessage(
            player_id=sender,
            card_index=index,
            instance_id=card.instance_id,
            position=position,
        )
        return self._to_others(sender, moved.model_dump())

    def remove_card(
        self,
        session: Session,
        sender: str,
        *,
        card_index: int | None = None,
        instance_id: str | None = None,
    ) -> list[Delivery]:
        """Remove a card; every later card's index shifts down by one.

        The broadcast carries the removed index so clients can apply the
        same shift to their own table.
        """
        found = session.find_card(card_index, instance_id) if session.has_player(sender) else None
        if found is None:
            return []
        index, card = found
        del session.table[index]
        logger.debug("card removed", room_id=session.room_id, card_index=index, table_size=len(session.table))
        removed = CardRemovedMessage(player_id=sender, card_index=index, instance_id=card.instance_id)
        return self._to_others(sender, removed.model_dump())

    # --- Opaque relays ---

    def hand_count_update(self, session: Session, sender: str, hand_counts: dict[str, Any]) -> list[Delivery]:
        if not session.has_player(sender):
            return []
        update = OpponentHandUpdateMessage(player_id=sender, hand_counts=hand_counts)
        return self._to_others(sender, update.model_dump())

    def show_card(self, session: Session, sender: str, card: dict[str, Any]) -> list[Delivery]:
        if not session.has_player(sender):
            return []
        return self._to_others(sender, CardShownMessage(player_id=sender, card=card).model_dump())

    def set_deck(self, session: Session, sender: str) -> list[Delivery]:
        player = session.get_player(sender)
        if player is None:
            return []
        player.deck_ready = True
        return self._to_others(sender, PlayerDeckReadyMessage(player_id=sender).model_dump())

    def play_nwo(self, session: Session, sender: str, color: str, card: dict[str, Any]) -> list[Delivery]:
        if not session.has_player(sender):
            return []
        return self._to_others(sender, NwoPlayedMessage(player_id=sender, color=color, card=card).model_dump())

    def remove_nwo(self, session: Session, sender: str, color: str) -> list[Delivery]:
        if not session.has_player(sender):
            return []
        return self._to_others(sender, NwoRemovedMessage(player_id=sender, color=color).model_dump())

    def roll_dice(self, session: Session, sender: str, sides: int) -> list[Delivery]:
        """Roll two dice server-side so every member sees the same faces."""
        if not session.has_player(sender):
            return []
        rolled = DiceRolledMessage(
            player_id=sender,
            sides=sides,
            dice1=self._rng.randint(1, sides),
            dice2=self._rng.randint(1, sides),
        )
        logger.info("dice rolled", room_id=session.room_id, dice1=rolled.dice1, dice2=rolled.dice2)
        return [Delivery(rolled.model_dump(), RoomTarget())]

    def close_dice(self, session: Session, sender: str) -> list[Delivery]:
        if not session.has_player(sender):
            return []
        return self._to_others(sender, DiceClosedMessage(player_id=sender).model_dump())
