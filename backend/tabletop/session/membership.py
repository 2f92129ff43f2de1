"""Roster changes for a session: joins, leaves, capacity."""

import structlog

from tabletop.messaging.types import (
    PlayerJoinedMessage,
    PlayerLeftMessage,
    RoomFullMessage,
    RoomJoinedMessage,
)
from tabletop.session.models import Player, Session
from tabletop.session.phase import PhaseStateMachine
from tabletop.session.types import ConnectionTarget, Delivery, OthersTarget, RoomTarget

logger = structlog.get_logger()


def room_snapshot(session: Session, connection_id: str) -> RoomJoinedMessage:
    """Full room state for a connection that just joined."""
    return RoomJoinedMessage(
        room_id=session.room_id,
        player_id=connection_id,
        players=session.get_player_info(),
        max_players=session.max_players,
        phase=session.phase,
        turn_number=session.turn_number,
        current_turn=session.current_turn_player_id,
        ready_count=len(session.ready_for_play),
        table=session.get_table_view(),
    )


class MembershipController:
    def __init__(self, phase: PhaseStateMachine) -> None:
        self._phase = phase

    def join(self, session: Session, connection_id: str, display_name: str) -> list[Delivery]:
        """Add a player, or reject them if the room is at capacity.

        A repeated join from a current member changes nothing and only
        re-sends the snapshot to that member.
        """
        if session.has_player(connection_id):
            return [Delivery(room_snapshot(session, connection_id).model_dump(), ConnectionTarget(connection_id))]

        if session.is_full:
            logger.info("room full", room_id=session.room_id, max_players=session.max_players)
            rejection = RoomFullMessage(room_id=session.room_id, max_players=session.max_players)
            return [Delivery(rejection.model_dump(), ConnectionTarget(connection_id))]

        session.players.append(Player(connection_id=connection_id, display_name=display_name))
        logger.info(
            "player joined",
            room_id=session.room_id,
            player_name=display_name,
            player_count=session.player_count,
            max_players=session.max_players,
        )

        joined = PlayerJoinedMessage(
            player_id=connection_id,
            player_name=display_name,
            player_count=session.player_count,
            max_players=session.max_players,
        )
        return [
            Delivery(room_snapshot(session, connection_id).model_dump(), ConnectionTarget(connection_id)),
            Delivery(joined.model_dump(), OthersTarget(connection_id)),
        ]

    def leave(self, session: Session, connection_id: str) -> list[Delivery]:
        """Remove a player and notify whoever remains.

        Unknown connections are a no-op. Destroying an emptied session is
        left to the registry.
        """
        index = session.index_of(connection_id)
        if index is None:
            return []

        player = session.players.pop(index)
        session.ready_for_play.discard(connection_id)
        session.knocked.discard(connection_id)
        logger.info(
            "player left",
            room_id=session.room_id,
            player_name=player.display_name,
            remaining_players=session.player_count,
        )

        if session.is_empty:
            return []

        left = PlayerLeftMessage(
            player_id=connection_id,
            player_name=player.display_name,
            remaining_players=session.player_count,
        )
        deliveries = [Delivery(left.model_dump(), RoomTarget())]
        deliveries.extend(self._phase.handle_departure(session, connection_id, index))
        return deliveries
