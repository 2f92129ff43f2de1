"""Setup -> Playing transition and the knock-driven turn rotation."""

import random

import structlog

from tabletop.messaging.types import (
    GameStartedMessage,
    SetupProgressMessage,
    TurnChangedMessage,
    TurnNumberUpdatedMessage,
)
from tabletop.session.models import Phase, Session
from tabletop.session.types import Delivery, RoomTarget

logger = structlog.get_logger()


class PhaseStateMachine:
    """Drives a session through Setup and the turn rotation in Playing.

    Setup ends once every current member has sent a ready signal. In
    Playing, any member may knock: the knock is recorded and the turn always
    moves to the player after the current one. When every member has knocked
    the round is complete and the turn number goes up.

    Knocks are deliberately not gated on current_turn_player_id.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def set_ready(self, session: Session, connection_id: str) -> list[Delivery]:
        if session.phase != Phase.SETUP or not session.has_player(connection_id):
            return []
        if connection_id in session.ready_for_play:
            logger.debug("duplicate ready signal ignored", room_id=session.room_id, connection_id=connection_id)
            return []

        session.ready_for_play.add(connection_id)
        ready_count = len(session.ready_for_play)
        logger.info(
            "player ready",
            room_id=session.room_id,
            connection_id=connection_id,
            ready_count=ready_count,
            player_count=session.player_count,
        )

        if ready_count == session.player_count:
            return self.start_game(session)

        progress = SetupProgressMessage(
            ready_count=ready_count,
            required_count=session.player_count,
            max_players=session.max_players,
        )
        return [Delivery(progress.model_dump(), RoomTarget())]

    def start_game(self, session: Session) -> list[Delivery]:
        """Move the session into Playing with a random starting player."""
        starting_player = self._rng.choice(session.players)
        session.phase = Phase.PLAYING
        session.current_turn_player_id = starting_player.connection_id
        session.turn_number = 1
        session.knocked.clear()
        session.ready_for_play.clear()

        logger.info(
            "game started",
            room_id=session.room_id,
            player_count=session.player_count,
            starting_player=starting_player.display_name,
        )
        started = GameStartedMessage(
            current_turn=starting_player.connection_id,
            starting_player_name=starting_player.display_name,
            turn_number=session.turn_number,
        )
        return [Delivery(started.model_dump(), RoomTarget())]

    def knock(self, session: Session, connection_id: str) -> list[Delivery]:
        if session.phase != Phase.PLAYING or not session.has_player(connection_id):
            return []

        session.knocked.add(connection_id)

        previous_index = session.index_of(session.current_turn_player_id) if session.current_turn_player_id else None
        next_index = 0 if previous_index is None else (previous_index + 1) % session.player_count
        session.current_turn_player_id = session.players[next_index].connection_id

        deliveries: list[Delivery] = []
        if len(session.knocked) >= session.player_count:
            deliveries.append(self._complete_round(session))

        logger.info(
            "turn changed",
            room_id=session.room_id,
            knocked_by=connection_id,
            current_turn=session.current_turn_player_id,
            knocked_count=len(session.knocked),
        )
        deliveries.append(
            Delivery(TurnChangedMessage(current_turn=session.current_turn_player_id).model_dump(), RoomTarget()),
        )
        return deliveries

    def _complete_round(self, session: Session) -> Delivery:
        session.turn_number += 1
        session.knocked.clear()
        logger.info("round complete", room_id=session.room_id, turn_number=session.turn_number)
        return Delivery(TurnNumberUpdatedMessage(turn_number=session.turn_number).model_dump(), RoomTarget())

    def handle_departure(self, session: Session, connection_id: str, removed_index: int) -> list[Delivery]:
        """Repair phase state after a player was removed from the roster.

        The departed player's turn passes to whoever now sits at their index.
        If everyone still present has already knocked, the round completes.
        A Setup room whose remaining members are all ready starts playing.
        """
        if session.is_empty:
            return []

        if session.phase == Phase.PLAYING:
            deliveries: list[Delivery] = []
            if session.knocked and len(session.knocked) >= session.player_count:
                deliveries.append(self._complete_round(session))
            if session.current_turn_player_id == connection_id:
                successor = session.players[removed_index % session.player_count]
                session.current_turn_player_id = successor.connection_id
                logger.info("turn passed on departure", room_id=session.room_id, current_turn=successor.connection_id)
                deliveries.append(
                    Delivery(TurnChangedMessage(current_turn=successor.connection_id).model_dump(), RoomTarget()),
                )
            return deliveries

        if session.phase == Phase.SETUP and session.ready_for_play and len(session.ready_for_play) == session.player_count:
            return self.start_game(session)

        return []
