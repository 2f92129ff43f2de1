from __future__ import annotations

from typing import TYPE_CHECKING, Any, assert_never

import structlog
from pydantic import ValidationError

from tabletop.messaging.types import (
    CloseDiceMessage,
    EndTurnMessage,
    ErrorMessage,
    HandCountUpdateMessage,
    JoinMessage,
    LeaveMessage,
    PingMessage,
    PlaceCardMessage,
    PlayNwoMessage,
    RemoveCardMessage,
    RemoveNwoMessage,
    RollDiceMessage,
    SessionErrorCode,
    SetDeckMessage,
    SetReadyMessage,
    ShowCardMessage,
    UpdateCardMessage,
    UpdateCardPositionMessage,
    parse_client_message,
)
from tabletop.session.broadcast import send_safely

if TYPE_CHECKING:
    from tabletop.messaging.protocol import ConnectionProtocol
    from tabletop.messaging.types import ClientMessage
    from tabletop.session.manager import SessionManager

logger = structlog.get_logger()


class MessageRouter:
    """
    Routes incoming messages to the session manager.

    Pure dispatch with no transport code, so it can be driven in tests
    with mock connections.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message", connection_id=connection.connection_id, error=str(e))
            await send_safely(
                connection,
                ErrorMessage(code=SessionErrorCode.INVALID_MESSAGE, message=str(e)).model_dump(),
            )
            return

        try:
            await self._dispatch(connection, message)
        except Exception:
            # one bad message must not take down the connection or the registry
            logger.exception("message handling failed", connection_id=connection.connection_id, type=message.type)
            await send_safely(
                connection,
                ErrorMessage(code=SessionErrorCode.ACTION_FAILED, message="Message could not be applied").model_dump(),
            )

    async def _dispatch(self, connection: ConnectionProtocol, message: ClientMessage) -> None:  # noqa: C901, PLR0912
        manager = self._session_manager
        match message:
            case JoinMessage():
                await manager.join(connection, message.room_id, message.player_name, message.player_count)
            case LeaveMessage():
                await manager.leave(connection, message.room_id)
            case SetReadyMessage():
                await manager.set_ready(connection, message.room_id)
            case EndTurnMessage():
                await manager.end_turn(connection, message.room_id)
            case PlaceCardMessage():
                await manager.place_card(connection, message.room_id, message.card, message.position)
            case UpdateCardMessage():
                await manager.update_card(
                    connection,
                    message.room_id,
                    card_index=message.card_index,
                    instance_id=message.instance_id,
                    rotation=message.rotation,
                    tokens=message.tokens,
                )
            case UpdateCardPositionMessage():
                await manager.update_card_position(
                    connection,
                    message.room_id,
                    message.position,
                    card_index=message.card_index,
                    instance_id=message.instance_id,
                )
            case RemoveCardMessage():
                await manager.remove_card(
                    connection,
                    message.room_id,
                    card_index=message.card_index,
                    instance_id=message.instance_id,
                )
            case HandCountUpdateMessage():
                await manager.hand_count_update(connection, message.room_id, message.hand_counts)
            case ShowCardMessage():
                await manager.show_card(connection, message.room_id, message.card)
            case SetDeckMessage():
                await manager.set_deck(connection, message.room_id)
            case PlayNwoMessage():
                await manager.play_nwo(connection, message.room_id, message.color, message.card)
            case RemoveNwoMessage():
                await manager.remove_nwo(connection, message.room_id, message.color)
            case RollDiceMessage():
                await manager.roll_dice(connection, message.room_id, message.sides)
            case CloseDiceMessage():
                await manager.close_dice(connection, message.room_id)
            case PingMessage():
                await manager.handle_ping(connection)
            case _:
                assert_never(message)

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.register_connection(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._session_manager.leave_all(connection)
        self._session_manager.unregister_connection(connection)
