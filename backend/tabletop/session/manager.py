from __future__ import annotations

import asyncio
import contextlib
import random
import time
from typing import TYPE_CHECKING, Any

import structlog

from tabletop.messaging.types import ErrorMessage, PongMessage, RoomLeftMessage, SessionErrorCode
from tabletop.session.broadcast import dispatch, send_safely
from tabletop.session.membership import MembershipController
from tabletop.session.models import DEFAULT_CAPACITY
from tabletop.session.phase import PhaseStateMachine
from tabletop.session.registry import SessionRegistry
from tabletop.session.replicator import SharedStateReplicator
from tabletop.session.types import RoomInfo

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from tabletop.messaging.protocol import ConnectionProtocol
    from tabletop.session.models import Position, Session
    from tabletop.session.types import Delivery

logger = structlog.get_logger()


class SessionManager:
    """Connects live sockets to the session components.

    Owns the registry and the connection table. Every operation resolves
    the target session, runs one synchronous component call that mutates
    the session and returns deliveries, then fans them out, all under a
    per-room lock so a room's broadcasts follow the order of its mutations.
    """

    def __init__(
        self,
        registry: SessionRegistry | None = None,
        *,
        default_capacity: int = DEFAULT_CAPACITY,
        max_rooms: int | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._registry = registry or SessionRegistry(default_capacity=default_capacity)
        self._max_rooms = max_rooms
        self._connections: dict[str, ConnectionProtocol] = {}
        self._room_locks: dict[str, asyncio.Lock] = {}  # room_id -> Lock
        self._lock_users: dict[str, int] = {}  # room_id -> holders plus waiters
        rng = rng or random.Random()
        self._phase = PhaseStateMachine(rng)
        self._membership = MembershipController(self._phase)
        self._replicator = SharedStateReplicator(rng)

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def room_count(self) -> int:
        return len(self._registry)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def register_connection(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    def unregister_connection(self, connection: ConnectionProtocol) -> None:
        self._connections.pop(connection.connection_id, None)

    def get_session(self, room_id: str) -> Session | None:
        return self._registry.get(room_id)

    def get_rooms_info(self) -> list[RoomInfo]:
        return [
            RoomInfo(
                room_id=session.room_id,
                player_count=session.player_count,
                max_players=session.max_players,
                phase=session.phase,
                turn_number=session.turn_number,
                players=[p.display_name for p in session.players],
                age_seconds=round(time.monotonic() - session.created_at, 1),
            )
            for session in self._registry
        ]

    async def _send_error(self, connection: ConnectionProtocol, code: SessionErrorCode, message: str) -> None:
        await send_safely(connection, ErrorMessage(code=code, message=message).model_dump())

    @contextlib.asynccontextmanager
    async def _room_lock(self, room_id: str) -> AsyncIterator[None]:
        """Hold the room's lock across one mutation and its fan-out.

        Broadcasts then leave in the order the mutations were applied. The
        lock is dropped once the room is gone and nobody holds or awaits it.
        """
        lock = self._room_locks.setdefault(room_id, asyncio.Lock())
        self._lock_users[room_id] = self._lock_users.get(room_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[room_id] -= 1
            if self._lock_users[room_id] == 0:
                del self._lock_users[room_id]
                if room_id not in self._registry:
                    self._room_locks.pop(room_id, None)

    async def _deliver(self, session: Session, deliveries: list[Delivery]) -> None:
        if deliveries:
            await dispatch(deliveries, session.player_ids, self._connections)

    async def _apply(
        self,
        connection: ConnectionProtocol,
        room_id: str,
        operation: Callable[[Session], list[Delivery]],
    ) -> None:
        """Run one component operation against an existing room.

        Unknown rooms are ignored: the client may be racing the room's
        teardown and there is no retry protocol to report it to.
        """
        async with self._room_lock(room_id):
            session = self._registry.get(room_id)
            if session is None:
                logger.debug("message for unknown room ignored", room_id=room_id, connection_id=connection.connection_id)
                return
            await self._deliver(session, operation(session))

    # --- Membership ---

    async def join(
        self,
        connection: ConnectionProtocol,
        room_id: str,
        player_name: str,
        player_count: int | None = None,
    ) -> None:
        connection_id = connection.connection_id
        other_rooms = [s.room_id for s in self._registry.sessions_for(connection_id) if s.room_id != room_id]
        if other_rooms:
            await self._send_error(
                connection,
                SessionErrorCode.ALREADY_IN_ROOM,
                "You must leave your current room first",
            )
            return

        async with self._room_lock(room_id):
            if room_id not in self._registry and self._max_rooms is not None and self.room_count >= self._max_rooms:
                logger.warning("room limit reached", room_id=room_id, max_rooms=self._max_rooms)
                await self._send_error(connection, SessionErrorCode.SERVER_FULL, "Server at capacity")
                return

            session = self._registry.resolve_or_create(room_id, player_count)
            deliveries = self._membership.join(session, connection_id, player_name)
            await self._deliver(session, deliveries)

    async def leave(self, connection: ConnectionProtocol, room_id: str, *, notify_player: bool = True) -> None:
        if not await self._remove_member(room_id, connection.connection_id):
            return
        if notify_player:
            await send_safely(connection, RoomLeftMessage(room_id=room_id).model_dump())

    async def leave_all(self, connection: ConnectionProtocol) -> None:
        """Remove a dropped connection from every room it belongs to."""
        for session in self._registry.sessions_for(connection.connection_id):
            await self._remove_member(session.room_id, connection.connection_id)

    async def _remove_member(self, room_id: str, connection_id: str) -> bool:
        """Returns False if the connection was not in the room."""
        async with self._room_lock(room_id):
            session = self._registry.get(room_id)
            if session is None or not session.has_player(connection_id):
                return False
            deliveries = self._membership.leave(session, connection_id)
            self._registry.destroy_if_empty(room_id)
            await self._deliver(session, deliveries)
            return True

    # --- Phase ---

    async def set_ready(self, connection: ConnectionProtocol, room_id: str) -> None:
        await self._apply(connection, room_id, lambda s: self._phase.set_ready(s, connection.connection_id))

    async def end_turn(self, connection: ConnectionProtocol, room_id: str) -> None:
        await self._apply(connection, room_id, lambda s: self._phase.knock(s, connection.connection_id))

    # --- Table ---

    async def place_card(
        self,
        connection: ConnectionProtocol,
        room_id: str,
        card: dict[str, Any],
        position: Position,
    ) -> None:
        sender = connection.connection_id
        await self._apply(connection, room_id, lambda s: self._replicator.place_card(s, sender, card, position))

    async def update_card(
        self,
        connection: ConnectionProtocol,
        room_id: str,
        *,
        card_index: int | None = None,
        instance_id: str | None = None,
        rotation: int | None = None,
        tokens: int | None = None,
    ) -> None:
        sender = connection.connection_id
        await self._apply(
            connection,
            room_id,
            lambda s: self._replicator.update_card(
                s,
                sender,
                card_index=card_index,
                instance_id=instance_id,
                rotation=rotation,
                tokens=tokens,
            ),
        )

    async def update_card_position(
        self,
        connection: ConnectionProtocol,
        room_id: str,
        position: Position,
        *,
        card_index: int | None = None,
        instance_id: str | None = None,
    ) -> None:
        sender = connection.connection_id
        await self._apply(
            connection,
            room_id,
            lambda s: self._replicator.update_card_position(
                s,
                sender,
                position,
                card_index=card_index,
                instance_id=instance_id,
            ),
        )

    async def remove_card(
        self,
        connection: ConnectionProtocol,
        room_id: str,
        *,
        card_index: int | None = None,
        instance_id: str | None = None,
    ) -> None:
        sender = connection.connection_id
        await self._apply(
            connection,
            room_id,
            lambda s: self._replicator.remove_card(s, sender, card_index=card_index, instance_id=instance_id),
        )

    # --- Relays ---

    async def hand_count_update(self, connection: ConnectionProtocol, room_id: str, hand_counts: dict[str, Any]) -> None:
        sender = connection.connection_id
        await self._apply(connection, room_id, lambda s: self._replicator.hand_count_update(s, sender, hand_counts))

    async def show_card(self, connection: ConnectionProtocol, room_id: str, card: dict[str, Any]) -> None:
        sender = connection.connection_id
        await self._apply(connection, room_id, lambda s: self._replicator.show_card(s, sender, card))

    async def set_deck(self, connection: ConnectionProtocol, room_id: str) -> None:
        sender = connection.connection_id
        await self._apply(connection, room_id, lambda s: self._replicator.set_deck(s, sender))

    async def play_nwo(self, connection: ConnectionProtocol, room_id: str, color: str, card: dict[str, Any]) -> None:
        sender = connection.connection_id
        await self._apply(connection, room_id, lambda s: self._replicator.play_nwo(s, sender, color, card))

    async def remove_nwo(self, connection: ConnectionProtocol, room_id: str, color: str) -> None:
        sender = connection.connection_id
        await self._apply(connection, room_id, lambda s: self._replicator.remove_nwo(s, sender, color))

    async def roll_dice(self, connection: ConnectionProtocol, room_id: str, sides: int) -> None:
        sender = connection.connection_id
        await self._apply(connection, room_id, lambda s: self._replicator.roll_dice(s, sender, sides))

    async def close_dice(self, connection: ConnectionProtocol, room_id: str) -> None:
        sender = connection.connection_id
        await self._apply(connection, room_id, lambda s: self._replicator.close_dice(s, sender))

    async def handle_ping(self, connection: ConnectionProtocol) -> None:
        await send_safely(connection, PongMessage().model_dump())

    def shutdown(self) -> None:
        """Drop every room and connection reference."""
        self._registry.clear()
        self._room_locks.clear()
        self._connections.clear()
        logger.info("session manager shut down")
