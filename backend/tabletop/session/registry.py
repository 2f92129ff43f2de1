"""Room id -> Session registry."""

from collections.abc import Iterator

import structlog

from tabletop.session.models import DEFAULT_CAPACITY, Session

logger = structlog.get_logger()


class SessionRegistry:
    """Owns every live Session, keyed by room id.

    A session is created lazily by the first join to an unknown room id and
    is dropped as soon as its roster is empty. Nothing is module-global, so
    each server (or test) builds its own registry.
    """

    def __init__(self, default_capacity: int = DEFAULT_CAPACITY) -> None:
        self._default_capacity = default_capacity
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._sessions

    def get(self, room_id: str) -> Session | None:
        return self._sessions.get(room_id)

    def resolve_or_create(self, room_id: str, requested_capacity: int | None = None) -> Session:
        """Return the room's session, creating it on first use.

        Only the creating request's capacity counts; later joiners
        cannot change it.
        """
        session = self._sessions.get(room_id)
        if session is not None:
            return session
        capacity = requested_capacity or self._default_capacity
        session = Session(room_id=room_id, max_players=capacity)
        self._sessions[room_id] = session
        logger.info("room created", room_id=room_id, max_players=capacity)
        return session

    def destroy_if_empty(self, room_id: str) -> bool:
        """Drop the room if nobody is left in it. Returns True if dropped."""
        session = self._sessions.get(room_id)
        if session is None or not session.is_empty:
            return False
        del self._sessions[room_id]
        logger.info("room deleted (empty)", room_id=room_id)
        return True

    def sessions_for(self, connection_id: str) -> list[Session]:
        """Every session the connection is a member of."""
        return [s for s in self._sessions.values() if s.has_player(connection_id)]

    def clear(self) -> None:
        self._sessions.clear()
