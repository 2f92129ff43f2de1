"""Fan-out of session deliveries to live connections."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any, assert_never

from tabletop.session.types import ConnectionTarget, OthersTarget, RoomTarget

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from tabletop.messaging.protocol import ConnectionProtocol
    from tabletop.session.types import Delivery, DeliveryTarget


async def send_safely(connection: ConnectionProtocol, message: dict[str, Any]) -> None:
    """Send one message, dropping it if the socket is already gone."""
    with contextlib.suppress(RuntimeError, OSError, ConnectionError):
        await connection.send_message(message)


def resolve_recipients(target: DeliveryTarget, member_ids: Sequence[str]) -> list[str]:
    match target:
        case RoomTarget():
            return list(member_ids)
        case OthersTarget(exclude_connection_id=excluded):
            return [m for m in member_ids if m != excluded]
        case ConnectionTarget(connection_id=connection_id):
            return [connection_id]
        case _:
            assert_never(target)


async def dispatch(
    deliveries: Sequence[Delivery],
    member_ids: Sequence[str],
    connections: Mapping[str, ConnectionProtocol],
) -> None:
    """Send deliveries in order to the resolved recipients.

    Recipients are resolved for every delivery before the first send, so
    a concurrent disconnect cannot change who a delivery goes to.
    """
    plan = [(d.message, resolve_recipients(d.target, member_ids)) for d in deliveries]
    for message, recipients in plan:
        for connection_id in recipients:
            connection = connections.get(connection_id)
            if connection is not None:
                await send_safely(connection, message)
