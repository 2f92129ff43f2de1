"""Shared WebSocket test helpers for integration tests."""

from tabletop.messaging.encoder import decode, encode
from tabletop.messaging.types import ClientMessageType, SessionMessageType


def send_ws(ws, data: dict) -> None:
    """Send a MessagePack-encoded message over a test WebSocket."""
    ws.send_bytes(encode(data))


def recv_ws(ws) -> dict:
    """Receive and decode a MessagePack message from a test WebSocket."""
    return decode(ws.receive_bytes())


def join_room(ws, room_id: str, player_name: str, player_count: int | None = None) -> dict:
    """Join a room and return the room_joined snapshot."""
    message = {"type": ClientMessageType.JOIN, "room_id": room_id, "player_name": player_name}
    if player_count is not None:
        message["player_count"] = player_count
    send_ws(ws, message)
    snapshot = recv_ws(ws)
    assert snapshot["type"] == SessionMessageType.ROOM_JOINED
    return snapshot
