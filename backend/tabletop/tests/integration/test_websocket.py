"""Integration tests for the websocket gateway.

These drive the full stack through the Starlette test client: MessagePack
framing, the per-connection rate limit, room membership and relays.
"""

from unittest.mock import patch

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from tabletop.messaging.types import SessionErrorCode, SessionMessageType
from tabletop.server import websocket as ws_module
from tabletop.server.app import create_app
from tabletop.server.settings import TableServerSettings
from tabletop.tests.helpers.websocket import join_room, recv_ws, send_ws


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


class TestWebSocketIntegration:
    def test_join_returns_snapshot(self, client):
        with client.websocket_connect("/ws") as ws:
            snapshot = join_room(ws, "room-1", "Alice", 3)

            assert snapshot["room_id"] == "room-1"
            assert snapshot["max_players"] == 3
            assert snapshot["phase"] == "setup"
            assert snapshot["players"][0]["name"] == "Alice"

    def test_two_players_start_and_share_table(self, client):
        with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
            join_room(alice, "room-1", "Alice")
            join_room(bob, "room-1", "Bob")
            assert recv_ws(alice)["type"] == SessionMessageType.PLAYER_JOINED

            send_ws(alice, {"type": "set_ready", "room_id": "room-1"})
            assert recv_ws(alice)["type"] == SessionMessageType.SETUP_PROGRESS
            assert recv_ws(bob)["type"] == SessionMessageType.SETUP_PROGRESS

            send_ws(bob, {"type": "set_ready", "room_id": "room-1"})
            started = recv_ws(alice)
            assert started["type"] == SessionMessageType.GAME_STARTED
            assert recv_ws(bob) == started

            send_ws(
                alice,
                {"type": "place_card", "room_id": "room-1", "card": {"name": "x"}, "position": {"x": 10, "y": 20}},
            )
            moved = recv_ws(bob)
            assert moved["type"] == SessionMessageType.CARD_MOVED
            assert moved["card"]["card"] == {"name": "x"}

            # the sender gets no echo: its next message is the pong
            send_ws(alice, {"type": "ping"})
            assert recv_ws(alice)["type"] == SessionMessageType.PONG

    def test_third_player_gets_room_full(self, client):
        with (
            client.websocket_connect("/ws") as a,
            client.websocket_connect("/ws") as b,
            client.websocket_connect("/ws") as c,
        ):
            join_room(a, "room-1", "A")
            join_room(b, "room-1", "B")

            send_ws(c, {"type": "join", "room_id": "room-1", "player_name": "C"})

            assert recv_ws(c) == {"type": SessionMessageType.ROOM_FULL, "room_id": "room-1", "max_players": 2}

    def test_disconnect_notifies_remaining_player(self, client, session_manager):
        with client.websocket_connect("/ws") as alice:
            join_room(alice, "room-1", "Alice")
            with client.websocket_connect("/ws") as bob:
                join_room(bob, "room-1", "Bob")
                recv_ws(alice)  # player_joined

            left = recv_ws(alice)
            assert left["type"] == SessionMessageType.PLAYER_LEFT
            assert left["player_name"] == "Bob"
            assert left["remaining_players"] == 1

    def test_invalid_message_keeps_connection(self, client):
        with client.websocket_connect("/ws") as ws:
            send_ws(ws, {"type": "join", "room_id": "bad id!", "player_name": "A"})
            error = recv_ws(ws)
            assert error["type"] == SessionMessageType.ERROR
            assert error["code"] == SessionErrorCode.INVALID_MESSAGE

            send_ws(ws, {"type": "ping"})
            assert recv_ws(ws)["type"] == SessionMessageType.PONG

    def test_invalid_msgpack_returns_error(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_bytes(b"\xc1")

            response = recv_ws(ws)
            assert response["code"] == SessionErrorCode.INVALID_MESSAGE

    def test_repeated_decode_errors_disconnect(self, client):
        with patch.object(ws_module, "_MAX_DECODE_ERRORS", 3), client.websocket_connect("/ws") as ws:
            for _ in range(3):
                ws.send_bytes(b"\xc1")
                recv_ws(ws)
            with pytest.raises(WebSocketDisconnect):
                ws.receive_bytes()

    def test_decode_error_counter_resets_on_valid_message(self, client):
        with patch.object(ws_module, "_MAX_DECODE_ERRORS", 3), client.websocket_connect("/ws") as ws:
            for _ in range(2):
                ws.send_bytes(b"\xc1")
                recv_ws(ws)

            send_ws(ws, {"type": "ping"})
            assert recv_ws(ws)["type"] == SessionMessageType.PONG

            for _ in range(2):
                ws.send_bytes(b"\xc1")
                assert recv_ws(ws)["code"] == SessionErrorCode.INVALID_MESSAGE

            send_ws(ws, {"type": "ping"})
            assert recv_ws(ws)["type"] == SessionMessageType.PONG


class TestRateLimit:
    @pytest.fixture
    def client(self, session_manager, message_router):
        settings = TableServerSettings(rate_limit_rate=0.001, rate_limit_burst=2)
        app = create_app(settings=settings, session_manager=session_manager, message_router=message_router)
        with TestClient(app) as client:
            yield client

    def test_flood_is_rate_limited(self, client):
        with client.websocket_connect("/ws") as ws:
            for _ in range(2):
                send_ws(ws, {"type": "ping"})
                assert recv_ws(ws)["type"] == SessionMessageType.PONG

            send_ws(ws, {"type": "ping"})
            response = recv_ws(ws)
            assert response["type"] == SessionMessageType.ERROR
            assert response["code"] == SessionErrorCode.RATE_LIMITED
