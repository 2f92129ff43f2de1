import pytest
from starlette.testclient import TestClient

from tabletop.server.app import _MAX_REQUEST_BODY_SIZE
from tabletop.tests.helpers.websocket import join_room


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


class TestHealthAndStatus:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_status_counts_rooms_and_connections(self, client):
        assert client.get("/status").json()["active_rooms"] == 0

        with client.websocket_connect("/ws") as ws:
            join_room(ws, "room-1", "Alice")
            data = client.get("/status").json()

        assert data["active_rooms"] == 1
        assert data["connected_players"] == 1
        assert data["max_rooms"] == 10

    def test_rooms_listing(self, client):
        with client.websocket_connect("/ws") as ws:
            join_room(ws, "room-1", "Alice", 4)
            rooms = client.get("/rooms").json()

        assert rooms[0].pop("age_seconds") >= 0
        assert rooms == [
            {
                "room_id": "room-1",
                "player_count": 1,
                "max_players": 4,
                "phase": "setup",
                "turn_number": 1,
                "players": ["Alice"],
            },
        ]


class TestDeckApi:
    def test_create_list_delete(self, client):
        created = client.post(
            "/api/decks",
            json={"name": "Bankers", "description": "money", "cards": [{"name": "a"}, {"name": "b"}]},
        )
        assert created.status_code == 201
        deck = created.json()
        assert deck["name"] == "Bankers"
        assert deck["card_count"] == 2
        assert deck["id"]
        assert deck["saved_at"]

        assert [d["id"] for d in client.get("/api/decks").json()] == [deck["id"]]

        deleted = client.delete(f"/api/decks/{deck['id']}")
        assert deleted.status_code == 200
        assert deleted.json() == {"success": True}
        assert client.get("/api/decks").json() == []

    def test_delete_unknown_deck(self, client):
        assert client.delete("/api/decks/missing").status_code == 404

    @pytest.mark.parametrize(
        "body",
        [
            b"not json",
            b"[]",
            b'{"name": "", "cards": [{}]}',
            b'{"name": "x", "cards": []}',
            b'{"name": "x", "cards": [{}], "owner": "me"}',
        ],
    )
    def test_invalid_body(self, client, body):
        response = client.post("/api/decks", content=body, headers={"Content-Type": "application/json"})

        assert response.status_code == 400

    def test_oversized_body(self, client):
        body = b"x" * (_MAX_REQUEST_BODY_SIZE + 1)

        response = client.post("/api/decks", content=body, headers={"Content-Type": "application/json"})

        assert response.status_code == 413
