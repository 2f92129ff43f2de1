from __future__ import annotations

import contextlib
import json
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from shared.logging import setup_logging
from tabletop.decks.store import DeckStore
from tabletop.messaging.router import MessageRouter
from tabletop.server.settings import TableServerSettings
from tabletop.server.types import CreateDeckRequest
from tabletop.server.websocket import websocket_endpoint
from tabletop.session.manager import SessionManager

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request
    from starlette.websockets import WebSocket


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


async def status(request: Request) -> JSONResponse:
    session_manager: SessionManager = request.app.state.session_manager
    settings: TableServerSettings = request.app.state.settings
    return JSONResponse(
        {
            "status": "ok",
            "active_rooms": session_manager.room_count,
            "connected_players": session_manager.connection_count,
            "max_rooms": settings.max_rooms,
        },
    )


async def list_rooms(request: Request) -> JSONResponse:
    session_manager: SessionManager = request.app.state.session_manager
    return JSONResponse([room.model_dump(mode="json") for room in session_manager.get_rooms_info()])


async def list_decks(request: Request) -> JSONResponse:
    deck_store: DeckStore = request.app.state.deck_store
    return JSONResponse([deck.model_dump(mode="json") for deck in deck_store.all_decks()])


# A full deck of card payloads fits comfortably under this
_MAX_REQUEST_BODY_SIZE = 256 * 1024


async def create_deck(request: Request) -> JSONResponse:
    deck_store: DeckStore = request.app.state.deck_store

    try:
        raw_body = await request.body()
        if len(raw_body) > _MAX_REQUEST_BODY_SIZE:
            return JSONResponse({"error": "Request body too large"}, status_code=413)
        body = json.loads(raw_body)
        deck_request = CreateDeckRequest(**body)
    except (ValueError, TypeError, json.JSONDecodeError, UnicodeDecodeError, ValidationError):  # fmt: skip
        return JSONResponse({"error": "Invalid request body"}, status_code=400)

    deck = deck_store.create(deck_request.name, deck_request.cards, deck_request.description)
    return JSONResponse(deck.model_dump(mode="json"), status_code=201)


async def delete_deck(request: Request) -> JSONResponse:
    deck_store: DeckStore = request.app.state.deck_store
    deck_id = request.path_params["deck_id"]
    if not deck_store.delete(deck_id):
        return JSONResponse({"error": "Deck not found"}, status_code=404)
    return JSONResponse({"success": True})


def create_app(
    settings: TableServerSettings | None = None,
    session_manager: SessionManager | None = None,
    message_router: MessageRouter | None = None,
    deck_store: DeckStore | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = TableServerSettings()

    if session_manager is None:
        session_manager = SessionManager(
            default_capacity=settings.default_capacity,
            max_rooms=settings.max_rooms,
        )

    if message_router is None:
        message_router = MessageRouter(session_manager)

    if deck_store is None:
        deck_store = DeckStore()

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(
            websocket,
            message_router,
            rate=settings.rate_limit_rate,
            burst=settings.rate_limit_burst,
        )

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        Route("/rooms", list_rooms, methods=["GET"]),
        Route("/api/decks", list_decks, methods=["GET"]),
        Route("/api/decks", create_deck, methods=["POST"]),
        Route("/api/decks/{deck_id}", delete_deck, methods=["DELETE"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        yield
        session_manager.shutdown()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.session_manager = session_manager
    app.state.deck_store = deck_store

    logger.info("table server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    _settings = TableServerSettings()
    setup_logging(log_dir=_settings.log_dir)
    return create_app(settings=_settings)
