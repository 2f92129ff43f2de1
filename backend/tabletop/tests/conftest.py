import random

import pytest

from tabletop.decks.store import DeckStore
from tabletop.messaging.router import MessageRouter
from tabletop.server.app import create_app
from tabletop.server.settings import TableServerSettings
from tabletop.session.manager import SessionManager
from tabletop.tests.mocks import MockConnection


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def session_manager(rng):
    return SessionManager(rng=rng)


@pytest.fixture
def message_router(session_manager):
    return MessageRouter(session_manager)


@pytest.fixture
def mock_connection():
    return MockConnection()


@pytest.fixture
def settings():
    return TableServerSettings(max_rooms=10, rate_limit_rate=1000.0, rate_limit_burst=1000)


@pytest.fixture
def deck_store():
    return DeckStore()


@pytest.fixture
def app(settings, session_manager, message_router, deck_store):
    return create_app(
        settings=settings,
        session_manager=session_manager,
        message_router=message_router,
        deck_store=deck_store,
    )
