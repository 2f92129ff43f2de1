"""In-memory storage for decks shared between players."""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger()


class SavedDeck(BaseModel):
    id: str
    name: str
    description: str = ""
    cards: list[dict[str, Any]]
    card_count: int
    saved_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class DeckStore:
    """Process-local deck collection, kept in insertion order.

    Nothing is persisted: decks are lost when the server restarts.
    """

    def __init__(self) -> None:
        self._decks: dict[str, SavedDeck] = {}

    def __len__(self) -> int:
        return len(self._decks)

    def all_decks(self) -> list[SavedDeck]:
        return list(self._decks.values())

    def get(self, deck_id: str) -> SavedDeck | None:
        return self._decks.get(deck_id)

    def create(self, name: str, cards: list[dict[str, Any]], description: str = "") -> SavedDeck:
        deck = SavedDeck(
            id=uuid4().hex,
            name=name,
            description=description,
            cards=cards,
            card_count=len(cards),
        )
        self._decks[deck.id] = deck
        logger.info("deck saved", deck_id=deck.id, card_count=deck.card_count)
        return deck

    def delete(self, deck_id: str) -> bool:
        """Remove a deck. Returns False if no deck has that id."""
        if self._decks.pop(deck_id, None) is None:
            return False
        logger.info("deck deleted", deck_id=deck_id)
        return True
