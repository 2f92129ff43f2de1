from typing import Any

from pydantic import BaseModel, ConfigDict, Field

MAX_DECK_CARDS = 500


class CreateDeckRequest(BaseModel):
    """Body of POST /api/decks. Card payloads are stored as the client sent them."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=1000)
    cards: list[dict[str, Any]] = Field(min_length=1, max_length=MAX_DECK_CARDS)
