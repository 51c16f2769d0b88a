from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ..consensus.models import ItemSnapshot


class DeckFilters(BaseModel):
    cuisine: str | None = None
    max_price_level: int | None = Field(default=None, ge=1, le=4)
    min_rating: float = Field(default=0.0, ge=0.0, le=5.0)

    def is_empty(self) -> bool:
        return self.cuisine is None and self.max_price_level is None and self.min_rating == 0.0


class Candidate(BaseModel):
    item_id: str
    item: ItemSnapshot


class SharedDeck(BaseModel):
    scope_id: str
    generation: int
    candidates: list[Candidate]
    filters: DeckFilters = Field(default_factory=DeckFilters)
    created_at: datetime

    @property
    def item_ids(self) -> list[str]:
        return [c.item_id for c in self.candidates]


class DeckResponse(BaseModel):
    deck: SharedDeck
    remaining: list[Candidate]
