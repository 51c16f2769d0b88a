from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator

from .scope import SOLO_PREFIX


class Direction(str, Enum):
    right = "right"
    left = "left"


class MatchStatus(str, Enum):
    active = "active"
    resolved = "resolved"
    archived = "archived"


# ── Item snapshots ───────────────────────────────────────────────────────
# Denormalized copies of catalog metadata taken at vote time. Consensus code
# only carries them around; it never looks inside.


class RestaurantSnapshot(BaseModel):
    kind: Literal["restaurant"] = "restaurant"
    name: str = Field(..., min_length=1)
    photo: str | None = None
    rating: float | None = Field(default=None, ge=0.0, le=5.0)
    cuisines: list[str] = Field(default_factory=list)
    address: str | None = None
    price_level: int | None = Field(default=None, ge=0, le=4)


class RecipeSnapshot(BaseModel):
    kind: Literal["recipe"] = "recipe"
    title: str = Field(..., min_length=1)
    image: str | None = None
    summary: str | None = None
    ready_in_minutes: int | None = Field(default=None, ge=0)
    servings: int | None = Field(default=None, ge=0)
    cuisines: list[str] = Field(default_factory=list)
    diets: list[str] = Field(default_factory=list)
    ingredients: list[str] = Field(default_factory=list)
    source_url: str | None = None


ItemSnapshot = Annotated[
    Union[RestaurantSnapshot, RecipeSnapshot],
    Field(discriminator="kind"),
]


# ── Ledger / match records ───────────────────────────────────────────────


class VoteRecord(BaseModel):
    member_id: str
    scope_id: str
    item_id: str
    direction: Direction
    timestamp: datetime
    item: ItemSnapshot


class MatchRecord(BaseModel):
    scope_id: str
    item_id: str
    member_ids: list[str]
    member_count: int
    required_count: int
    affirmative_count: int
    affirmative_member_ids: list[str]
    unanimous: bool
    status: MatchStatus = MatchStatus.active
    created_at: datetime
    status_updated_at: datetime | None = None
    item: ItemSnapshot

    @property
    def match_id(self) -> str:
        return f"{self.scope_id}:{self.item_id}"


# ── API models ───────────────────────────────────────────────────────────


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class VoteRequest(BaseModel):
    group_id: str | None = Field(
        default=None,
        min_length=1,
        description="Active group; omit to swipe in the member's solo scope",
    )
    item_id: str = Field(..., min_length=1)
    direction: Direction
    item: ItemSnapshot

    @field_validator("group_id")
    @classmethod
    def _reject_solo_prefix(cls, value: str | None) -> str | None:
        if value is not None and value.startswith(SOLO_PREFIX):
            raise ValueError("group_id cannot address a solo scope")
        return value


class VoteResponse(BaseModel):
    status: str
    scope_id: str
    match: MatchRecord | None = None
    match_created: bool = False


class MatchStatusUpdate(BaseModel):
    status: MatchStatus


class MatchListResponse(BaseModel):
    scope_id: str
    matches: list[MatchRecord]


class VotedItemsResponse(BaseModel):
    scope_id: str
    item_ids: list[str]


class LikedItemsResponse(BaseModel):
    scope_id: str
    likes: list[VoteRecord]
