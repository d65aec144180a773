"""
Deck and draw data schemas
"""
from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class DeckName(str, Enum):
    """The closed set of decks the service serves."""
    love = "love"
    money = "money"
    career = "career"
    daily = "daily"

    @classmethod
    def parse(cls, value: str) -> Optional["DeckName"]:
        try:
            return cls(value)
        except ValueError:
            return None


class DeckPoolDocument(BaseModel):
    """Stored document for one deck, overwritten in full on every update"""
    ids: List[str] = Field(..., description="Card IDs, unique and non-empty")
    total: int = Field(..., description="Cached len(ids)")
    updatedAt: str = Field(..., description="ISO-8601 UTC time of the write")


class SavedDeck(BaseModel):
    deck: str
    count: int
    key: str


class DeckFailure(BaseModel):
    deck: str
    reason: str = Field(..., description="invalid_deck / empty_ids_array / too_many_ids / deck_payload_too_large / store_put_error")
    index: int
    detail: Optional[str] = None
    limit: Optional[int] = None


class BatchUpdateResult(BaseModel):
    saved: List[SavedDeck] = Field(default_factory=list)
    failures: List[DeckFailure] = Field(default_factory=list)

    @property
    def fully_ok(self) -> bool:
        return not self.failures


class DeckPool(BaseModel):
    deck: DeckName
    ids: List[str]
    updated_at: Optional[str] = None


class DrawResult(BaseModel):
    deck: DeckName
    ids: List[str]
    pool_size: int
    updated_at: Optional[str] = None


class QuotaCheck(BaseModel):
    used: bool
    date: str = Field(..., description="YYYYMMDD in the quota time zone")


class DailyDrawResult(BaseModel):
    used: bool
    date: str
    deck: DeckName
    ids: List[str] = Field(default_factory=list)
    pool_size: Optional[int] = None
    updated_at: Optional[str] = None
