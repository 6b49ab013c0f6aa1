"""Pydantic schemas for border endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class BorderStatus(BaseModel):
    """Catalog border with the requesting user's unlock state."""

    code: str
    name: str
    description: Optional[str] = None
    image_url: str
    price: Optional[int] = None  # None means not purchasable
    rarity: str
    sort_order: int
    unlocked: bool
    selected: bool
    unlock_type: Optional[str] = None
    unlocked_at: Optional[datetime] = None
    price_paid: Optional[int] = None


class BordersResponse(BaseModel):
    borders: list[BorderStatus]
    total: int


class BorderCodeRequest(BaseModel):
    """Body for purchase and select requests."""

    border_code: str

    @field_validator("border_code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("border_code must not be empty")
        return v


class PurchaseResponse(BaseModel):
    already_owned: bool
    border: BorderStatus
    points: int
