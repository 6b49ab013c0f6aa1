"""Pydantic schemas for points endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class PointsBalanceResponse(BaseModel):
    points: int


class PointTransactionOut(BaseModel):
    id: int
    transaction_type: str
    amount: int  # negative for spends
    description: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    created_at: datetime


class PointsHistoryResponse(BaseModel):
    transactions: list[PointTransactionOut]
    total: int


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    username: str
    points: int
    achievements_completed: int


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntry]
