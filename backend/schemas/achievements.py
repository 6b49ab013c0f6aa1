"""Pydantic schemas for achievement endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class AchievementProgress(BaseModel):
    """One catalog achievement joined with the user's progress."""

    type: str
    title: str
    description: str
    progress: int
    target: int
    completed: bool
    completed_at: Optional[datetime] = None
    reward_points: int
    reward_border: Optional[str] = None


class AchievementsResponse(BaseModel):
    """Response for /achievements endpoints."""

    user_id: int
    points: int
    achievements: list[AchievementProgress]
    total: int
    completed_count: int
